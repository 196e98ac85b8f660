"""Ingest pipeline for indexing documents.

Orchestrates:
- Document discovery and loading (local files or Notion)
- Markdown splitting
- Embedding generation
- Vector upserts into the configured store
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional

import structlog

from docsqa import config, db
from docsqa.llm.embedding import EmbeddingClient
from docsqa.loaders.base import DocsLoader
from docsqa.rag.splitter import MarkdownSplitter, TextNode
from docsqa.rag.store import VectorPoint, VectorStore, get_vector_store

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, str], None]


def _empty_stats() -> Dict[str, int]:
    return {
        "documents_processed": 0,
        "documents_failed": 0,
        "chunks_created": 0,
        "embeddings_generated": 0,
    }


class IngestPipeline:
    """Pipeline for ingesting documents into a vector store collection."""

    def __init__(
        self,
        loader: DocsLoader,
        store: Optional[VectorStore] = None,
        embedder: Optional[EmbeddingClient] = None,
        splitter: Optional[MarkdownSplitter] = None,
        collection: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            loader: Source of documents
            store: Vector store (default: the configured backend)
            embedder: Embedding client (default from config)
            splitter: Document splitter (default: markdown sections + chunker)
            collection: Target collection (default from config)
            batch_size: Number of embeddings requested concurrently
        """
        self.loader = loader
        self.store = store or get_vector_store()
        self.embedder = embedder or EmbeddingClient()
        self.splitter = splitter or MarkdownSplitter()
        self.collection = collection or config.COLLECTION_NAME
        self.batch_size = batch_size or config.EMBED_BATCH_SIZE

        self.stats = _empty_stats()
        self.dimension: Optional[int] = None

        logger.info(
            "ingest_pipeline_initialized",
            source=loader.source,
            backend=self.store.backend,
            collection=self.collection,
            embedding_model=self.embedder.model,
            batch_size=self.batch_size,
        )

    async def generate_embeddings_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed texts, ``batch_size`` requests at a time.

        Raises:
            httpx.HTTPError, EmbeddingResponseError: If any embedding fails
        """
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            batch_embeddings = await asyncio.gather(
                *(self.embedder.embed(text) for text in batch)
            )
            embeddings.extend(batch_embeddings)

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
            )

        return embeddings

    async def store_nodes(self, nodes: List[TextNode]) -> int:
        """Embed nodes and upsert them into the collection."""
        if not nodes:
            return 0

        embeddings = await self.generate_embeddings_batch([node.text for node in nodes])

        if self.dimension is None:
            # Set only once the collection exists
            await self.store.ensure_collection(self.collection, len(embeddings[0]))
            self.dimension = len(embeddings[0])

        points = [
            VectorPoint(point_id=node.node_id, vector=embedding, payload=node.payload())
            for node, embedding in zip(nodes, embeddings)
        ]
        stored = await self.store.upsert(self.collection, points)
        self.stats["embeddings_generated"] += len(points)
        return stored

    async def ingest_document(self, doc_id: str) -> Dict[str, Any]:
        """Load, split, embed and store a single document."""
        logger.info("ingesting_document", doc_id=doc_id)

        document = await self.loader.load_document(doc_id)
        nodes = self.splitter.split(document)

        if not nodes:
            logger.warning("no_chunks_created", doc_id=doc_id)
            return {"doc_id": doc_id, "chunks_created": 0}

        await self.store_nodes(nodes)

        self.stats["chunks_created"] += len(nodes)

        logger.info("document_ingested", doc_id=doc_id, chunks_created=len(nodes))
        return {"doc_id": doc_id, "chunks_created": len(nodes)}

    async def run(
        self,
        rebuild: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, int]:
        """Ingest every document the loader lists.

        Args:
            rebuild: If True, delete the collection before ingesting
            progress_callback: Optional callback(current, total, doc_id)

        Returns:
            Dictionary with ingestion statistics
        """
        logger.info("starting_ingest", rebuild=rebuild, collection=self.collection)

        self.stats = _empty_stats()
        self.dimension = None

        if rebuild and await self.store.collection_exists(self.collection):
            await self.store.delete_collection(self.collection)

        doc_ids = await self.loader.list_documents()

        if not doc_ids:
            logger.warning("no_documents_found", source=self.loader.source)
            return self.stats

        for idx, doc_id in enumerate(doc_ids, 1):
            if progress_callback:
                progress_callback(idx, len(doc_ids), doc_id)

            try:
                await self.ingest_document(doc_id)
                self.stats["documents_processed"] += 1
            except Exception as e:
                logger.error(
                    "document_ingestion_failed",
                    doc_id=doc_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self.stats["documents_failed"] += 1
                # Continue with next document instead of failing entirely

        db.init_database()
        db.insert_index_metadata(
            collection=self.collection,
            backend=self.store.backend,
            embedding_model=self.embedder.model,
            embedding_dimension=self.dimension,
            total_chunks=self.stats["chunks_created"],
            total_documents=self.stats["documents_processed"],
            source=self.loader.source,
            metadata={
                "documents_failed": self.stats["documents_failed"],
                "embeddings_generated": self.stats["embeddings_generated"],
            },
        )

        logger.info("ingest_completed", stats=self.stats)
        return self.stats
