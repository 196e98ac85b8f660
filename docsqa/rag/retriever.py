"""Similarity search and prompt-context assembly.

Handles:
- Top-K vector search with a score threshold
- Formatting retrieved chunks into the context handed to the chat model
"""
from typing import List, Optional, Sequence

import structlog

from docsqa import config as app_config
from docsqa.config import ClientConfig
from docsqa.rag.store import RetrievedChunk, VectorStore, get_vector_store

logger = structlog.get_logger()


class SimilaritySearchClient:
    """Searches a vector store collection with a fixed limit and threshold."""

    def __init__(
        self,
        store: Optional[VectorStore] = None,
        config: Optional[ClientConfig] = None,
    ):
        """Initialize the search client.

        Args:
            store: Vector store backend (default: the configured backend)
            config: Supplies ``limit`` and ``score_threshold`` (defaults from environment)
        """
        self.store = store or get_vector_store()
        self.config = config or app_config.search_config()

    async def search(self, vector: List[float], collection: str) -> List[RetrievedChunk]:
        """Return the best chunks for ``vector``, highest score first.

        An empty list means nothing scored above the threshold.
        """
        results = await self.store.search(
            collection,
            vector,
            limit=self.config.limit,
            score_threshold=self.config.score_threshold,
        )

        logger.info(
            "retrieval_completed",
            collection=collection,
            results_returned=len(results),
            top_score=results[0].score if results else None,
            score_threshold=self.config.score_threshold,
        )

        return results


def format_chunk(chunk: RetrievedChunk) -> str:
    return f'Content: "{chunk.text}"'


def assemble_context(chunks: Sequence[RetrievedChunk]) -> str:
    """Join retrieved chunks into a prompt context, keeping their order."""
    return "\n\n".join(format_chunk(chunk) for chunk in chunks)
