"""FAISS vector store for local semantic search.

Handles:
- One index per collection, persisted under the data directory
- Cosine similarity via inner product over L2-normalised vectors
- Point upserts (replacing existing point IDs)
- Payload persistence in SQLite
"""
import json
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import faiss
import numpy as np
import structlog

from docsqa import config, db
from docsqa.rag.store import RetrievedChunk, VectorPoint, VectorStore

logger = structlog.get_logger()


class FAISSVectorStore(VectorStore):
    """FAISS-based vector store with per-collection indexes and metadata."""

    backend = "faiss"

    def __init__(self, index_dir: Optional[Path] = None):
        """Initialize the FAISS vector store.

        Args:
            index_dir: Directory holding one sub-directory per collection
                (default: DATA_DIR/collections)
        """
        self.index_dir = Path(index_dir) if index_dir else config.DATA_DIR / "collections"
        self._collections: Dict[str, Tuple[faiss.Index, Dict[str, Any]]] = {}

        db.init_database()

        logger.debug("faiss_store_initialized", index_dir=str(self.index_dir))

    def _paths(self, name: str) -> Tuple[Path, Path]:
        collection_dir = self.index_dir / name
        return collection_dir / "vectors.index", collection_dir / "metadata.json"

    def _load(self, name: str) -> Optional[Tuple[faiss.Index, Dict[str, Any]]]:
        if name in self._collections:
            return self._collections[name]

        index_path, metadata_path = self._paths(name)
        if not (index_path.exists() and metadata_path.exists()):
            return None

        try:
            with open(metadata_path, "r") as f:
                metadata = json.load(f)
            index = faiss.read_index(str(index_path))
        except Exception as e:
            raise RuntimeError(f"Failed to load FAISS collection '{name}': {e}") from e

        if index.d != metadata.get("embedding_dimension"):
            raise ValueError(
                f"Collection '{name}' is corrupt: index dimension {index.d} does not "
                f"match metadata dimension {metadata.get('embedding_dimension')}"
            )

        self._collections[name] = (index, metadata)

        logger.info(
            "faiss_index_loaded",
            collection=name,
            dimension=index.d,
            vector_count=index.ntotal,
        )
        return self._collections[name]

    def _require(self, name: str) -> Tuple[faiss.Index, Dict[str, Any]]:
        loaded = self._load(name)
        if loaded is None:
            raise ValueError(f"Collection not found: {name}")
        return loaded

    def _save(self, name: str) -> None:
        index, metadata = self._require(name)
        index_path, metadata_path = self._paths(name)

        index_path.parent.mkdir(parents=True, exist_ok=True)
        metadata["vector_count"] = index.ntotal

        try:
            faiss.write_index(index, str(index_path))
            with open(metadata_path, "w") as f:
                json.dump(metadata, f, indent=2)
        except Exception as e:
            raise RuntimeError(f"Failed to save FAISS collection '{name}': {e}") from e

        logger.debug("faiss_index_saved", collection=name, vector_count=index.ntotal)

    @staticmethod
    def _as_matrix(vectors: List[List[float]], dimension: int) -> np.ndarray:
        matrix = np.array(vectors, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[1] != dimension:
            got = matrix.shape[1] if matrix.ndim == 2 else matrix.shape
            raise ValueError(
                f"Embedding dimension mismatch: expected {dimension}, got {got}"
            )
        faiss.normalize_L2(matrix)
        return matrix

    async def collection_exists(self, name: str) -> bool:
        return self._load(name) is not None

    async def ensure_collection(self, name: str, dimension: int) -> bool:
        if self._load(name) is not None:
            return False

        index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        metadata = {
            "collection": name,
            "embedding_dimension": dimension,
            "index_type": "IndexIDMap2(IndexFlatIP)",
            "distance": "Cosine",
            "next_vector_id": 0,
            "vector_count": 0,
        }
        self._collections[name] = (index, metadata)
        self._save(name)

        logger.info("faiss_collection_created", collection=name, dimension=dimension)
        return True

    async def upsert(self, name: str, points: List[VectorPoint]) -> int:
        if not points:
            return 0

        index, metadata = self._require(name)
        matrix = self._as_matrix([p.vector for p in points], index.d)

        # Replace points that were stored before
        existing = db.get_vector_ids(name, [p.point_id for p in points])
        if existing:
            index.remove_ids(np.array(list(existing.values()), dtype=np.int64))

        start_id = metadata["next_vector_id"]
        vector_ids = list(range(start_id, start_id + len(points)))
        index.add_with_ids(matrix, np.array(vector_ids, dtype=np.int64))
        metadata["next_vector_id"] = start_id + len(points)

        db.upsert_chunks(
            name,
            [
                {"point_id": p.point_id, "vector_id": vid, "payload": p.payload}
                for p, vid in zip(points, vector_ids)
            ],
        )
        self._save(name)

        logger.info(
            "vectors_added",
            collection=name,
            count=len(points),
            replaced=len(existing),
            total_vectors=index.ntotal,
        )
        return len(points)

    async def search(
        self,
        name: str,
        vector: List[float],
        limit: int,
        score_threshold: Optional[float] = None,
    ) -> List[RetrievedChunk]:
        index, _ = self._require(name)
        query = self._as_matrix([vector], index.d)

        top_k = min(limit, index.ntotal)
        if top_k <= 0:
            return []

        scores, ids = index.search(query, top_k)

        hits = [
            (int(vid), float(score))
            for vid, score in zip(ids[0].tolist(), scores[0].tolist())
            if vid != -1 and (score_threshold is None or score >= score_threshold)
        ]

        rows = db.get_chunks_by_vector_ids(name, [vid for vid, _ in hits])
        by_vector_id = {row["vector_id"]: row for row in rows}

        results = []
        for vid, score in hits:
            row = by_vector_id.get(vid)
            if row is None:
                logger.warning("vector_id_without_payload", collection=name, vector_id=vid)
                continue
            results.append(
                RetrievedChunk(point_id=row["point_id"], score=score, payload=row["payload"])
            )

        results.sort(key=lambda r: r.score, reverse=True)

        logger.info(
            "vector_search_completed",
            backend=self.backend,
            collection=name,
            limit=limit,
            results_found=len(results),
        )
        return results

    async def delete_collection(self, name: str) -> bool:
        existed = self._load(name) is not None
        self._collections.pop(name, None)

        collection_dir = self.index_dir / name
        if collection_dir.exists():
            shutil.rmtree(collection_dir)
        db.clear_collection_chunks(name)

        logger.warning("faiss_collection_deleted", collection=name, existed=existed)
        return existed

    async def count(self, name: str) -> int:
        index, _ = self._require(name)
        return index.ntotal
