"""Vector store interface shared by the Qdrant and FAISS backends."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class VectorPoint:
    """A vector to upsert, with the payload returned on search."""

    point_id: str
    vector: List[float]
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievedChunk:
    """A single search hit."""

    point_id: str
    score: float
    payload: Dict[str, Any]

    @property
    def text(self) -> str:
        return self.payload.get("text") or ""

    @property
    def source(self) -> str:
        """Get a formatted source string for display."""
        metadata = self.payload.get("metadata") or {}
        name = metadata.get("title") or self.payload.get("doc_id") or self.point_id
        heading = self.payload.get("heading_context")
        if heading:
            return f"{name} > {heading}"
        return str(name)


class VectorStore(ABC):
    """Collection-oriented vector store."""

    backend: str = ""

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        ...

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int) -> bool:
        """Create the collection if missing. Returns True if it was created."""

    @abstractmethod
    async def upsert(self, name: str, points: List[VectorPoint]) -> int:
        """Insert or replace points. Returns the number written."""

    @abstractmethod
    async def search(
        self,
        name: str,
        vector: List[float],
        limit: int,
        score_threshold: Optional[float] = None,
    ) -> List[RetrievedChunk]:
        """Return up to ``limit`` hits scoring at least ``score_threshold``, best first."""

    @abstractmethod
    async def delete_collection(self, name: str) -> bool:
        ...

    @abstractmethod
    async def count(self, name: str) -> int:
        ...


def get_vector_store(backend: Optional[str] = None) -> VectorStore:
    """Build the configured vector store backend ('qdrant' or 'faiss')."""
    from docsqa import config

    backend = backend or config.VECTOR_BACKEND

    if backend == "qdrant":
        from docsqa.rag.store_qdrant import QdrantVectorStore

        return QdrantVectorStore()
    if backend == "faiss":
        from docsqa.rag.store_faiss import FAISSVectorStore

        return FAISSVectorStore()

    raise ValueError(f"Unknown vector backend: {backend!r} (expected 'qdrant' or 'faiss')")
