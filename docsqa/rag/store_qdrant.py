"""Qdrant vector store over its REST API."""
from typing import Any, Dict, List, Optional

import httpx
import structlog

from docsqa import config
from docsqa.rag.store import RetrievedChunk, VectorPoint, VectorStore

logger = structlog.get_logger()


class QdrantVectorStore(VectorStore):
    """Qdrant collections reached with httpx."""

    backend = "qdrant"

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Qdrant store.

        Args:
            url: Qdrant base URL (defaults to config.QDRANT_URL)
            api_key: Optional API key (defaults to config.QDRANT_API_KEY)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to fake Qdrant in tests
        """
        self.url = (url or config.QDRANT_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.QDRANT_API_KEY
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"api-key": self.api_key} if self.api_key else None
        return httpx.AsyncClient(
            base_url=self.url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.error(
                "qdrant_request_failed",
                method=method,
                path=path,
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def collection_exists(self, name: str) -> bool:
        data = await self._request("GET", "/collections")
        collections = data.get("result", {}).get("collections", [])
        return any(collection.get("name") == name for collection in collections)

    async def ensure_collection(self, name: str, dimension: int) -> bool:
        if await self.collection_exists(name):
            return False

        await self._request(
            "PUT",
            f"/collections/{name}",
            json={"vectors": {"size": dimension, "distance": "Cosine"}},
        )
        logger.info("qdrant_collection_created", collection=name, dimension=dimension)
        return True

    async def upsert(self, name: str, points: List[VectorPoint]) -> int:
        if not points:
            return 0

        await self._request(
            "PUT",
            f"/collections/{name}/points",
            params={"wait": "true"},
            json={
                "points": [
                    {"id": point.point_id, "vector": point.vector, "payload": point.payload}
                    for point in points
                ]
            },
        )
        logger.info("qdrant_points_upserted", collection=name, count=len(points))
        return len(points)

    async def search(
        self,
        name: str,
        vector: List[float],
        limit: int,
        score_threshold: Optional[float] = None,
    ) -> List[RetrievedChunk]:
        body: Dict[str, Any] = {
            "vector": vector,
            "limit": limit,
            "with_payload": True,
        }
        if score_threshold is not None:
            body["score_threshold"] = score_threshold

        data = await self._request("POST", f"/collections/{name}/points/search", json=body)

        hits = [
            RetrievedChunk(
                point_id=str(hit["id"]),
                score=float(hit["score"]),
                payload=hit.get("payload") or {},
            )
            for hit in data.get("result", [])
        ]

        logger.info(
            "vector_search_completed",
            backend=self.backend,
            collection=name,
            limit=limit,
            results_found=len(hits),
        )
        return hits

    async def delete_collection(self, name: str) -> bool:
        data = await self._request("DELETE", f"/collections/{name}")
        deleted = bool(data.get("result"))
        logger.info("qdrant_collection_deleted", collection=name, deleted=deleted)
        return deleted

    async def count(self, name: str) -> int:
        data = await self._request(
            "POST", f"/collections/{name}/points/count", json={"exact": True}
        )
        return int(data.get("result", {}).get("count", 0))
