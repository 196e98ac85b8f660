"""Fake Ollama responses, a request-recording httpx transport and an in-memory store."""
import asyncio
import json
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from docsqa.rag.store import RetrievedChunk, VectorPoint, VectorStore

EMBED_URL = "http://ollama.test/api/embeddings"
CHAT_URL = "http://ollama.test/api/chat"


async def _byte_chunks(parts: Iterable[bytes]):
    for part in parts:
        yield part


def ndjson(*contents: str, done: bool = True) -> bytes:
    """Encode chat fragments the way Ollama streams them."""
    lines = [
        json.dumps({"model": "test", "message": {"role": "assistant", "content": c}, "done": False}, ensure_ascii=False)
        for c in contents
    ]
    if done:
        lines.append(json.dumps({"model": "test", "message": {"role": "assistant", "content": ""}, "done": True}))
    return ("\n".join(lines) + "\n").encode("utf-8")


def streaming_response(parts: List[bytes], status_code: int = 200) -> httpx.Response:
    """Response whose body arrives in exactly the given reads."""
    return httpx.Response(status_code, content=_byte_chunks(parts))


async def _stalled_chunks(parts: Iterable[bytes], closed: Optional[List[bool]]):
    try:
        for part in parts:
            yield part
        # The model stops talking but keeps the connection open
        await asyncio.Event().wait()
    finally:
        if closed is not None:
            closed.append(True)


def stalled_response(parts: List[bytes], closed: Optional[List[bool]] = None) -> httpx.Response:
    """Response that sends the given reads and then blocks forever.

    ``closed`` gets an entry once the body is torn down.
    """
    return httpx.Response(200, content=_stalled_chunks(parts, closed))


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it handled."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def bodies(self) -> List[Dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


class FakeStore(VectorStore):
    """In-memory store returning canned hits."""

    backend = "fake"

    def __init__(self, hits: List[RetrievedChunk]):
        self.hits = hits
        self.calls = []

    async def collection_exists(self, name: str) -> bool:
        return True

    async def ensure_collection(self, name: str, dimension: int) -> bool:
        return False

    async def upsert(self, name: str, points: List[VectorPoint]) -> int:
        return len(points)

    async def search(self, name, vector, limit, score_threshold: Optional[float] = None):
        self.calls.append((name, vector, limit, score_threshold))
        return [h for h in self.hits if score_threshold is None or h.score >= score_threshold][:limit]

    async def delete_collection(self, name: str) -> bool:
        return True

    async def count(self, name: str) -> int:
        return len(self.hits)
