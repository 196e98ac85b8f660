"""Clients for the Ollama embedding and chat endpoints."""
from docsqa.llm.chat import ChatStream, MissingResponseBodyError, StreamingChatClient
from docsqa.llm.embedding import EmbeddingClient, EmbeddingResponseError
from docsqa.llm.stream import NDJSONStreamDecoder

__all__ = [
    "ChatStream",
    "EmbeddingClient",
    "EmbeddingResponseError",
    "MissingResponseBodyError",
    "NDJSONStreamDecoder",
    "StreamingChatClient",
]
