"""Application configuration with sensible defaults."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Paths
DOCS_DIR = Path(os.getenv("DOCS_DIR", "docs"))
DATA_DIR = Path(os.getenv("DATA_DIR", "data"))

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "bge-m3")
CHAT_MODEL = os.getenv("CHAT_MODEL", "deepseek-r1:1.5b")
CHAT_TEMPERATURE = float(os.environ["CHAT_TEMPERATURE"]) if os.getenv("CHAT_TEMPERATURE") else None
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "60.0"))

# Vector store
VECTOR_BACKEND = os.getenv("VECTOR_BACKEND", "qdrant")  # qdrant | faiss
QDRANT_URL = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "notion_docs")
VECTOR_SIZE = int(os.getenv("VECTOR_SIZE", "1024"))         # bge-m3

# Retrieval parameters
RETRIEVAL_LIMIT = int(os.getenv("RETRIEVAL_LIMIT", "5"))
SCORE_THRESHOLD = float(os.getenv("SCORE_THRESHOLD", "0.65"))

# Ingestion (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "2400"))          # ≈600 tokens
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "320"))     # ≈80 tokens
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "8"))

# Notion
NOTION_TOKEN = os.getenv("NOTION_TOKEN")
NOTION_API_URL = os.getenv("NOTION_API_URL", "https://api.notion.com/v1")
NOTION_VERSION = os.getenv("NOTION_VERSION", "2022-06-28")

# Database
DB_PATH = DATA_DIR / "docsqa.sqlite"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")


@dataclass(frozen=True)
class ClientConfig:
    """Settings handed to a client at construction.

    Not every client reads every field: the embedding and chat clients use
    ``endpoint_url`` and ``model_name``, the search client uses ``limit`` and
    ``score_threshold``.
    """

    endpoint_url: str
    model_name: str = ""
    limit: int = 5
    score_threshold: float = 0.65
    timeout: Optional[float] = None
    temperature: Optional[float] = None


def embedding_config() -> ClientConfig:
    return ClientConfig(
        endpoint_url=f"{OLLAMA_BASE_URL}/api/embeddings",
        model_name=EMBEDDING_MODEL,
        timeout=EMBEDDING_TIMEOUT,
    )


def search_config() -> ClientConfig:
    return ClientConfig(
        endpoint_url=QDRANT_URL,
        limit=RETRIEVAL_LIMIT,
        score_threshold=SCORE_THRESHOLD,
    )


def chat_config() -> ClientConfig:
    # No timeout: the stream stays open as long as the model keeps talking.
    return ClientConfig(
        endpoint_url=f"{OLLAMA_BASE_URL}/api/chat",
        model_name=CHAT_MODEL,
        temperature=CHAT_TEMPERATURE,
    )
