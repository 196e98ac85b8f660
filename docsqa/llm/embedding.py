"""Ollama embedding client."""
from typing import List, Optional

import httpx
import structlog

from docsqa import config as app_config
from docsqa.config import ClientConfig

logger = structlog.get_logger()


class EmbeddingResponseError(RuntimeError):
    """The embedding endpoint answered without a usable vector."""


class EmbeddingClient:
    """Async client turning text into an embedding vector."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the embedding client.

        Args:
            config: Endpoint URL, model name and timeout (defaults from environment)
            transport: Optional httpx transport, used to fake the endpoint in tests
        """
        self.config = config or app_config.embedding_config()
        self.transport = transport

    @property
    def model(self) -> str:
        return self.config.model_name

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: Text to embed (empty text is sent as-is)

        Returns:
            The embedding vector

        Raises:
            httpx.HTTPError: On transport or API errors
            EmbeddingResponseError: If the response carries no embedding
        """
        payload = {
            "model": self.config.model_name,
            "prompt": text,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout, transport=self.transport
            ) as client:
                logger.debug(
                    "ollama_embedding_request",
                    model=self.config.model_name,
                    prompt_length=len(text),
                )

                response = await client.post(self.config.endpoint_url, json=payload)
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPError as e:
            logger.error(
                "ollama_embedding_error",
                error=str(e),
                endpoint=self.config.endpoint_url,
            )
            raise
        except ValueError as e:
            logger.error("ollama_embedding_malformed", error=str(e))
            raise EmbeddingResponseError(f"Embedding response is not JSON: {e}") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list):
            logger.error("ollama_embedding_malformed", keys=sorted(data) if isinstance(data, dict) else None)
            raise EmbeddingResponseError("Embedding response has no 'embedding' list")

        try:
            vector = [float(value) for value in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingResponseError(f"Embedding contains non-numeric values: {e}") from e

        logger.debug(
            "ollama_embedding_response",
            model=self.config.model_name,
            dimension=len(vector),
        )

        return vector
