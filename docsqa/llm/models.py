"""Ollama model discovery, used by the setup check."""
from typing import Dict, List, Optional

import httpx
import structlog

from docsqa import config

logger = structlog.get_logger()


async def list_models(
    base_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[str]:
    """List all models installed in Ollama.

    Raises:
        httpx.HTTPError: On API errors
    """
    base_url = base_url or config.OLLAMA_BASE_URL

    try:
        async with httpx.AsyncClient(timeout=5.0, transport=transport) as client:
            response = await client.get(f"{base_url}/api/tags")
            response.raise_for_status()
            data = response.json()
            return [m["name"] for m in data.get("models", [])]
    except httpx.HTTPError as e:
        logger.error("ollama_list_models_error", error=str(e))
        raise


def _installed(model: str, installed: List[str]) -> bool:
    # Ollama reports "bge-m3:latest" for a model pulled as "bge-m3".
    if ":" not in model:
        model = f"{model}:latest"
    return model in installed


async def check_models(
    required: List[str],
    base_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, bool]:
    """Report which of the required models are installed."""
    installed = await list_models(base_url, transport=transport)
    return {model: _installed(model, installed) for model in required}
