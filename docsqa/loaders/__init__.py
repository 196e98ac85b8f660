"""Document sources for ingestion."""
from docsqa.loaders.base import DocsLoader, LoadedDocument
from docsqa.loaders.local import LocalLoader
from docsqa.loaders.notion import NotionLoader

__all__ = ["DocsLoader", "LoadedDocument", "LocalLoader", "NotionLoader", "get_loader"]


def get_loader(source: str, **kwargs) -> DocsLoader:
    """Build a loader for 'local' or 'notion'."""
    if source == "local":
        return LocalLoader(**kwargs)
    if source == "notion":
        return NotionLoader(**kwargs)
    raise ValueError(f"Unknown document source: {source!r} (expected 'local' or 'notion')")
