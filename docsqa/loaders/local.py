"""Loader for documents on the local filesystem."""
from pathlib import Path
from typing import List, Optional

import structlog

from docsqa import config
from docsqa.loaders.base import DocsLoader, LoadedDocument

logger = structlog.get_logger()

DOCUMENT_SUFFIXES = (".md", ".markdown", ".txt")


class LocalLoader(DocsLoader):
    """Reads markdown and text files below a directory."""

    source = "local"

    def __init__(self, docs_dir: Optional[Path] = None):
        self.docs_dir = Path(docs_dir) if docs_dir else config.DOCS_DIR

    async def list_documents(self) -> List[str]:
        """List document paths relative to the docs directory.

        Raises:
            FileNotFoundError: If the docs directory doesn't exist
        """
        if not self.docs_dir.is_dir():
            raise FileNotFoundError(f"Docs directory not found: {self.docs_dir}")

        doc_ids = sorted(
            path.relative_to(self.docs_dir).as_posix()
            for path in self.docs_dir.rglob("*")
            if path.is_file() and path.suffix.lower() in DOCUMENT_SUFFIXES
        )

        logger.info("documents_discovered", source=self.source, count=len(doc_ids), docs_dir=str(self.docs_dir))
        return doc_ids

    async def load_document(self, doc_id: str) -> LoadedDocument:
        path = (self.docs_dir / doc_id).resolve()
        if not path.is_relative_to(self.docs_dir.resolve()):
            raise ValueError(f"Document outside docs directory: {doc_id}")

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.error("document_encoding_error", path=str(path), error=str(e))
            raise

        return LoadedDocument(
            doc_id=doc_id,
            text=text,
            metadata={"source": self.source, "file_name": path.name, "file_path": doc_id},
        )
