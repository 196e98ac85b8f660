"""Document loader interface."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class LoadedDocument:
    """Raw text of one source document."""

    doc_id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class DocsLoader(ABC):
    """Lists and loads documents from one source."""

    source: str = ""

    @abstractmethod
    async def list_documents(self) -> List[str]:
        """Return the IDs of all documents available from this source."""

    @abstractmethod
    async def load_document(self, doc_id: str) -> LoadedDocument:
        """Load one document by the ID returned from ``list_documents``."""
