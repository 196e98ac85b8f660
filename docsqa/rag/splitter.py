"""Split loaded documents into nodes ready for embedding.

Markdown is split at headings first; sections longer than the chunk size
are cut again with the character chunker.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from docsqa.loaders.base import LoadedDocument
from docsqa.rag.chunker import TextChunker
from docsqa.rag.md_parser import MarkdownParser

logger = structlog.get_logger()


def point_id_for(doc_id: str, chunk_index: int) -> str:
    """Stable point ID, so re-ingesting a document replaces its chunks."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{doc_id}#{chunk_index}"))


@dataclass
class TextNode:
    """A chunk of a document plus the payload stored with its vector."""

    node_id: str
    text: str
    doc_id: str
    chunk_index: int
    heading_context: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "doc_id": self.doc_id,
            "chunk_index": self.chunk_index,
            "heading_context": self.heading_context,
            "metadata": self.metadata,
        }


class MarkdownSplitter:
    """Heading-based markdown splitter with a size cap."""

    def __init__(
        self,
        parser: Optional[MarkdownParser] = None,
        chunker: Optional[TextChunker] = None,
    ):
        self.parser = parser or MarkdownParser()
        self.chunker = chunker or TextChunker()

    def split(self, document: LoadedDocument) -> List[TextNode]:
        doc = self.parser.parse(document.text, source=document.doc_id)
        metadata = {**document.metadata, **self.parser.get_document_metadata(doc)}
        if document.metadata.get("title"):
            metadata["title"] = document.metadata["title"]

        nodes: List[TextNode] = []
        for section in self.parser.split_sections(doc):
            for chunk in self.chunker.chunk_text(section.text):
                text = chunk.content.strip()
                if not text:
                    continue
                index = len(nodes)
                nodes.append(
                    TextNode(
                        node_id=point_id_for(document.doc_id, index),
                        text=text,
                        doc_id=document.doc_id,
                        chunk_index=index,
                        heading_context=section.heading_context,
                        metadata=metadata,
                    )
                )

        logger.debug("document_split", doc_id=document.doc_id, node_count=len(nodes))
        return nodes
