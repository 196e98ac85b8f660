"""Character-based chunking with overlap for oversized markdown sections."""
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from docsqa import config

logger = structlog.get_logger()

# Preferred cut points, best first, with how far into the window they must
# fall to be used.
CUT_POINTS: Tuple[Tuple[str, float], ...] = (
    (". ", 0.7),
    ("! ", 0.7),
    ("? ", 0.7),
    (".\n", 0.7),
    ("!\n", 0.7),
    ("?\n", 0.7),
    ("\n\n", 0.7),
    ("\n", 0.7),
    (" ", 0.8),
)


@dataclass
class TextChunk:
    """A slice of the input text and where it came from."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


def cut_length(window: str) -> int:
    """Length to keep of ``window`` so it ends on a natural boundary."""
    for separator, min_fraction in CUT_POINTS:
        position = window.rfind(separator)
        if position > len(window) * min_fraction:
            return position + len(separator)
    return len(window)


class TextChunker:
    """Sliding window over a text, cut at sentence or word boundaries."""

    def __init__(self, chunk_size: Optional[int] = None, chunk_overlap: Optional[int] = None):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum chunk length in characters (default from config)
            chunk_overlap: Characters shared by neighbouring chunks (default from config)
        """
        self.chunk_size = chunk_size or config.CHUNK_SIZE
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks of at most ``chunk_size``.

        Text that already fits comes back as a single chunk.
        """
        chunks: List[TextChunk] = []
        start = 0

        while start < len(text):
            end = start + self.chunk_size
            if end < len(text):
                end = start + cut_length(text[start:end])
            else:
                end = len(text)

            chunks.append(TextChunk(text[start:end], start, end, len(chunks)))
            if end == len(text):
                break

            # Never step backwards, even when the cut swallowed the overlap
            start = max(end - self.chunk_overlap, start + 1)

        if len(chunks) > 1:
            logger.debug("text_chunked", text_length=len(text), chunk_count=len(chunks))

        return chunks
