"""Incremental decoder for newline-delimited JSON chat streams.

Ollama streams a chat completion as one JSON object per line. Reads from the
socket do not line up with those lines (or even with UTF-8 character
boundaries), so the decoder keeps state across reads:

- bytes are decoded with an incremental UTF-8 decoder
- text is buffered until a newline completes a line
- each complete line is parsed and its ``message.content`` extracted
"""
import codecs
import json
from typing import List, Optional

import structlog

logger = structlog.get_logger()


class NDJSONStreamDecoder:
    """Turns raw response bytes into chat content fragments."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self.dropped_frames = 0
        self.bytes_received = 0

    @property
    def pending(self) -> str:
        """Text received after the last newline, not parsed yet."""
        return self._buffer

    def feed(self, data: bytes) -> List[str]:
        """Consume one read worth of bytes.

        Args:
            data: Raw bytes exactly as read from the response body

        Returns:
            Content fragments of the lines completed by this read, in order
        """
        self.bytes_received += len(data)
        self._buffer += self._decoder.decode(data)

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        return self._parse_lines(lines)

    def finish(self) -> None:
        """Flush the decoder once the stream has ended.

        A line is only parsed once its newline arrives, so text left in the
        buffer here is an incomplete frame: it is dropped and counted.
        """
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""

        if remainder.strip():
            self.dropped_frames += 1
            logger.warning(
                "chat_stream_partial_frame_dropped",
                line_preview=remainder[:100],
                dropped_frames=self.dropped_frames,
            )

    def _parse_lines(self, lines: List[str]) -> List[str]:
        fragments = []
        for line in lines:
            if not line.strip():
                continue
            content = self._parse_frame(line)
            if content:
                fragments.append(content)
        return fragments

    def _parse_frame(self, line: str) -> Optional[str]:
        try:
            frame = json.loads(line)
        except json.JSONDecodeError as e:
            self.dropped_frames += 1
            logger.warning(
                "chat_stream_frame_dropped",
                error=str(e),
                line_preview=line[:100],
                dropped_frames=self.dropped_frames,
            )
            return None

        if not isinstance(frame, dict):
            return None

        if "error" in frame:
            logger.warning("chat_stream_error_frame", error=frame["error"])

        message = frame.get("message")
        if not isinstance(message, dict):
            return None

        content = message.get("content")
        return content if isinstance(content, str) else None
