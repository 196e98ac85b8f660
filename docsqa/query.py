"""Retrieval-augmented question answering.

embed question -> similarity search -> (no hits: report and stop)
-> assemble context -> stream the chat answer to the output.
"""
import sys
from dataclasses import dataclass, field
from typing import List, Optional, TextIO

import structlog

from docsqa import config
from docsqa.llm.chat import ChatStream, StreamingChatClient
from docsqa.llm.embedding import EmbeddingClient
from docsqa.rag.retriever import SimilaritySearchClient, assemble_context
from docsqa.rag.store import RetrievedChunk

logger = structlog.get_logger()

NO_RESULTS_MESSAGE = "Sorry, no relevant documents found for this question."


@dataclass
class QueryResult:
    """Outcome of one question."""

    question: str
    chunks: List[RetrievedChunk] = field(default_factory=list)
    context: str = ""
    answer: Optional[str] = None
    dropped_frames: int = 0
    aborted: bool = False

    @property
    def answered(self) -> bool:
        return self.answer is not None


class QueryPipeline:
    """Answers questions from the documents stored in one collection."""

    def __init__(
        self,
        embedder: Optional[EmbeddingClient] = None,
        searcher: Optional[SimilaritySearchClient] = None,
        chat_client: Optional[StreamingChatClient] = None,
        collection: Optional[str] = None,
        out: Optional[TextIO] = None,
    ):
        self.embedder = embedder or EmbeddingClient()
        self.searcher = searcher or SimilaritySearchClient()
        self.chat_client = chat_client or StreamingChatClient()
        self.collection = collection or config.COLLECTION_NAME
        self.out = out
        self.current_stream: Optional[ChatStream] = None

    def _write(self, text: str) -> None:
        out = self.out or sys.stdout
        out.write(text)
        out.flush()

    async def ask(self, question: str) -> QueryResult:
        """Answer ``question``, streaming fragments to the output as they arrive.

        Transport errors from the embedding, search or chat calls propagate.
        """
        result = QueryResult(question=question)

        logger.info(
            "query_started",
            collection=self.collection,
            question_length=len(question),
            question_preview=question[:100],
        )

        vector = await self.embedder.embed(question)
        result.chunks = await self.searcher.search(vector, self.collection)

        if not result.chunks:
            logger.info("no_relevant_context_found", collection=self.collection)
            self._write(NO_RESULTS_MESSAGE + "\n")
            return result

        result.context = assemble_context(result.chunks)

        stream = self.chat_client.chat(result.context, question)
        self.current_stream = stream
        try:
            async for fragment in stream:
                self._write(fragment)
        finally:
            self.current_stream = None
            result.dropped_frames = stream.dropped_frames
            result.aborted = stream.aborted

        result.answer = stream.answer
        self._write(f"\n\nFull Answer:\n{result.answer}\n")

        logger.info(
            "query_answered",
            collection=self.collection,
            num_sources=len(result.chunks),
            context_length=len(result.context),
            response_length=len(result.answer),
            dropped_frames=result.dropped_frames,
            aborted=result.aborted,
        )
        return result

    def abort(self) -> None:
        """Abort the chat stream currently being read, if any."""
        if self.current_stream is not None:
            self.current_stream.abort()


async def query(question: str, collection: Optional[str] = None) -> QueryResult:
    """Answer a question with the default clients (convenience function)."""
    pipeline = QueryPipeline(collection=collection)
    return await pipeline.ask(question)
