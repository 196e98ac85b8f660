"""Streaming Ollama chat client."""
import asyncio
from typing import AsyncIterator, Dict, List, Optional

import httpx
import structlog

from docsqa import config as app_config
from docsqa.config import ClientConfig
from docsqa.llm.stream import NDJSONStreamDecoder

logger = structlog.get_logger()

NOT_FOUND_REPLY = "Not found in the documents."

SYSTEM_PROMPT = (
    "Answer ONLY based on the following context. If unsure or the question "
    f'does not make sense for the documents, reply "{NOT_FOUND_REPLY}"'
    "\n\nContext:\n"
)


class MissingResponseBodyError(RuntimeError):
    """The chat endpoint closed the response without sending a body."""


async def _read_one(reads: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await reads.__anext__()
    except StopAsyncIteration:
        return None


def build_messages(context: str, question: str) -> List[Dict[str, str]]:
    """Build the system + user message pair for a grounded answer."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT + context},
        {"role": "user", "content": question},
    ]


class ChatStream:
    """One streamed chat completion.

    Iterating yields content fragments as they arrive. The stream can be
    iterated once; afterwards ``answer`` holds the concatenated fragments.
    ``abort()`` may be called from any task on the same event loop: a read
    that is waiting on the model is cancelled, the iteration ends and the
    connection is released.
    """

    def __init__(
        self,
        url: str,
        payload: Dict,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.payload = payload
        self.timeout = timeout
        self.transport = transport

        self.fragments: List[str] = []
        self._decoder = NDJSONStreamDecoder()
        self._iterator: Optional[AsyncIterator[str]] = None
        self._aborted = False
        self._abort_requested = asyncio.Event()
        self._reading = False
        self._finished = False

    @property
    def answer(self) -> str:
        return "".join(self.fragments)

    @property
    def dropped_frames(self) -> int:
        return self._decoder.dropped_frames

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def finished(self) -> bool:
        return self._finished

    def abort(self) -> None:
        """Stop the read loop, including a read that is blocked right now."""
        if not self._aborted:
            logger.info("chat_stream_abort_requested", fragments=len(self.fragments))
        self._aborted = True
        self._abort_requested.set()

    async def aclose(self) -> None:
        """Stop iterating and release the underlying connection."""
        self.abort()
        # While another task is inside __anext__ the abort alone ends it
        if self._iterator is not None and not self._reading:
            await self._iterator.aclose()

    def __aiter__(self) -> "ChatStream":
        if self._iterator is not None:
            raise RuntimeError("ChatStream can only be iterated once")
        self._iterator = self._iterate()
        return self

    async def __anext__(self) -> str:
        if self._iterator is None:
            self.__aiter__()
        self._reading = True
        try:
            return await self._iterator.__anext__()
        finally:
            self._reading = False

    async def collect(self) -> str:
        """Drain the stream and return the full answer."""
        async for _ in self:
            pass
        return self.answer

    async def _next_read(self, reads: AsyncIterator[bytes]) -> Optional[bytes]:
        """Next chunk of the body, or None at its end or once abort() is called."""
        read = asyncio.create_task(_read_one(reads))
        abort = asyncio.create_task(self._abort_requested.wait())
        try:
            await asyncio.wait({read, abort}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            read.cancel()
            abort.cancel()
            await asyncio.wait({read, abort})

        if read.cancelled():
            return None
        if self._aborted:
            read.exception()  # retrieved, so asyncio doesn't report it
            return None
        return read.result()

    async def _iterate(self) -> AsyncIterator[str]:
        model = self.payload.get("model")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                logger.info(
                    "ollama_chat_request",
                    model=model,
                    message_count=len(self.payload.get("messages", [])),
                    stream=True,
                )

                async with client.stream("POST", self.url, json=self.payload) as response:
                    response.raise_for_status()

                    reads = response.aiter_bytes()
                    try:
                        while not self._aborted:
                            data = await self._next_read(reads)
                            if data is None:
                                break
                            for fragment in self._decoder.feed(data):
                                self.fragments.append(fragment)
                                yield fragment
                                if self._aborted:
                                    break
                    finally:
                        await reads.aclose()

                    if self._aborted:
                        logger.info(
                            "ollama_chat_stream_aborted",
                            model=model,
                            response_length=len(self.answer),
                        )
                        return

                    if self._decoder.bytes_received == 0:
                        logger.error("ollama_chat_no_response_body", model=model, url=self.url)
                        raise MissingResponseBodyError("No response body")

                    self._decoder.finish()

        except httpx.ConnectError as e:
            logger.error("ollama_connection_error", error=str(e), url=self.url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "ollama_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

        self._finished = True
        logger.info(
            "ollama_chat_response",
            model=model,
            response_length=len(self.answer),
            fragments=len(self.fragments),
            dropped_frames=self.dropped_frames,
        )


class StreamingChatClient:
    """Async client for streamed, context-grounded chat completions."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the chat client.

        Args:
            config: Endpoint URL, model name and optional temperature (defaults from environment)
            transport: Optional httpx transport, used to fake the endpoint in tests
        """
        self.config = config or app_config.chat_config()
        self.transport = transport

    def chat(self, context: str, question: str) -> ChatStream:
        """Open a streamed answer to ``question`` grounded in ``context``.

        Nothing is sent until the returned stream is iterated.

        Raises (while iterating):
            httpx.HTTPError: On transport or API errors
            MissingResponseBodyError: If the response has no body
        """
        payload = {
            "model": self.config.model_name,
            "stream": True,
            "messages": build_messages(context, question),
        }

        if self.config.temperature is not None:
            payload["options"] = {"temperature": self.config.temperature}

        return ChatStream(
            self.config.endpoint_url,
            payload,
            timeout=self.config.timeout,
            transport=self.transport,
        )
