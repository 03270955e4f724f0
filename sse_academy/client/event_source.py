"""
MODULE OVERVIEW:
The EventSource: a reconnecting Server-Sent Events client built on HTTPX.

WHAT IS HAPPENING HERE:
`EventSource.open(url)` performs the first request before returning, so a server that
answers with something other than an event stream fails the call right away.
After that, a background task owns the connection:

    request -> validate -> decode events -> hand them to the consumer
       ^                                             |
       +---- sleep `retry` ms <---- stream dropped --+

Events are handed over through an anyio memory object stream. With the default buffer
size of 0 the hand-off is a rendezvous: the background task waits until the consumer
takes the event, so a slow consumer slows the reader down instead of piling up memory.
On every reconnect the `Last-Event-ID` header tells the server where we left off.

Only `close()` stops the loop for good, along with a server answer that rules out
retrying (wrong content type, non-200 status).
"""
import asyncio
import threading
from contextlib import aclosing
from typing import AsyncIterable, AsyncIterator, Mapping

import anyio
import httpx
from anyio.streams.memory import MemoryObjectReceiveStream
from loguru import logger

from sse_academy.client.decoder import Decoder
from sse_academy.shared.client_utils import make_client_stats, utc_now_iso
from sse_academy.shared.config import settings
from sse_academy.shared.errors import (
    ContentTypeError,
    PermanentConnectionError,
    ResponseStatusError,
    StreamError,
)
from sse_academy.shared.models import MessageEvent, ReadyState

SSE_MEDIA_TYPE = "text/event-stream"


def is_event_stream(content_type: str) -> bool:
    """True when the media type is text/event-stream with no charset other than UTF-8."""
    media_type, *params = [part.strip() for part in content_type.split(";")]
    if media_type.lower() != SSE_MEDIA_TYPE:
        return False
    for param in params:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip().strip('"').lower() != "utf-8":
            return False
    return True


def check_response(response: httpx.Response) -> None:
    if response.status_code != 200:
        raise ResponseStatusError(response.status_code)
    content_type = response.headers.get("content-type", "")
    if not is_event_stream(content_type):
        raise ContentTypeError(content_type)


class EventSource:
    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
        client: httpx.AsyncClient | None = None,
        max_line_size: int | None = None,
        buffer_size: int | None = None,
    ):
        self._url = url
        self._headers = dict(headers or {})
        self._decoder = Decoder(retry=retry, max_line_size=max_line_size)

        # A client passed in by the caller is theirs to close.
        self._client = client
        self._owns_client = client is None

        # ready_state and last_event_id are written by the worker and polled by anyone.
        self._lock = threading.Lock()
        self._ready_state = ReadyState.CONNECTING
        self._last_event_id = ""

        if buffer_size is None:
            buffer_size = settings.EVENT_BUFFER_SIZE
        self._send_stream, self._receive_stream = anyio.create_memory_object_stream(buffer_size)
        self._task: asyncio.Task | None = None
        # Validated first response, owned by the worker once it starts running.
        self._first_response: httpx.Response | None = None

        self.stats = make_client_stats()

    @classmethod
    async def open(cls, url: str, **kwargs) -> "EventSource":
        """
        Creates an EventSource and performs its first connection attempt.
        Raises ContentTypeError / ResponseStatusError if the server refuses to stream;
        the error's `event_source` is the (already CLOSED) source.
        """
        source = cls(url, **kwargs)
        await source.connect()
        return source

    @property
    def url(self) -> str:
        return self._url

    @property
    def ready_state(self) -> ReadyState:
        with self._lock:
            return self._ready_state

    @property
    def last_event_id(self) -> str:
        with self._lock:
            return self._last_event_id

    @property
    def retry(self) -> int:
        """Current reconnect delay in milliseconds."""
        return self._decoder.retry

    def events(self) -> MemoryObjectReceiveStream:
        """The receive side of the event hand-off; ends once the source is closed."""
        return self._receive_stream

    def __aiter__(self) -> AsyncIterator[MessageEvent]:
        return self._receive_stream.__aiter__()

    async def __aenter__(self) -> "EventSource":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._task is not None or self.ready_state is not ReadyState.CONNECTING:
            raise RuntimeError(f"EventSource for {self._url} was already started")
        if self._client is None:
            timeout = httpx.Timeout(settings.CONNECT_TIMEOUT_S, read=settings.READ_TIMEOUT_S)
            self._client = httpx.AsyncClient(timeout=timeout)

        response = None
        try:
            response = await self._request()
        except PermanentConnectionError as e:
            logger.warning(f"EventSource {self._url} rejected: {e}")
            e.event_source = self
            await self._finalize()
            raise
        except httpx.HTTPError as e:
            # Same as a dropped stream: the worker retries after the retry interval.
            logger.warning(f"EventSource {self._url} first connection attempt failed: {e!r}")
        except asyncio.CancelledError:
            await self._finalize()
            raise

        if response is not None:
            self._set_state(ReadyState.OPEN)
            logger.info(f"EventSource {self._url} open")
        self._first_response = response
        self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        """Stops the source for good. Closing twice is a no-op."""
        with self._lock:
            if self._ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
                return
            self._ready_state = ReadyState.CLOSING
        logger.info(f"Closing EventSource {self._url}")

        if self._task is None:
            await self._finalize()
            return
        self._task.cancel()
        await asyncio.wait({self._task}, timeout=settings.CLOSE_TIMEOUT_S)
        # A task cancelled before its first step never enters _run, so nothing tore down.
        if self._task.done() and self.ready_state is not ReadyState.CLOSED:
            if self._first_response is not None:
                await self._first_response.aclose()
                self._first_response = None
            await self._finalize()

    def _set_state(self, state: ReadyState) -> None:
        with self._lock:
            # CLOSING only ever moves on to CLOSED, and CLOSED is final.
            if self._ready_state is ReadyState.CLOSED:
                return
            if self._ready_state is ReadyState.CLOSING and state is not ReadyState.CLOSED:
                return
            self._ready_state = state

    def _closing(self) -> bool:
        return self.ready_state in (ReadyState.CLOSING, ReadyState.CLOSED)

    async def _request(self) -> httpx.Response:
        headers = {"Accept": SSE_MEDIA_TYPE, "Cache-Control": "no-cache", **self._headers}
        last_event_id = self.last_event_id
        if last_event_id:
            headers["Last-Event-ID"] = last_event_id

        request = self._client.build_request("GET", self._url, headers=headers)
        response = await self._client.send(request, stream=True)
        try:
            check_response(response)
        except PermanentConnectionError:
            await response.aclose()
            raise
        return response

    async def _run(self) -> None:
        response, self._first_response = self._first_response, None
        try:
            while not self._closing():
                if response is not None:
                    await self._consume(response)
                    response = None
                if self._closing():
                    break

                # Captured now: a `retry:` seen later only affects the next wait.
                delay_ms = self._decoder.retry
                self._set_state(ReadyState.CONNECTING)
                logger.warning(f"EventSource {self._url} disconnected, reconnecting in {delay_ms}ms")
                await asyncio.sleep(delay_ms / 1000)

                self.stats["reconnect_count"] += 1
                try:
                    response = await self._request()
                except httpx.HTTPError as e:
                    logger.warning(f"EventSource {self._url} reconnect failed: {e!r}")
        except PermanentConnectionError as e:
            logger.warning(f"EventSource {self._url} rejected on reconnect, giving up: {e}")
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.info(f"EventSource {self._url} consumer went away, stopping")
        finally:
            if response is not None:
                await response.aclose()
            await self._finalize()

    async def _consume(self, response: httpx.Response) -> None:
        # Already OPEN for the first response; reconnects come back from CONNECTING.
        if self.ready_state is not ReadyState.OPEN:
            self._set_state(ReadyState.OPEN)
            logger.info(f"EventSource {self._url} open")
        self.stats["connected_at"] = utc_now_iso()

        try:
            async with aclosing(self._decoder.decode(self._count_bytes(response.aiter_bytes()))) as events:
                async for event in events:
                    # Committed before the hand-off, so a consumer holding the event
                    # always sees a last_event_id at least this recent.
                    with self._lock:
                        self._last_event_id = self._decoder.last_event_id
                    message = MessageEvent(
                        id=event.id,
                        name=event.name,
                        data=event.data,
                        last_event_id=self._decoder.last_event_id,
                        origin=self._url,
                    )
                    await self._send_stream.send(message)
                    self.stats["events_received"] += 1
                    self.stats["last_event_at"] = utc_now_iso()
        except (httpx.HTTPError, StreamError) as e:
            logger.warning(f"EventSource {self._url} stream failed: {e!r}")
        finally:
            await response.aclose()

    async def _count_bytes(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        async for chunk in chunks:
            self.stats["bytes_received"] += len(chunk)
            yield chunk

    async def _finalize(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        # State first: a consumer seeing the stream end can trust ready_state right away.
        self._set_state(ReadyState.CLOSED)
        self._send_stream.close()
        logger.info(f"EventSource {self._url} closed")


async def connect(url: str, **kwargs) -> EventSource:
    """Shorthand for `EventSource.open(url, **kwargs)`."""
    return await EventSource.open(url, **kwargs)
