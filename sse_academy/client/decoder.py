"""
MODULE OVERVIEW:
The SSE stream decoder: lines in, events out.

WHAT IS HAPPENING HERE:
This is what the browser's EventSource does under the hood. Each line is one of:
  - empty           -> the record is complete, dispatch it
  - ":comment"      -> ignored
  - "field: value"  -> update the pending record (one leading space of the value is dropped)
  - "field"         -> same field with an empty value
A record only becomes an Event if it carried at least one `data` line.
The id is sticky: it stays attached to every following event until a new `id:` line
replaces it (an empty `id:` line clears it). The retry interval is sticky too, and
survives reconnects, which is why a single Decoder lives as long as its EventSource.
"""
from typing import AsyncIterable, AsyncIterator

from loguru import logger

from sse_academy.client.line_scanner import LineScanner
from sse_academy.shared.config import settings
from sse_academy.shared.errors import StreamEncodingError
from sse_academy.shared.models import Event

UTF8_BOM = b"\xef\xbb\xbf"


class Decoder:
    def __init__(self, retry: int | None = None, max_line_size: int | None = None):
        # Milliseconds to wait before reconnecting; servers change it with `retry:`.
        self.retry = settings.DEFAULT_RETRY_MS if retry is None else retry
        self.max_line_size = settings.MAX_LINE_SIZE if max_line_size is None else max_line_size
        # Id of the last dispatched event.
        self.last_event_id = ""

        self._id = ""
        self._name = ""
        self._data: list[bytes] = []

    async def decode(self, stream: AsyncIterable[bytes]) -> AsyncIterator[Event]:
        """
        Yields one Event per completed record of `stream`.
        Ends with the stream; a record left unterminated at that point is dropped.
        Raises StreamEncodingError on invalid UTF-8 and LineTooLong in fixed-capacity mode.
        """
        # A new stream never continues the half-received record of a previous one,
        # including an id that was never dispatched.
        self._id = self.last_event_id
        self._name = ""
        self._data = []

        first = True
        async for line in LineScanner(stream, self.max_line_size):
            if first:
                first = False
                if line.startswith(UTF8_BOM):
                    line = line[len(UTF8_BOM):]
            event = self._process_line(line)
            if event is not None:
                yield event

    def _process_line(self, line: bytes) -> Event | None:
        try:
            line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StreamEncodingError(f"Stream is not valid UTF-8: {e}") from e

        if not line:
            return self._dispatch()
        if line.startswith(b":"):
            return None

        field, _, value = line.partition(b":")
        if value.startswith(b" "):
            value = value[1:]

        if field == b"data":
            self._data.append(value)
        elif field == b"id":
            if b"\0" not in value:
                self._id = value.decode("utf-8")
        elif field == b"event":
            self._name = value.decode("utf-8")
        elif field == b"retry":
            # bytes.isdigit() is ASCII only, so "-1", "1.5" and "" are all ignored.
            if value.isdigit():
                self.retry = int(value)
                logger.debug(f"Retry interval set to {self.retry}ms")
        return None

    def _dispatch(self) -> Event | None:
        event = None
        if self._data:
            event = Event(id=self._id, name=self._name, data=b"\n".join(self._data))
            self.last_event_id = self._id
        self._data = []
        self._name = ""
        return event


def decode(stream: AsyncIterable[bytes], **kwargs) -> AsyncIterator[Event]:
    """Decodes `stream` with a fresh Decoder; keyword arguments go to `Decoder`."""
    return Decoder(**kwargs).decode(stream)
