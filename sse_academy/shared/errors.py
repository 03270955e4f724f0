"""
MODULE OVERVIEW:
The error taxonomy of the SSE client.

WHAT IS HAPPENING HERE:
There are two families. Permanent failures (`ContentTypeError`, `ResponseStatusError`)
mean the server answered, but not with an event stream: retrying would just get the same
answer, so the EventSource gives up and ends in CLOSED. Stream failures (`StreamError`
and its subclasses) happen mid-stream and are treated exactly like a dropped connection:
the EventSource waits for the retry interval and reconnects.
Network failures are not wrapped: they arrive as httpx's own `httpx.HTTPError` family.
"""
from typing import Any


class EventSourceError(Exception):
    """Base class for every error raised by this package."""


class PermanentConnectionError(EventSourceError):
    """The server's answer rules out any further reconnect attempt."""

    def __init__(self, message: str, event_source: Any = None):
        super().__init__(message)
        # Set by the EventSource that hit the error; it is already CLOSED.
        self.event_source = event_source


class ContentTypeError(PermanentConnectionError):
    def __init__(self, content_type: str, event_source: Any = None):
        super().__init__(f"Unexpected content type {content_type!r}, expected 'text/event-stream'", event_source)
        self.content_type = content_type


class ResponseStatusError(PermanentConnectionError):
    def __init__(self, status_code: int, event_source: Any = None):
        super().__init__(f"Unexpected HTTP status {status_code}, expected 200", event_source)
        self.status_code = status_code


class StreamError(EventSourceError):
    """The byte stream could not be decoded; recoverable by reconnecting."""


class StreamEncodingError(StreamError):
    pass


class LineTooLong(StreamError):
    def __init__(self, limit: int):
        super().__init__(f"Line exceeds the {limit} byte limit of the line buffer")
        self.limit = limit
