from sse_academy.client.decoder import Decoder, decode
from sse_academy.client.event_source import EventSource, connect
from sse_academy.client.line_scanner import LineScanner
from sse_academy.shared.errors import (
    ContentTypeError,
    EventSourceError,
    LineTooLong,
    PermanentConnectionError,
    ResponseStatusError,
    StreamEncodingError,
    StreamError,
)
from sse_academy.shared.models import Event, MessageEvent, ReadyState

__all__ = [
    "ContentTypeError",
    "Decoder",
    "Event",
    "EventSource",
    "EventSourceError",
    "LineScanner",
    "LineTooLong",
    "MessageEvent",
    "PermanentConnectionError",
    "ReadyState",
    "ResponseStatusError",
    "StreamEncodingError",
    "StreamError",
    "connect",
    "decode",
]
