"""
MODULE OVERVIEW:
This module defines the value types shared by the decoder and the EventSource, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
An SSE record decodes into an `Event`: an id, a name and a binary payload.
Events are frozen, so once the decoder hands one over nobody can mutate it.
The EventSource wraps each decoded event into a `MessageEvent`, which additionally
records the connection's last event id at delivery time and the URL it came from,
just like the browser's MessageEvent exposes `lastEventId` and `origin`.
"""
from enum import IntEnum
from pydantic import BaseModel, ConfigDict


# WHAT IS HAPPENING HERE:
# The numeric values are part of the protocol surface (the browser's readyState attribute),
# so they are pinned explicitly instead of relying on auto().
class ReadyState(IntEnum):
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3

    def __str__(self) -> str:
        return self.name.capitalize()


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    data: bytes = b""

    @property
    def type(self) -> str:
        """The event type a listener dispatches on; unnamed events are 'message'."""
        return self.name or "message"

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")


class MessageEvent(Event):
    last_event_id: str = ""
    origin: str = ""
