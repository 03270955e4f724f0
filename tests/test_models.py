"""Tests for the shared value types."""

import pytest
from pydantic import ValidationError

from sse_academy.shared.models import Event, MessageEvent, ReadyState


class TestReadyState:
    @pytest.mark.parametrize(
        "number, state",
        [(0, ReadyState.CONNECTING), (1, ReadyState.OPEN), (2, ReadyState.CLOSING), (3, ReadyState.CLOSED)],
    )
    def test_numeric_encoding(self, number, state):
        assert ReadyState(number) is state
        assert int(state) == number

    def test_string_names(self):
        assert [str(s) for s in ReadyState] == ["Connecting", "Open", "Closing", "Closed"]


class TestEvent:
    def test_defaults(self):
        event = Event()
        assert (event.id, event.name, event.data) == ("", "", b"")
        assert event.type == "message"

    def test_is_immutable(self):
        event = Event(id="1", data=b"x")
        with pytest.raises(ValidationError):
            event.data = b"y"

    def test_named_event_type(self):
        assert Event(name="tick").type == "tick"

    def test_message_event_is_an_event(self):
        message = MessageEvent(id="1", data=b"x", last_event_id="1", origin="http://example.com/events")
        assert isinstance(message, Event)
        assert message.text == "x"
        assert message.origin == "http://example.com/events"
