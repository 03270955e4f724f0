"""
MODULE OVERVIEW:
The Rich Terminal Dashboard for a live EventSource.

WHAT IS HAPPENING HERE:
We use Rich to build a terminal dashboard. One task drains the EventSource while the
Live display polls its ready state, last event id and counters four times a second.
Watching a reconnect here makes the protocol visible: the state flips to Connecting,
the Last-Event-ID is sent, and the feed resumes where it left off.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
import asyncio

from sse_academy.client.event_source import EventSource
from sse_academy.shared.models import MessageEvent, ReadyState

STATE_COLORS = {
    ReadyState.CONNECTING: "yellow",
    ReadyState.OPEN: "green",
    ReadyState.CLOSING: "red",
    ReadyState.CLOSED: "red",
}


class Visualizer:
    def __init__(self, source: EventSource, feed_size: int = 10):
        self.source = source
        self.recent_events = deque(maxlen=feed_size)
        self.timeline = deque(maxlen=5)
        self._last_state: ReadyState | None = None

    def on_event(self, event: MessageEvent):
        ts = datetime.now().strftime("%H:%M:%S")
        payload = event.data.decode("utf-8", errors="replace")
        payload_str = payload[:40] + "..." if len(payload) > 40 else payload
        self.recent_events.appendleft((ts, event.id, event.type, payload_str))

    def track_state(self):
        state = self.source.ready_state
        if state is not self._last_state:
            self._last_state = state
            ts = datetime.now().strftime("%H:%M:%S")
            self.timeline.appendleft(f"[{ts}] State: {state!s}")

    def generate_layout(self) -> Layout:
        self.track_state()
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline"),
        )

        state = self.source.ready_state
        color = STATE_COLORS[state]
        layout["header"].update(Panel(f"[{color} bold]{self.source.url} | State: {state!s}[/]", style=color))

        table = Table(title="Live Event Feed", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Id", style="blue")
        table.add_column("Type", style="magenta")
        table.add_column("Data", style="green")
        for e in self.recent_events:
            table.add_row(*e)
        layout["left"].update(Panel(table, title="Feed"))

        stats = self.source.stats
        stats_text = (
            f"Events Received: {stats['events_received']}\n"
            f"Bytes Received: {stats['bytes_received']}\n"
            f"Reconnects: {stats['reconnect_count']}\n"
            f"Last Event ID: {self.source.last_event_id or '-'}\n"
            f"Retry: {self.source.retry}ms"
        )
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))
        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))
        return layout

    async def consume(self):
        async for event in self.source:
            self.on_event(event)

    async def run(self, duration_s: float):
        consumer = asyncio.create_task(self.consume())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_s

        with Live(self.generate_layout(), refresh_per_second=4) as live:
            while not consumer.done() and loop.time() < deadline:
                live.update(self.generate_layout())
                await asyncio.sleep(0.25)
            await self.source.close()
            await consumer
            live.update(self.generate_layout())
