"""
CLI entrypoint for the SSE Connection Academy client.
"""
import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from sse_academy.client.decoder import Decoder
from sse_academy.client.event_source import EventSource
from sse_academy.client.visualizer import Visualizer
from sse_academy.shared.config import settings
from sse_academy.shared.errors import PermanentConnectionError

app = typer.Typer(help="SSE Connection Academy CLI")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def _print_events(source: EventSource, duration: float) -> None:
    async def consume():
        async for event in source:
            typer.echo(f"id={event.id!r} event={event.type} data={event.data.decode('utf-8', errors='replace')!r}")

    try:
        await asyncio.wait_for(consume(), timeout=duration)
    except asyncio.TimeoutError:
        pass
    finally:
        await source.close()


async def _listen(url: str, duration: float, retry: Optional[int], plain: bool) -> None:
    source = await EventSource.open(url, retry=retry)
    if plain:
        await _print_events(source, duration)
    else:
        await Visualizer(source).run(duration)


@app.command()
def listen(
    url: str = typer.Argument(..., help="URL of the event stream"),
    duration: float = typer.Option(60.0, help="Duration to listen in seconds"),
    retry: Optional[int] = typer.Option(None, help="Initial reconnect delay in milliseconds"),
    plain: bool = typer.Option(False, "--plain", help="Print events line by line instead of the dashboard"),
):
    """Open an EventSource and watch its events."""
    configure_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(_listen(url, duration, retry, plain))
    except PermanentConnectionError as e:
        typer.echo(f"Connection refused by server: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass


async def _decode_file(path: Path) -> None:
    async def chunks():
        with path.open("rb") as f:
            while chunk := f.read(65536):
                yield chunk

    async for event in Decoder().decode(chunks()):
        typer.echo(f"id={event.id!r} event={event.type} data={event.data.decode('utf-8', errors='replace')!r}")


@app.command()
def decode(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding a captured SSE stream")):
    """Decode a captured event stream and print one line per event."""
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(_decode_file(path))


if __name__ == "__main__":
    app()
