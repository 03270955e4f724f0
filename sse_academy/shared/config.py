"""
MODULE OVERVIEW:
This module provides client-wide configuration using Pydantic Settings.
Where it fits: every EventSource reads its defaults from here unless the caller overrides them.

WHAT IS HAPPENING HERE:
We declare the protocol timings in one place. The SSE protocol lets the server
dictate the reconnect delay with a `retry:` field, but until it does we need a
sane default. Timeouts for the initial connect are separated from the read timeout,
because an SSE stream is long-lived: a read timeout of None means "wait forever for the
next byte", which is exactly what a quiet stream needs.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # Reconnection
    DEFAULT_RETRY_MS: int = 3000

    # Transport
    CONNECT_TIMEOUT_S: float = 10.0
    READ_TIMEOUT_S: float | None = None

    # Decoder (0 = grow the line buffer as needed)
    MAX_LINE_SIZE: int = 0

    # Consumer handoff (0 = rendezvous, producer waits for the consumer)
    EVENT_BUFFER_SIZE: int = 0

    # Upper bound for close() waiting on the background worker
    CLOSE_TIMEOUT_S: float = 5.0

    class Config:
        env_prefix = "SSE_"
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
