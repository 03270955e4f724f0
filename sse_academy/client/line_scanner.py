"""
MODULE OVERVIEW:
Splits a raw SSE byte stream into lines.

WHAT IS HAPPENING HERE:
The SSE grammar accepts three line terminators: CR, LF and CRLF. Network chunks do not
respect line boundaries, so we keep a buffer of the current partial line and only hand out
complete lines. The tricky case is a CRLF split across two chunks: the CR ends the line
immediately, and we remember to swallow a LF if it is the first byte of the next chunk.
"""
import re
from typing import AsyncIterable, AsyncIterator

from sse_academy.shared.errors import LineTooLong

_LINE_END = re.compile(rb"\r\n|\r|\n")


class LineScanner:
    """
    Lazily yields the lines of `stream` with their terminators stripped.

    `max_line_size` > 0 caps the memory a single line may use; a longer line raises
    `LineTooLong`. The default of 0 lets the buffer grow as needed.
    A scanner is bound to one stream and can be iterated once.
    """

    def __init__(self, stream: AsyncIterable[bytes], max_line_size: int = 0):
        self._stream = stream
        self._max_line_size = max_line_size
        self._buffer = bytearray()
        self._skip_lf = False
        self._started = False

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._started:
            raise RuntimeError("LineScanner is bound to a single stream and was already consumed")
        self._started = True
        return self._scan()

    async def _scan(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            if not chunk:
                continue
            if self._skip_lf:
                self._skip_lf = False
                if chunk[:1] == b"\n":
                    chunk = chunk[1:]
            # Everything already buffered is known to hold no terminator.
            start = len(self._buffer)
            self._buffer += chunk
            for line in self._split(start):
                yield line
            if self._max_line_size and len(self._buffer) > self._max_line_size:
                raise LineTooLong(self._max_line_size)

        # An unterminated last line is still a line.
        if self._buffer:
            line = bytes(self._buffer)
            self._buffer.clear()
            yield line

    def _split(self, start: int):
        pos = 0
        while True:
            match = _LINE_END.search(self._buffer, max(pos, start))
            if match is None:
                break
            if self._max_line_size and match.start() - pos > self._max_line_size:
                raise LineTooLong(self._max_line_size)
            yield bytes(self._buffer[pos:match.start()])
            pos = match.end()
            if match.group() == b"\r" and pos == len(self._buffer):
                self._skip_lf = True
        del self._buffer[:pos]
