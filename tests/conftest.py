"""
Pytest configuration and shared fixtures for the SSE client tests.

The `sse_server` fixture runs a real HTTP server in a background thread. Tests drive
it through commands (send, send_and_close, close_active_request) that the handler of
the currently active request picks up, which makes drops and reconnects scriptable.
"""

import queue
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

SSE_CONTENT_TYPE = "text/event-stream"
_CLOSE = object()


def format_event(data: str | None = None, id: str | None = None, name: str | None = None, retry: int | None = None) -> str:
    """Serializes one SSE record, terminated by a blank line."""
    lines = []
    if id is not None:
        lines.append(f"id: {id}")
    if name is not None:
        lines.append(f"event: {name}")
    if retry is not None:
        lines.append(f"retry: {retry}")
    if data is not None:
        lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


class SSETestServer:
    """
    A scriptable event stream server.

    Attributes:
        content_type: Content-Type sent with every accepted stream.
        max_requests: Requests beyond this count are refused with a 503.
        request_headers: Headers (case-insensitive) of every request received, in order.
    """

    def __init__(self):
        self.content_type = SSE_CONTENT_TYPE
        self.max_requests = 1
        self.request_headers: list = []
        self._commands: queue.Queue = queue.Queue()
        self._lock = threading.Lock()

        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                with server._lock:
                    server.request_headers.append(self.headers)
                    refused = len(server.request_headers) > server.max_requests

                if refused:
                    self.send_response(503)
                    self.send_header("Content-Type", "text/plain; charset=utf-8")
                    self.end_headers()
                    self.wfile.write(b"no more requests\n")
                    return

                self.send_response(200)
                self.send_header("Content-Type", server.content_type)
                self.send_header("Cache-Control", "no-cache")
                self.end_headers()
                self.wfile.flush()

                while True:
                    command = server._commands.get()
                    if command is _CLOSE:
                        return
                    try:
                        self.wfile.write(command)
                        self.wfile.flush()
                    except OSError:
                        return

            def log_message(self, format, *args):
                pass

        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}/events"

    @property
    def request_count(self) -> int:
        with self._lock:
            return len(self.request_headers)

    def start(self):
        self._thread.start()

    def send_raw(self, payload: bytes | str):
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        self._commands.put(payload)

    def send(self, data: str | None = None, id: str | None = None, name: str | None = None):
        self.send_raw(format_event(data=data, id=id, name=name))

    def send_retry(self, retry_ms: int):
        self.send_raw(f"retry: {retry_ms}\n\n")

    def close_active_request(self):
        self._commands.put(_CLOSE)

    def send_and_close(self, data: str | None = None, id: str | None = None, name: str | None = None):
        self.send(data=data, id=id, name=name)
        self.close_active_request()

    def stop(self):
        self._httpd.shutdown()
        self._httpd.server_close()


@pytest.fixture
def sse_server():
    server = SSETestServer()
    server.start()
    yield server
    # Release a handler still parked on the command queue.
    server.close_active_request()
    server.stop()


@pytest.fixture
def unused_url() -> str:
    """A URL on a local port nobody listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/events"
