"""
pytest configuration and fixtures.
"""

import asyncio
import socket
import threading
import time
from typing import Callable, Dict, Generator, List, Optional, Tuple

import pytest

from httptestserver import ServerConfig, TestHTTPServer
from httptestserver.core import ConnectionRegistry, DelayScheduler, HTTPConnection
from httptestserver.http import Router


# =============================================================================
# RAW REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/head HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a form body."""
    body = b"param1=value1&param2=value2"
    return (
        b"POST /echo/body HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


def parse_response(raw: bytes) -> Tuple[str, Dict[str, str], bytes]:
    """Split a raw response into (status line, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body


def read_all(sock: socket.socket) -> bytes:
    """Read until the server closes the connection."""
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def http_exchange(address: Tuple[str, int], raw: bytes, timeout: float = 10.0) -> bytes:
    """Send one raw request and return the raw response."""
    with socket.create_connection(address, timeout=timeout) as sock:
        sock.sendall(raw)
        return read_all(sock)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


# =============================================================================
# SERVER IN A BACKGROUND THREAD
# =============================================================================

class ThreadedServer:
    """Runs a TestHTTPServer on its own event loop in a daemon thread."""

    def __init__(self, server: TestHTTPServer):
        self.server = server
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def start(self):
        ready = threading.Event()

        def run():
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)
            try:
                self.loop.run_until_complete(self.server.start())
            except BaseException as e:
                self._error = e
                ready.set()
                return
            ready.set()
            self.loop.run_forever()
            self.loop.run_until_complete(self.server.stop())
            self.loop.close()

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()

        if not ready.wait(5.0):
            raise RuntimeError("Server failed to start")
        if self._error is not None:
            raise self._error

    def call(self, fn: Callable, *args):
        """Run fn on the server's loop thread and return its result."""
        async def invoke():
            return fn(*args)
        return asyncio.run_coroutine_threadsafe(invoke(), self.loop).result(timeout=5.0)

    def live_connections(self) -> int:
        return self.call(len, self.server.registry)

    def pending_delays(self) -> int:
        return self.call(len, self.server.scheduler)

    def stop(self):
        if self.loop is not None and self.loop.is_running():
            self.loop.call_soon_threadsafe(self.loop.stop)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def make_server() -> Generator[Callable[..., ThreadedServer], None, None]:
    """Factory: start a server with config overrides, stopped at teardown."""
    started: List[ThreadedServer] = []

    def factory(custom_handler=None, **overrides) -> ThreadedServer:
        overrides.setdefault("host", "127.0.0.1")
        overrides.setdefault("port", 0)
        overrides.setdefault("timeout", 10.0)
        overrides.setdefault("log_level", "WARNING")
        config = ServerConfig(**overrides)
        threaded = ThreadedServer(TestHTTPServer(config, custom_handler=custom_handler))
        threaded.start()
        started.append(threaded)
        return threaded

    yield factory

    for threaded in started:
        threaded.stop()


@pytest.fixture
def test_server(make_server) -> ThreadedServer:
    """A running server with default settings."""
    return make_server()


# =============================================================================
# CONNECTION UNIT-TEST HARNESS
# =============================================================================

class FakeSocket:
    def __init__(self, fd: int):
        self._fd = fd

    def fileno(self) -> int:
        return self._fd


class FakeTransport(asyncio.Transport):
    """Records writes and closes instead of touching a socket."""

    def __init__(self, fd: int = 7, peer: Tuple[str, int] = ("127.0.0.1", 50000)):
        super().__init__(extra={"peername": peer, "socket": FakeSocket(fd)})
        self.written = bytearray()
        self.close_calls = 0

    def write(self, data):
        if self.close_calls:
            raise RuntimeError("write after close")
        self.written.extend(data)

    def close(self):
        self.close_calls += 1

    def is_closing(self) -> bool:
        return self.close_calls > 0


class ConnectionHarness:
    """An event loop plus the shared components a connection needs."""

    def __init__(self, maxconn: int = 10, timeout: float = 10.0, custom_handler=None):
        self.loop = asyncio.new_event_loop()
        self.registry = ConnectionRegistry(maxconn)
        self.scheduler = DelayScheduler(self.loop)
        self.router = Router(server_name="test-server", custom_handler=custom_handler)
        self.timeout = timeout
        self._next_fd = 10

    def connect(self) -> Tuple[HTTPConnection, FakeTransport]:
        conn = HTTPConnection(
            registry=self.registry,
            scheduler=self.scheduler,
            router=self.router,
            timeout=self.timeout,
            loop=self.loop,
        )
        transport = FakeTransport(fd=self._next_fd)
        self._next_fd += 1
        conn.connection_made(transport)
        return conn, transport

    def advance(self, seconds: float):
        """Let the loop run timers for `seconds` of real time."""
        self.loop.run_until_complete(asyncio.sleep(seconds))

    def close(self):
        self.loop.close()


@pytest.fixture
def harness() -> Generator[ConnectionHarness, None, None]:
    h = ConnectionHarness()
    yield h
    h.close()


@pytest.fixture
def make_harness() -> Generator[Callable[..., ConnectionHarness], None, None]:
    created: List[ConnectionHarness] = []

    def factory(**kwargs) -> ConnectionHarness:
        h = ConnectionHarness(**kwargs)
        created.append(h)
        return h

    yield factory

    for h in created:
        h.close()
