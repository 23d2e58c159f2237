"""
=============================================================================
TEST HTTP SERVER
=============================================================================

The object a test suite actually holds. It wires the components together
and gives them a lifecycle:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        TestHTTPServer                               │
    │                                                                      │
    │   ServerConfig ──► ConnectionRegistry (maxconn)                     │
    │                ──► DelayScheduler                                   │
    │                ──► Router (server_name, custom_handler)             │
    │                ──► Listener ──► HTTPConnection per socket           │
    └─────────────────────────────────────────────────────────────────────┘

The server is non-forking: it runs inside whatever event loop awaits
start(). Async test code can use it directly:

    async with TestHTTPServer() as server:
        body = await fetch(server.uri + "echo/head")

Blocking client code needs the server somewhere else: another thread with
its own loop (see tests/conftest.py), or another process (ForkedServer).
=============================================================================
"""

import asyncio
import logging
import os
import signal
from typing import MutableMapping, Optional, Tuple

from .config import ServerConfig
from .core import ConnectionRegistry, DelayScheduler, Listener
from .http.router import CustomHandler, Router


logger = logging.getLogger(__name__)


PROXY_ENVIRONMENT = {
    "no_proxy": "localhost,127.0.0.1",
    "http_proxy": "",
    "ftp_proxy": "",
    "all_proxy": "",
}


def scrub_proxy_environment(environ: Optional[MutableMapping[str, str]] = None) -> None:
    """
    Point HTTP clients straight at localhost.

    Sets both spellings of each variable, since clients disagree on which
    one they read.
    """
    if environ is None:
        environ = os.environ
    for name, value in PROXY_ENVIRONMENT.items():
        environ[name] = value
        environ[name.upper()] = value


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger and the httptestserver logger level."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httptestserver").setLevel(numeric)


class TestHTTPServer:
    """
    Non-forking HTTP/1.0 test server.

    Usage:
        server = TestHTTPServer(ServerConfig(maxconn=2, timeout=5))
        host, port = await server.start()
        ...
        await server.stop()

    Args:
        config: Server configuration. Defaults are fine for most tests.
        custom_handler: Optional callable (request, response) -> bool
            consulted before the fixed route table.
    """

    # Keep pytest from collecting this class as a test case
    __test__ = False

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        custom_handler: Optional[CustomHandler] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        if self.config.disable_proxy:
            scrub_proxy_environment()

        self.registry = ConnectionRegistry(self.config.maxconn)
        self.scheduler = DelayScheduler()
        self.router = Router(
            server_name=self.config.server_name,
            custom_handler=custom_handler,
        )
        self._listener = Listener(self.config, self.registry, self.scheduler, self.router)
        self._running = False
        self._stop_requested: Optional[asyncio.Event] = None

    # =========================================================================
    # ADDRESS
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        address = self._listener.address
        if address is None:
            raise RuntimeError("server is not bound yet; await start() first")
        return address

    @property
    def host(self) -> str:
        return self.address[0]

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def uri(self) -> str:
        """URI of the server, with a trailing slash."""
        host, port = self.address
        return f"http://{host}:{port}/"

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> Tuple[str, int]:
        """Bind and start serving in the running loop. Returns (host, port)."""
        if self._running:
            return self.address
        address = await self._listener.start()
        self._running = True
        return address

    async def stop(self) -> None:
        """Stop accepting, close live connections, cancel pending delays."""
        if not self._running:
            return
        self._running = False
        await self._listener.close()

    async def serve_forever(self) -> None:
        """Serve until cancelled or until request_stop() is called."""
        await self.start()
        self._stop_requested = asyncio.Event()
        try:
            await self._stop_requested.wait()
        finally:
            await self.stop()

    def request_stop(self) -> None:
        """Make serve_forever() return. Must be called on the loop thread."""
        if self._stop_requested is not None:
            self._stop_requested.set()

    async def __aenter__(self) -> "TestHTTPServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.stop()
        return False

    def run(self) -> None:
        """
        Serve in a fresh event loop until SIGINT/SIGTERM (blocking).

        For scripts that only need a server running in the foreground.
        """
        configure_logging(self.config.log_level)
        try:
            asyncio.run(self.serve_until_signal())
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

    async def serve_until_signal(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                pass  # Windows, or not the main thread
        await self.serve_forever()

    def _on_signal(self, signum: int) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        self.request_stop()
