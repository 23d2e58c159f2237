"""
=============================================================================
LISTENER
=============================================================================

Binds the listening socket and turns every accepted socket into an
HTTPConnection. The event loop does the accepting; the listener only
supplies the protocol factory and reports the bound address.

    start()
        │
        ├──► loop.create_server(factory, host, port)
        │        │
        │        ├── bind()    port 0 = let the OS pick
        │        └── listen()
        │
        └──► address = sockets[0].getsockname()

    for each accepted socket (inside the loop):
        factory() ──► HTTPConnection ──► connection_made() ──► admission

Failing to bind is the one startup-fatal condition; the OSError is logged
and re-raised to whoever called start().
=============================================================================
"""

import asyncio
import logging
from typing import Optional, Tuple

from ..config import ServerConfig
from ..http.router import Router
from .connection import HTTPConnection
from .registry import ConnectionRegistry
from .scheduler import DelayScheduler


logger = logging.getLogger(__name__)


class Listener:
    """
    Owns the asyncio server object for one TestHTTPServer.

    The registry, scheduler and router are shared by every connection this
    listener creates; they belong to the server instance, not the process.
    """

    def __init__(
        self,
        config: ServerConfig,
        registry: ConnectionRegistry,
        scheduler: DelayScheduler,
        router: Router,
    ):
        self.config = config
        self.registry = registry
        self.scheduler = scheduler
        self.router = router

        self._server: Optional[asyncio.AbstractServer] = None
        self._address: Optional[Tuple[str, int]] = None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """The bound (host, port), or None before start()."""
        return self._address

    def _create_connection(self) -> HTTPConnection:
        return HTTPConnection(
            registry=self.registry,
            scheduler=self.scheduler,
            router=self.router,
            timeout=self.config.timeout,
            log_format=self.config.log_format,
        )

    async def start(self) -> Tuple[str, int]:
        """Bind and start accepting. Returns the bound (host, port)."""
        loop = asyncio.get_running_loop()
        try:
            self._server = await loop.create_server(
                self._create_connection,
                host=self.config.host,
                port=self.config.port,
                backlog=self.config.backlog,
                reuse_address=True,
            )
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        host, port = self._server.sockets[0].getsockname()[:2]
        self._address = (host, port)
        logger.info(f"bound to http://{host}:{port}/")
        return self._address

    async def close(self) -> None:
        """
        Stop accepting and tear down every live connection.

        Live connections are closed without a response, the same way an
        idle timeout would close them.
        """
        if self._server is None:
            return

        self._server.close()
        for conn in self.registry:
            conn.close()
        self.scheduler.cancel_all()
        await self._server.wait_closed()
        self._server = None
        logger.info("Listener stopped")
