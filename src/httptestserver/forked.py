"""
=============================================================================
FORKED MODE
=============================================================================

Sometimes the code under test blocks, and blocking code cannot share an
event loop with the server it talks to. ForkedServer runs a complete
TestHTTPServer in a child process:

    PARENT                                   CHILD
      │                                        │
      │  Process(target=_serve_in_child) ────► │
      │                                        ├── TestHTTPServer.start()
      │                                        │   (binds, port 0 → real port)
      │ ◄──────────── pipe: (host, port) ───── │
      │                                        │
      │  ... blocking client code ...          ├── serve until killed
      │                                        │
      │  stop(): kill ───────────────────────► ✝

The server inside the child behaves exactly as it does in the parent; only
the address travels back over the pipe.
=============================================================================
"""

import asyncio
import logging
import multiprocessing
from multiprocessing.connection import Connection as PipeConnection
from typing import Optional, Tuple

from .config import ServerConfig
from .errors import ServerError
from .http.router import CustomHandler
from .server import TestHTTPServer, configure_logging, scrub_proxy_environment


logger = logging.getLogger(__name__)


def _serve_in_child(
    config: ServerConfig,
    custom_handler: Optional[CustomHandler],
    pipe: PipeConnection,
) -> None:
    """Child process entry point. Must stay importable for spawn."""
    configure_logging(config.log_level)
    server = TestHTTPServer(config, custom_handler)

    async def main() -> None:
        address = await server.start()
        pipe.send(address)
        pipe.close()
        await server.serve_forever()

    asyncio.run(main())


class ForkedServer:
    """
    A TestHTTPServer running in a child process.

    Usage:
        with ForkedServer(ServerConfig(timeout=5)) as server:
            urllib.request.urlopen(server.uri + "repeat/3/ab").read()

    custom_handler must be picklable (a module-level function) on
    platforms that spawn rather than fork.
    """

    __test__ = False

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        custom_handler: Optional[CustomHandler] = None,
        start_timeout: float = 10.0,
    ):
        self.config = config or ServerConfig()
        self.config.validate()
        self.custom_handler = custom_handler
        self.start_timeout = start_timeout

        if self.config.disable_proxy:
            scrub_proxy_environment()

        self._process: Optional[multiprocessing.Process] = None
        self._address: Optional[Tuple[str, int]] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.is_alive()

    @property
    def address(self) -> Tuple[str, int]:
        if self._address is None:
            raise RuntimeError("forked server is not started")
        return self._address

    @property
    def uri(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}/"

    def start(self) -> Tuple[str, int]:
        """Spawn the child and wait until it reports its bound address."""
        if self._process is not None:
            return self.address

        reader, writer = multiprocessing.Pipe(duplex=False)
        self._process = multiprocessing.Process(
            target=_serve_in_child,
            args=(self.config, self.custom_handler, writer),
            daemon=True,
        )
        self._process.start()
        writer.close()

        try:
            if not reader.poll(self.start_timeout):
                raise ServerError(f"forked server did not bind within {self.start_timeout:g}s")
            try:
                host, port = reader.recv()
            except EOFError:
                raise ServerError("forked server exited before binding") from None
        except ServerError:
            self.stop()
            raise
        finally:
            reader.close()

        self._address = (host, port)
        logger.info(f"forked as {self._process.pid} and bound to {self.uri}")
        return self._address

    def stop(self) -> None:
        """Kill the child. Safe to call more than once."""
        if self._process is None:
            return

        pid = self._process.pid
        if self._process.is_alive():
            self._process.kill()
        self._process.join(timeout=5.0)
        self._process = None
        self._address = None
        logger.info(f"killed {pid}")

    def __enter__(self) -> "ForkedServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.stop()
        return False
