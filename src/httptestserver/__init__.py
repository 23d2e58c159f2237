"""
=============================================================================
HTTPTESTSERVER - Deterministic HTTP/1.0 Endpoints for Testing HTTP Clients
=============================================================================

A small, non-forking HTTP server that runs on an asyncio event loop and
answers a fixed set of synthetic endpoints:

    GET  /repeat/{n}/{rest}   rest repeated n times
    GET  /echo/head           the request line and headers, byte for byte
    POST /echo/body           the request body, byte for byte
    GET  /delay/{n}           "issued <time>", sent n seconds later
    *    anything else        404 Not Found

Every reply is HTTP/1.0 with Connection: close.

=============================================================================
QUICK START
=============================================================================

    from httptestserver import TestHTTPServer

    async def test_client():
        async with TestHTTPServer() as server:
            await my_client.get(server.uri + "repeat/3/ab")   # "ababab"

    # Blocking clients: run the server in a child process
    from httptestserver import ForkedServer

    with ForkedServer() as server:
        requests.get(server.uri + "echo/head")

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .errors import (
    AdmissionRejected,
    HTTPError,
    IdleTimeout,
    IOFailure,
    MalformedRequestLine,
    OversizedBody,
    ServerError,
    UnmatchedRoute,
)
from .http import HTTPRequest, HTTPResponse, HTTPStatus, Router
from .server import TestHTTPServer, configure_logging, scrub_proxy_environment
from .forked import ForkedServer


__all__ = [
    "__version__",
    "ServerConfig",
    "TestHTTPServer",
    "ForkedServer",
    "configure_logging",
    "scrub_proxy_environment",
    "HTTPRequest",
    "HTTPResponse",
    "HTTPStatus",
    "Router",
    "ServerError",
    "AdmissionRejected",
    "HTTPError",
    "MalformedRequestLine",
    "OversizedBody",
    "UnmatchedRoute",
    "IdleTimeout",
    "IOFailure",
]
