"""
=============================================================================
CONNECTION STATE MACHINE
=============================================================================

Each accepted socket gets one HTTPConnection. It is an asyncio.Protocol:
the event loop calls connection_made() once, data_received() whenever
bytes arrive, and connection_lost() at the end. Bytes arrive in arbitrary
fragments, so the connection keeps a buffer and an explicit state, and
every callback advances the state as far as the buffered bytes allow.

=============================================================================
STATES
=============================================================================

    ┌────────────────────┐
    │ NEW                │  connection_made() → admission check
    └─────────┬──────────┘
              ▼
    ┌────────────────────┐  malformed line
    │ AWAIT_REQUEST_LINE │ ─────────────────────────────┐
    └─────────┬──────────┘                              │
              ▼                                         │
    ┌────────────────────┐  no Content-Length           │
    │ AWAIT_HEADERS      │ ───────────────┐             │
    └─────────┬──────────┘                │             │
              ▼                           │             │
    ┌────────────────────┐                │             │
    │ AWAIT_BODY         │                │             │
    └─────────┬──────────┘                │             │
              ▼                           ▼             │
    ┌────────────────────────────────────────┐          │
    │ DISPATCH            router.dispatch()  │          │
    └───────┬───────────────────────┬────────┘          │
            │ Reply                 │ Deferred          │
            ▼                       ▼                   │
    ┌──────────────┐     ┌────────────────────┐         │
    │ RESPONDING   │ ◄── │ AWAITING_DELAY     │         │
    └──────┬───────┘     └────────────────────┘         │
           │   ▲                                        │
           │   └────────────────── 400 Bad Request ─────┘
           ▼
    ┌──────────────┐
    │ CLOSED       │  also reachable from any state on idle timeout,
    └──────────────┘  peer EOF or transport error

No state is entered twice. close() is the only way into CLOSED, and it is
safe to call any number of times: the first call deregisters the
connection, cancels its idle timer and its delay timer, and closes the
transport; later calls do nothing.

=============================================================================
IDLE SUPERVISOR
=============================================================================

The idle timer is re-armed on every read and every write. If it expires,
the connection is closed without a response, whatever state it is in.
Bytes arriving after dispatch are dropped but still count as activity.
A /delay/N request with N >= timeout from a silent client is therefore
torn down before its response is due; the delay timer is cancelled with it.
=============================================================================
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from ..access_log import AccessRecord, access_timestamp, log_access
from ..errors import IdleTimeout, IOFailure, MalformedRequestLine, ServerError
from ..http.request import (
    HTTPRequest,
    clean_request_line,
    find_header_end,
    find_line_end,
    parse_request_line,
    scan_content_length,
)
from ..http.response import HTTPResponse
from ..http.router import Deferred, Router
from .registry import ConnectionRegistry
from .scheduler import DelayScheduler


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    AWAIT_REQUEST_LINE = "await_request_line"
    AWAIT_HEADERS = "await_headers"
    AWAIT_BODY = "await_body"
    DISPATCH = "dispatch"
    RESPONDING = "responding"
    AWAITING_DELAY = "awaiting_delay"
    CLOSED = "closed"


# States in which incoming bytes still belong to the request
READING_STATES = (
    ConnectionState.AWAIT_REQUEST_LINE,
    ConnectionState.AWAIT_HEADERS,
    ConnectionState.AWAIT_BODY,
)


class HTTPConnection(asyncio.Protocol):
    """
    One client connection, from accept to close.

    Attributes:
        conn_id: Socket descriptor of the accepted socket; the registry
            and the delay scheduler key on it.
        state: Current ConnectionState.
        request_line: Raw request line, trailing whitespace trimmed.
        header_block: Raw header bytes including the closing blank line.
        content_length: Declared body length, or None.
        body: Received body bytes.
        close_reason: The error that forced teardown, if any.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        scheduler: DelayScheduler,
        router: Router,
        timeout: float = 60.0,
        log_format: str = "text",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.router = router
        self.timeout = timeout
        self.log_format = log_format
        self._loop = loop

        self.conn_id: int = -1
        self.state = ConnectionState.NEW
        self.transport: Optional[asyncio.Transport] = None
        self.address: Optional[tuple] = None
        self.created_at = time.monotonic()

        self.request_line = b""
        self.header_block = b""
        self.content_length: Optional[int] = None
        self.body = b""
        self.request: Optional[HTTPRequest] = None
        self.close_reason: Optional[ServerError] = None

        self._buffer = bytearray()
        self._method = ""
        self._target = ""
        self._version = ""
        self._pending: Optional[HTTPResponse] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        return f"<HTTPConnection id={self.conn_id} state={self.state.value}>"

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else "-"

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    # =========================================================================
    # PROTOCOL CALLBACKS
    # =========================================================================

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport
        self.address = transport.get_extra_info("peername")
        sock = transport.get_extra_info("socket")
        self.conn_id = sock.fileno() if sock is not None else id(self)

        peer = f"{self.address[0]}:{self.address[1]}" if self.address else "unknown peer"

        # ─────────────────────────────────────────────────────────────────
        # ADMISSION CONTROL
        # ─────────────────────────────────────────────────────────────────
        # A refused connection is never registered and never read from.
        # Closing the transport is all the client gets.
        if not self.registry.try_admit(self):
            logger.error(f"deny connection from {peer} (too many connections)")
            self.state = ConnectionState.CLOSED
            transport.close()
            return

        logger.info(f"[{self.conn_id}] new connection from {peer}")
        self.state = ConnectionState.AWAIT_REQUEST_LINE
        self._touch()

    def data_received(self, data: bytes) -> None:
        if self.state is ConnectionState.CLOSED:
            return

        self._touch()
        if self.state not in READING_STATES:
            # Request complete; extra bytes only count as activity
            return

        self._buffer.extend(data)
        self._advance()

    def eof_received(self) -> Optional[bool]:
        logger.debug(f"[{self.conn_id}] peer closed its end")
        self.close()
        return False

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self.close(IOFailure(str(exc)))
        else:
            self.close()

    # =========================================================================
    # PHASES
    # =========================================================================

    def _advance(self) -> None:
        """Move through the read phases as far as the buffer allows."""
        while True:
            if self.state is ConnectionState.AWAIT_REQUEST_LINE:
                end = find_line_end(self._buffer)
                if end < 0:
                    return
                self.request_line = clean_request_line(bytes(self._buffer[:end]))
                del self._buffer[:end]
                logger.debug(f"[{self.conn_id}] request: [{self.request_line.decode('latin-1')}]")

                try:
                    self._method, self._target, self._version = parse_request_line(self.request_line)
                except MalformedRequestLine as e:
                    logger.warning(f"[{self.conn_id}] bad request: {e}")
                    self._respond(self.router.error(e))
                    return
                self.state = ConnectionState.AWAIT_HEADERS

            elif self.state is ConnectionState.AWAIT_HEADERS:
                end = find_header_end(self._buffer)
                if end < 0:
                    return
                self.header_block = bytes(self._buffer[:end])
                del self._buffer[:end]
                logger.debug(f"[{self.conn_id}] got headers")

                self.content_length = scan_content_length(self.header_block)
                if self.content_length is None:
                    self._dispatch()
                    return
                logger.debug(f"[{self.conn_id}] expecting {self.content_length} byte(s) of content")
                self.state = ConnectionState.AWAIT_BODY

            elif self.state is ConnectionState.AWAIT_BODY:
                if len(self._buffer) < self.content_length:
                    return
                self.body = bytes(self._buffer[:self.content_length])
                del self._buffer[:self.content_length]
                self._dispatch()
                return

            else:
                return

    def _dispatch(self) -> None:
        self.state = ConnectionState.DISPATCH
        self.request = HTTPRequest(
            method=self._method,
            target=self._target,
            version=self._version,
            request_line=self.request_line,
            header_block=self.header_block,
            body=self.body,
        )
        logger.debug(f"[{self.conn_id}] sending response to {self._method} ({self._version})")

        outcome = self.router.dispatch(self.request)
        if isinstance(outcome, Deferred):
            self.state = ConnectionState.AWAITING_DELAY
            self._pending = outcome.response
            self.scheduler.schedule(self.conn_id, outcome.seconds, self._on_delay_fired)
        else:
            self._respond(outcome.response)

    def _on_delay_fired(self) -> None:
        if self.state is not ConnectionState.AWAITING_DELAY:
            return
        logger.debug(f"[{self.conn_id}] delayed response")
        response, self._pending = self._pending, None
        self._respond(response)

    def _respond(self, response: HTTPResponse) -> None:
        """Write the whole response, then close."""
        self.state = ConnectionState.RESPONDING
        data = response.to_bytes()

        try:
            self.transport.write(data)
        except (OSError, RuntimeError) as e:
            self.close(IOFailure(f"write failed: {e}"))
            return
        self._touch()

        log_access(
            AccessRecord(
                conn_id=self.conn_id,
                client_ip=self.client_ip,
                request_line=self.request_line.decode("latin-1"),
                status_code=int(response.status),
                content_length=len(response.body),
                duration_ms=(time.monotonic() - self.created_at) * 1000,
                timestamp=access_timestamp(),
            ),
            self.log_format,
        )
        self.close()

    # =========================================================================
    # IDLE SUPERVISOR
    # =========================================================================

    def _touch(self) -> None:
        """Re-arm the idle timer after read or write activity."""
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        self._idle_handle = self.loop.call_later(self.timeout, self._on_idle_timeout)

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        self.close(IdleTimeout(f"no activity for {self.timeout:g}s while {self.state.value}"))

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def close(self, reason: Optional[ServerError] = None) -> None:
        """
        Tear the connection down. Idempotent.

        Releases exactly what this connection owns: its registry slot, its
        idle timer, its delay timer, its transport. Nothing is written.
        """
        if self.state is ConnectionState.CLOSED:
            return

        previous = self.state
        self.state = ConnectionState.CLOSED
        self.close_reason = reason

        self.registry.remove(self.conn_id)

        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

        self.scheduler.cancel(self.conn_id)
        self._pending = None

        if isinstance(reason, IOFailure):
            logger.warning(f"[{self.conn_id}] closing connection after I/O failure: {reason}")
        elif reason is not None:
            logger.debug(f"[{self.conn_id}] closing connection: {reason}")
        else:
            logger.debug(f"[{self.conn_id}] closing connection (was {previous.value})")

        if self.transport is not None:
            self.transport.close()
