"""
=============================================================================
HTTP/1.0 RESPONSE
=============================================================================

Every reply this server sends has the same shape:

    HTTP/1.0 200 OK\r\n                          ← always HTTP/1.0
    Connection: close\r\n                        ← never kept alive
    Content-Type: text/plain\r\n
    Server: httptestserver/1.0.0 asyncio Python/3.12.3 (linux)\r\n
    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n
    Content-Length: 6\r\n                        ← added by to_bytes()
    \r\n
    ababab

The protocol token is downgraded to 1.0 whatever the client asked for, so
clients must not expect persistent connections or chunked bodies.
=============================================================================
"""

import platform
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from .. import __version__
from .status_codes import HTTPStatus, reason_phrase


PROTOCOL = "HTTP/1.0"


def server_signature() -> str:
    """
    Identify the library, the event loop and the runtime, plus the OS.

    Example: "httptestserver/1.0.0 asyncio Python/3.12.3 (linux)"
    """
    return (
        f"httptestserver/{__version__} asyncio "
        f"Python/{platform.python_version()} ({sys.platform})"
    )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT. Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


@dataclass
class HTTPResponse:
    """
    An HTTP/1.0 response waiting to be written.

    Built by the router, optionally touched by a custom handler, and
    serialized exactly once by the connection that owns it.

        Router builds          to_bytes()             transport.write()
        HTTPResponse  ─────►   serializes   ─────►    raw bytes, then close
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)  # insertion ordered
    body: bytes = b""
    reason: Optional[str] = None  # None = conventional phrase for status
    version: str = PROTOCOL

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.0 404 Not Found"
        """
        reason = self.reason if self.reason is not None else reason_phrase(self.status)
        return f"{self.version} {int(self.status)} {reason}"

    def set_status(self, status: int, reason: Optional[str] = None) -> "HTTPResponse":
        """Change the status code (and optionally the reason phrase)."""
        self.status = status
        self.reason = reason
        return self

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, keeping its original position if already present."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = bytes(body)
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for the wire.

        Content-Length is appended when the headers do not carry one, so
        the client does not have to rely on the connection close alone.
        """
        response_headers = dict(self.headers)
        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        # latin-1: header values are opaque octets in HTTP/1.0
        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + self.body


def new_response(server_name: Optional[str] = None) -> HTTPResponse:
    """
    A fresh 200 response carrying the fixed header set.

    The Date header is stamped now; a deferred response therefore carries
    the time the request was dispatched, not the time it was sent.
    """
    return HTTPResponse(
        status=HTTPStatus.OK,
        headers={
            "Connection": "close",
            "Content-Type": "text/plain",
            "Server": server_name or server_signature(),
            "Date": format_http_date(datetime.now(timezone.utc)),
        },
    )


def error_response(status: HTTPStatus, server_name: Optional[str] = None) -> HTTPResponse:
    """A response whose body is its own reason phrase, e.g. "Not Found"."""
    return new_response(server_name).set_status(status).set_body(status.phrase)
