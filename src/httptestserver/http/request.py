"""
=============================================================================
HTTP REQUEST FRAMING
=============================================================================

The server never parses a request into a structured header map. It only
needs to find three boundaries in the byte stream:

    GET /echo/head HTTP/1.1\r\n          ← 1. request line ends at first LF
    Host: 127.0.0.1:8080\r\n
    Content-Length: 5\r\n
    \r\n                                 ← 2. header block ends at blank line
    hello                                ← 3. body is Content-Length bytes

Line terminators may be CRLF or a bare LF. The header block is kept
verbatim (terminating blank line included) because /echo/head sends it
back byte for byte; it is only scanned for Content-Length.

    request line    "GET /repeat/3/ab HTTP/1.1"
                     ─┬─ ──────┬────── ────┬───
                      │        │           │
                    method   target     version

Only GET and POST with HTTP/1.0 or HTTP/1.1 are understood. Anything else
is a malformed request line and gets a 400.
=============================================================================
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import MalformedRequestLine


REQUEST_LINE_PATTERN = re.compile(r"^(GET|POST)\s+(.+)\s+(HTTP/1\.[01])$", re.IGNORECASE)

# Two consecutive line terminators: the blank line closing the header block
HEADER_END_PATTERN = re.compile(rb"\r?\n\r?\n")

# Only a field name at the start of a header line counts, not X-Content-Length
CONTENT_LENGTH_PATTERN = re.compile(rb"^Content-Length:\s*(\d+)\b", re.IGNORECASE | re.MULTILINE)


@dataclass(frozen=True)
class HTTPRequest:
    """
    A fully received request.

    Attributes:
        method: "GET" or "POST", upper-cased.
        target: Request target as sent, query string included.
        version: Protocol token as sent by the client.
        request_line: Raw request line, terminator and trailing
            whitespace stripped.
        header_block: Raw header bytes including the closing blank line.
        body: Body bytes (empty without Content-Length).
    """

    method: str
    target: str
    version: str
    request_line: bytes
    header_block: bytes = b""
    body: bytes = b""

    @property
    def head(self) -> bytes:
        """Request line + CRLF + header block, as /echo/head returns it."""
        return self.request_line + b"\r\n" + self.header_block


def find_line_end(buffer: bytes) -> int:
    """
    Index just past the first LF in buffer, or -1 if there is none yet.
    """
    index = buffer.find(b"\n")
    return index + 1 if index >= 0 else -1


def find_header_end(buffer: bytes) -> int:
    """
    Index just past the blank line closing the header block, or -1.

    A buffer that starts with a terminator means the request had no header
    fields at all; the blank line alone is the header block.
    """
    if buffer.startswith(b"\r\n"):
        return 2
    if buffer.startswith(b"\n"):
        return 1
    match = HEADER_END_PATTERN.search(buffer)
    return match.end() if match else -1


def clean_request_line(raw: bytes) -> bytes:
    """Strip the line terminator and any trailing whitespace."""
    return raw.rstrip()


def parse_request_line(line: bytes) -> tuple[str, str, str]:
    """
    Split a request line into (method, target, version).

    Raises:
        MalformedRequestLine: If the line is not
            `GET|POST SP TARGET SP HTTP/1.0|HTTP/1.1`.
    """
    # latin-1 maps every byte, so decoding never fails
    text = line.decode("latin-1")
    match = REQUEST_LINE_PATTERN.match(text)
    if not match:
        raise MalformedRequestLine(f"Invalid request line: {text!r}")

    method, target, version = match.groups()
    return method.upper(), target, version


def scan_content_length(header_block: bytes) -> Optional[int]:
    """
    Find a numeric Content-Length field in a raw header block.

    The header name is matched case-insensitively, at the start of a
    line. A missing, non-numeric or unconvertible value means the request
    has no body.
    """
    match = CONTENT_LENGTH_PATTERN.search(header_block)
    if match is None:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        return None
