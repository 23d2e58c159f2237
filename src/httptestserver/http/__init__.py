"""
HTTP layer: request framing, HTTP/1.0 responses, status codes and the
fixed route table.

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ request.py       │ Find request line, header block, body in bytes   │
    │ response.py      │ Build and serialize HTTP/1.0 replies             │
    │ status_codes.py  │ Status codes and reason phrases                  │
    │ router.py        │ Map a request to Reply or Deferred               │
    └──────────────────┴──────────────────────────────────────────────────┘
"""

from .status_codes import HTTPStatus, reason_phrase
from .request import (
    HTTPRequest,
    find_header_end,
    find_line_end,
    parse_request_line,
    scan_content_length,
)
from .response import (
    HTTPResponse,
    error_response,
    format_http_date,
    new_response,
    server_signature,
)
from .router import CustomHandler, Deferred, DispatchResult, Reply, Route, Router


__all__ = [
    "HTTPStatus",
    "reason_phrase",
    "HTTPRequest",
    "find_header_end",
    "find_line_end",
    "parse_request_line",
    "scan_content_length",
    "HTTPResponse",
    "error_response",
    "format_http_date",
    "new_response",
    "server_signature",
    "CustomHandler",
    "Deferred",
    "DispatchResult",
    "Reply",
    "Route",
    "Router",
]
