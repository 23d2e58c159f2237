"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can answer with, and their reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ OK                  - /repeat, /echo/*, /delay            │
    │  400   │ Bad Request         - bad request line, huge /repeat      │
    │  404   │ Not Found           - no route matched                    │
    │  500   │ Internal Error      - custom handler raised               │
    └────────┴───────────────────────────────────────────────────────────┘

Custom handlers may set any other code; anything not listed here goes out
with the reason phrase from the standard library table.
=============================================================================
"""

from enum import IntEnum
from http import HTTPStatus as _StdStatus


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200
    BAD_REQUEST = 400
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES[self]


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}


def reason_phrase(code: int) -> str:
    """
    Reason phrase for any integer status code.

    Falls back to the standard library table for codes the enum does not
    list, and to "Unknown" for codes nobody knows.
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        pass
    try:
        return _StdStatus(code).phrase
    except ValueError:
        return "Unknown"
