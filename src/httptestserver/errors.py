"""
=============================================================================
SERVER ERRORS
=============================================================================

Every failure the server knows about has its own exception type. None of
them is fatal to the server process:

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ AdmissionRejected    │ Pool at capacity. Socket closed, no reply.   │
    │ MalformedRequestLine │ Recovered locally into 400 Bad Request.      │
    │ UnmatchedRoute       │ Recovered locally into 404 Not Found.        │
    │ OversizedBody        │ Recovered locally into 400 Bad Request.      │
    │ IdleTimeout          │ Forced teardown, nothing sent.               │
    │ IOFailure            │ Forced teardown, nothing (more) sent.        │
    └──────────────────────┴──────────────────────────────────────────────┘

The last two are never raised across the event loop. A connection creates
one and hands it to HTTPConnection.close() as the reason, which only logs it.
=============================================================================
"""


class ServerError(Exception):
    """Base class for all httptestserver errors."""


class AdmissionRejected(ServerError):
    """Raised when the connection registry is full."""

    def __init__(self, conn_id: int, maxconn: int):
        super().__init__(f"connection {conn_id} rejected: {maxconn} connection(s) already open")
        self.conn_id = conn_id
        self.maxconn = maxconn


class HTTPError(ServerError):
    """
    An error that maps onto an HTTP status.

    The status code travels with the exception class, so Router.error()
    builds the reply without a lookup table.
    """

    status_code = 500


class MalformedRequestLine(HTTPError):
    """The request line is not `METHOD SP TARGET SP HTTP-VERSION`."""

    status_code = 400


class UnmatchedRoute(HTTPError):
    """No route in the table matches the request target."""

    status_code = 404


class OversizedBody(HTTPError):
    """A synthesized body would exceed MAX_SYNTHESIZED_BODY."""

    status_code = 400


class IdleTimeout(ServerError):
    """No read or write activity within the idle window."""


class IOFailure(ServerError):
    """The transport reported an error or was lost mid-request."""
