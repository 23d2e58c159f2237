"""
=============================================================================
ROUTE DISPATCHER
=============================================================================

The route table is fixed. Routes are tried top to bottom; the first one
whose pattern matches the request target wins:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  /repeat/{n}/{rest}   body = rest * n      ("rest" may contain "/") │
    │  /echo/head           body = request line + CRLF + header block     │
    │  /echo/body           body = request body                           │
    │  /delay/{n}           body = "issued <time>", sent n seconds later  │
    │  (anything else)      404 "Not Found"                               │
    │  (oversized /repeat)  400 "Bad Request"                             │
    └─────────────────────────────────────────────────────────────────────┘

A handler does not write anything. It fills in the response and returns
one of two outcomes:

    Reply(response)              write it now, then close
    Deferred(response, seconds)  hand it to the delay scheduler

A custom handler, when configured, sees the fresh 200 response before the
table does. Returning True serves whatever it put in the response;
returning False falls through to the table.
=============================================================================
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from ..errors import HTTPError, OversizedBody, UnmatchedRoute
from .request import HTTPRequest
from .response import HTTPResponse, error_response, new_response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


# Largest body /repeat will build, in bytes
MAX_SYNTHESIZED_BODY = 64 * 1024 * 1024


@dataclass
class Reply:
    """Send the response immediately."""
    response: HTTPResponse


@dataclass
class Deferred:
    """Send the response after `seconds` have elapsed."""
    response: HTTPResponse
    seconds: float


DispatchResult = Union[Reply, Deferred]

Handler = Callable[[HTTPRequest, "re.Match[str]", HTTPResponse], DispatchResult]

CustomHandler = Callable[[HTTPRequest, HTTPResponse], bool]


@dataclass(frozen=True)
class Route:
    """A (pattern, handler) pair. The pattern is matched against the target."""
    name: str
    pattern: "re.Pattern[str]"
    handler: Handler


@dataclass
class RouteMatch:
    route: Route
    match: "re.Match[str]"


# =============================================================================
# ROUTE HANDLERS
# =============================================================================

def repeat(request: HTTPRequest, match: "re.Match[str]", response: HTTPResponse) -> DispatchResult:
    """
    Raises:
        OversizedBody: If the body would exceed MAX_SYNTHESIZED_BODY, or the
            count has too many digits to convert.
    """
    rest = match.group(2).encode("latin-1")
    try:
        count = int(match.group(1))
    except ValueError:
        raise OversizedBody(f"repeat count has {len(match.group(1))} digits") from None

    if count * len(rest) > MAX_SYNTHESIZED_BODY:
        raise OversizedBody(f"repeat body of {count} x {len(rest)} bytes exceeds {MAX_SYNTHESIZED_BODY}")
    response.set_body(rest * count)
    return Reply(response)


def echo_head(request: HTTPRequest, match: "re.Match[str]", response: HTTPResponse) -> DispatchResult:
    response.set_body(request.head)
    return Reply(response)


def echo_body(request: HTTPRequest, match: "re.Match[str]", response: HTTPResponse) -> DispatchResult:
    response.set_body(request.body)
    return Reply(response)


def delay(request: HTTPRequest, match: "re.Match[str]", response: HTTPResponse) -> DispatchResult:
    """
    The body records when the request was dispatched. The connection
    writes it only once the delay scheduler fires.
    """
    response.set_body("issued " + time.asctime(time.gmtime()))
    return Deferred(response, float(match.group(1)))


ROUTES: List[Route] = [
    Route("repeat", re.compile(r"^/repeat/(\d+)/(.+)"), repeat),
    Route("echo_head", re.compile(r"^/echo/head$"), echo_head),
    Route("echo_body", re.compile(r"^/echo/body$"), echo_body),
    Route("delay", re.compile(r"^/delay/(\d+)$"), delay),
]


class Router:
    """
    Maps a parsed request to a dispatch outcome.

    Usage:
        router = Router(server_name="test/1.0")
        outcome = router.dispatch(request)
        if isinstance(outcome, Deferred):
            scheduler.schedule(conn_id, outcome.seconds, ...)
    """

    def __init__(
        self,
        server_name: Optional[str] = None,
        custom_handler: Optional[CustomHandler] = None,
    ):
        self.server_name = server_name
        self.custom_handler = custom_handler
        self._routes: List[Route] = list(ROUTES)

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def match(self, target: str) -> RouteMatch:
        """
        Find the first route whose pattern matches target.

        Raises:
            UnmatchedRoute: If no route matches.
        """
        for route in self._routes:
            found = route.pattern.match(target)
            if found:
                return RouteMatch(route=route, match=found)
        raise UnmatchedRoute(f"No route for {target!r}")

    def dispatch(self, request: HTTPRequest) -> DispatchResult:
        response = new_response(self.server_name)

        if self.custom_handler is not None:
            try:
                if self.custom_handler(request, response):
                    return Reply(response)
            except Exception as e:
                logger.exception(f"Custom handler failed for {request.target!r}: {e}")
                return Reply(error_response(HTTPStatus.INTERNAL_SERVER_ERROR, self.server_name))

        try:
            route_match = self.match(request.target)
            logger.debug(f"Dispatching {request.method} {request.target} to {route_match.route.name}")
            return route_match.route.handler(request, route_match.match, response)
        except HTTPError as e:
            logger.debug(str(e))
            return Reply(self.error(e))

    def error(self, exc: HTTPError) -> HTTPResponse:
        """
        The reply to a recoverable request error: its status, with the
        reason phrase as body (400 "Bad Request", 404 "Not Found").
        """
        return error_response(HTTPStatus(exc.status_code), self.server_name)
