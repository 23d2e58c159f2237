"""
Bounded registry of live connections.

The registry is how the server does admission control: a connection is
served only if it fits, and it occupies its slot from the moment it is
accepted until it is torn down, including the whole time a /delay/N reply
is pending.

    maxconn = 2

    accept A  ──► {A}        admitted
    accept B  ──► {A, B}     admitted
    accept C  ──► {A, B}     rejected, C is closed without a reply
    A closes  ──► {B}
    accept D  ──► {B, D}     admitted

Only the event loop thread touches the registry, so there is no lock.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterator, Optional

from ..errors import AdmissionRejected

if TYPE_CHECKING:
    from .connection import HTTPConnection


logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Live connections keyed by connection id (the socket descriptor).

    Invariant: len(self) <= maxconn after every admission decision.
    """

    def __init__(self, maxconn: int):
        if maxconn < 1:
            raise ValueError("maxconn must be >= 1")
        self.maxconn = maxconn
        self._connections: Dict[int, "HTTPConnection"] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._connections

    def __iter__(self) -> Iterator["HTTPConnection"]:
        return iter(list(self._connections.values()))

    @property
    def is_full(self) -> bool:
        return len(self._connections) >= self.maxconn

    def get(self, conn_id: int) -> Optional["HTTPConnection"]:
        return self._connections.get(conn_id)

    def admit(self, conn: "HTTPConnection") -> None:
        """
        Register a connection.

        Raises:
            AdmissionRejected: If maxconn connections are already live.
        """
        if self.is_full:
            raise AdmissionRejected(conn.conn_id, self.maxconn)
        self._connections[conn.conn_id] = conn
        logger.debug(f"{len(self._connections)} connection(s) in pool")

    def try_admit(self, conn: "HTTPConnection") -> bool:
        """Register a connection if there is room; report whether it was."""
        try:
            self.admit(conn)
        except AdmissionRejected:
            return False
        return True

    def remove(self, conn_id: int) -> None:
        """
        Deregister a connection. Removing an absent id does nothing, since
        timeout and normal completion may both try to clean up.
        """
        if self._connections.pop(conn_id, None) is not None:
            logger.debug(f"{len(self._connections)} connection(s) in pool")
