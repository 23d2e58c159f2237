"""
=============================================================================
ACCESS LOG
=============================================================================

One line per response actually written to a client. Rejected, timed-out
and broken connections never produce an access-log line; they show up in
the regular module loggers instead.

    TEXT FORMAT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [18/Oct/2026:10:55:36 +0000] "GET /delay/2 HTTP/1.1"  │
    │   200 36 2003.41ms                                                  │
    └─────────────────────────────────────────────────────────────────────┘

    JSON FORMAT:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"conn_id": 9, "client_ip": "127.0.0.1", "request_line": "GET ...", │
    │  "status_code": 200, "content_length": 36, "duration_ms": 2003.41,  │
    │  "timestamp": "18/Oct/2026:10:55:36 +0000"}                         │
    └─────────────────────────────────────────────────────────────────────┘

The logger is namespaced so it can be silenced or redirected on its own:
    logging.getLogger("httptestserver.access").setLevel(logging.WARNING)
=============================================================================
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone


logger = logging.getLogger("httptestserver.access")


@dataclass
class AccessRecord:
    conn_id: int
    client_ip: str
    request_line: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache-like single line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.request_line}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def access_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S %z")


def log_access(record: AccessRecord, log_format: str = "text") -> None:
    if log_format == "json":
        logger.info(json.dumps(record.to_dict()))
    else:
        logger.info(record.to_text())
