"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All knobs of the test server live in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION SOURCES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httptestserver --maxconn 2                       │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_TEST_TIMEOUT=5 python -m httptestserver               │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Test servers are almost always started with port 0 so the OS picks a free
port; the bound port is reported back by TestHTTPServer.start().
=============================================================================
"""

import logging
import os
from dataclasses import dataclass, field

from .http.response import server_signature


LOG_FORMATS = ("text", "json")

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class ServerConfig:
    """
    Configuration for the test server.

    NETWORK SETTINGS
    - host, port, backlog

    CONNECTION SETTINGS
    - maxconn, timeout

    ENVIRONMENT
    - disable_proxy

    LOGGING
    - log_level, log_format

    Example:
        ServerConfig(maxconn=1, timeout=5.0)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind the server to."""

    port: int = 0
    """Port to bind. 0 picks the first available one."""

    backlog: int = 128
    """Listen queue length handed to the OS."""

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    maxconn: int = 10
    """
    Limit the number of simultaneously served connections to this.
    Connections beyond the limit are closed without a response.
    """

    timeout: float = 60.0
    """
    Idle timeout in seconds. A connection with no read or write activity
    for this long is torn down, even mid-request or while a /delay/N reply
    is pending.
    """

    # ─────────────────────────────────────────────────────────────────────
    # ENVIRONMENT
    # ─────────────────────────────────────────────────────────────────────

    disable_proxy: bool = True
    """
    Reset the proxy-controlling environment variables (no_proxy,
    http_proxy, ftp_proxy, all_proxy) so HTTP clients under test talk to
    the server directly.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    server_name: str = field(default_factory=server_signature)
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        HTTP_TEST_HOST           Bind address (default: 127.0.0.1)
        HTTP_TEST_PORT           Bind port (default: 0)
        HTTP_TEST_MAXCONN        Connection limit (default: 10)
        HTTP_TEST_TIMEOUT        Idle timeout in seconds (default: 60)
        HTTP_TEST_DISABLE_PROXY  Scrub proxy variables (default: 1)
        HTTP_TEST_LOG_LEVEL      Logging level (default: INFO)
        HTTP_TEST_LOG_FORMAT     Access log format (default: text)
        """
        return cls(
            host=os.getenv("HTTP_TEST_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_TEST_PORT", "0")),
            maxconn=int(os.getenv("HTTP_TEST_MAXCONN", "10")),
            timeout=float(os.getenv("HTTP_TEST_TIMEOUT", "60")),
            disable_proxy=os.getenv("HTTP_TEST_DISABLE_PROXY", "1").lower() not in _FALSE_VALUES,
            log_level=os.getenv("HTTP_TEST_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTP_TEST_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by TestHTTPServer at construction so a bad value fails
        before anything is bound.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.maxconn < 1:
            raise ValueError("maxconn must be >= 1")

        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
