"""
=============================================================================
COMMAND LINE ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1, first free port)
    python -m httptestserver

    # Fixed port, two connections at most, 5 second idle timeout
    python -m httptestserver --port 8080 --maxconn 2 --timeout 5

    # Leave the proxy environment alone
    python -m httptestserver --keep-proxy

The bound URI is printed on stdout once the socket is listening, so a
wrapper script can read it from the first line of output.
=============================================================================
"""

import argparse
import asyncio
import sys

from . import __version__
from .config import LOG_FORMATS, ServerConfig
from .server import TestHTTPServer, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httptestserver",
        description="Non-forking HTTP/1.0 test server with synthetic endpoints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Endpoints:
  GET  /repeat/{n}/{rest}   rest repeated n times
  GET  /echo/head           request line + headers, verbatim
  POST /echo/body           request body, verbatim
  GET  /delay/{n}           reply sent after n seconds
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default="127.0.0.1",
                        help="Address to bind (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=0,
                        help="Port to bind (default: 0, first available)")

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--maxconn", "-m", type=int, default=10,
                        help="Maximum simultaneous connections (default: 10)")
    parser.add_argument("--timeout", "-t", type=float, default=60.0,
                        help="Idle timeout in seconds (default: 60)")
    parser.add_argument("--keep-proxy", action="store_true",
                        help="Do not reset the *_proxy environment variables")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log-level", "-l",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO",
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default="text",
                        help="Access log format (default: text)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"httptestserver {__version__}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            maxconn=args.maxconn,
            timeout=args.timeout,
            disable_proxy=not args.keep_proxy,
            log_level=args.log_level,
            log_format=args.log_format,
        )
        server = TestHTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)

    async def serve() -> None:
        await server.start()
        print(server.uri, flush=True)
        await server.serve_until_signal()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        pass
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
