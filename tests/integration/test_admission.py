"""
Integration tests for admission control, idle timeout and shutdown.
"""

import socket
import time

import pytest

from conftest import http_exchange, parse_response, read_all, wait_until


def refused_or_empty(address) -> bytes:
    """Connect, send a request, and return whatever comes back."""
    with socket.create_connection(address, timeout=5) as sock:
        try:
            sock.sendall(b"GET /repeat/1/x HTTP/1.1\r\n\r\n")
            return read_all(sock)
        except (ConnectionResetError, BrokenPipeError):
            return b""


class TestAdmission:

    def test_excess_connection_closed_without_reply(self, make_server):
        server = make_server(maxconn=1)

        with socket.create_connection(server.address, timeout=5) as first:
            first.sendall(b"GET /echo/head HTTP/1.1\r\n")
            assert wait_until(lambda: server.live_connections() == 1)

            assert refused_or_empty(server.address) == b""
            assert server.live_connections() == 1

            # The admitted connection is unaffected
            first.sendall(b"\r\n")
            _, _, body = parse_response(read_all(first))
            assert body == b"GET /echo/head HTTP/1.1\r\n\r\n"

        assert wait_until(lambda: server.live_connections() == 0)
        _, _, body = parse_response(http_exchange(server.address, b"GET /repeat/2/y HTTP/1.1\r\n\r\n"))
        assert body == b"yy"

    def test_pending_delay_holds_its_slot(self, make_server):
        server = make_server(maxconn=1)

        with socket.create_connection(server.address, timeout=5) as first:
            first.sendall(b"GET /delay/1 HTTP/1.1\r\n\r\n")
            assert wait_until(lambda: server.pending_delays() == 1)

            assert refused_or_empty(server.address) == b""

            _, _, body = parse_response(read_all(first))
            assert body.startswith(b"issued ")


class TestIdleTimeout:

    def test_idle_connection_closed_silently(self, make_server):
        server = make_server(timeout=0.5)

        with socket.create_connection(server.address, timeout=5) as sock:
            sock.sendall(b"GET /echo/head HTTP/1.1\r\n")
            start = time.monotonic()
            assert read_all(sock) == b""
            assert time.monotonic() - start >= 0.4

        assert wait_until(lambda: server.live_connections() == 0)

    def test_delay_longer_than_timeout(self, make_server):
        server = make_server(timeout=0.5)

        with socket.create_connection(server.address, timeout=5) as sock:
            sock.sendall(b"GET /delay/2 HTTP/1.1\r\n\r\n")
            assert read_all(sock) == b""

        assert wait_until(lambda: server.pending_delays() == 0)
        assert server.live_connections() == 0


class TestShutdown:

    def test_stop_closes_live_connections(self, make_server):
        server = make_server()

        with socket.create_connection(server.address, timeout=5) as sock:
            sock.sendall(b"GET /delay/5 HTTP/1.1\r\n\r\n")
            assert wait_until(lambda: server.pending_delays() == 1)

            server.stop()
            try:
                assert read_all(sock) == b""
            except ConnectionResetError:
                pass

    def test_port_in_use(self, make_server):
        server = make_server()
        with pytest.raises(OSError):
            make_server(port=server.address[1])
