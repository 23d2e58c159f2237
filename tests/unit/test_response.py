"""
Unit tests for HTTP response building.
"""

from datetime import datetime, timedelta, timezone

from httptestserver.http.response import (
    HTTPResponse,
    error_response,
    format_http_date,
    new_response,
    server_signature,
)
from httptestserver.http.status_codes import HTTPStatus, reason_phrase


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_values(self):
        """Test status code values."""
        assert HTTPStatus.OK == 200
        assert HTTPStatus.BAD_REQUEST == 400
        assert HTTPStatus.NOT_FOUND == 404

    def test_status_phrases(self):
        """Test status phrases."""
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"
        assert HTTPStatus.INTERNAL_SERVER_ERROR.phrase == "Internal Server Error"

    def test_only_served_codes(self):
        assert [int(status) for status in HTTPStatus] == [200, 400, 404, 500]

    def test_reason_phrase_fallback(self):
        """Test codes outside the enum."""
        assert reason_phrase(405) == "Method Not Allowed"
        assert reason_phrase(502) == "Bad Gateway"
        assert reason_phrase(599) == "Unknown"


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line_is_http10(self):
        response = HTTPResponse(status=HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.0 404 Not Found"

    def test_custom_reason(self):
        response = HTTPResponse().set_status(299, "Fine")
        assert response.status_line == "HTTP/1.0 299 Fine"

    def test_set_body_encodes_str(self):
        response = HTTPResponse().set_body("héllo")
        assert response.body == "héllo".encode("utf-8")

    def test_to_bytes(self):
        """Test response serialization."""
        response = HTTPResponse(headers={"Connection": "close"}, body=b"ababab")
        assert response.to_bytes() == (
            b"HTTP/1.0 200 OK\r\n"
            b"Connection: close\r\n"
            b"Content-Length: 6\r\n"
            b"\r\n"
            b"ababab"
        )

    def test_to_bytes_keeps_explicit_content_length(self):
        response = HTTPResponse(headers={"Content-Length": "99"}, body=b"x")
        assert response.to_bytes().count(b"Content-Length") == 1
        assert b"Content-Length: 99\r\n" in response.to_bytes()

    def test_set_header_keeps_position(self):
        response = new_response("srv")
        response.set_header("Content-Type", "application/json")
        assert list(response.headers)[:2] == ["Connection", "Content-Type"]
        assert response.headers["Content-Type"] == "application/json"


class TestFactories:
    """Tests for the fixed header set."""

    def test_new_response_headers(self):
        response = new_response("test-server")
        assert response.status == 200
        assert list(response.headers) == ["Connection", "Content-Type", "Server", "Date"]
        assert response.headers["Connection"] == "close"
        assert response.headers["Content-Type"] == "text/plain"
        assert response.headers["Server"] == "test-server"
        assert response.headers["Date"].endswith(" GMT")

    def test_new_response_default_server(self):
        assert new_response().headers["Server"] == server_signature()

    def test_server_signature(self):
        signature = server_signature()
        assert signature.startswith("httptestserver/")
        assert "Python/" in signature

    def test_error_response(self):
        response = error_response(HTTPStatus.BAD_REQUEST, "srv")
        assert response.status_line == "HTTP/1.0 400 Bad Request"
        assert response.body == b"Bad Request"


class TestFormatHttpDate:

    def test_utc(self):
        dt = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Thu, 01 Jan 2026 12:00:00 GMT"

    def test_converts_to_gmt(self):
        dt = datetime(2026, 1, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_http_date(dt) == "Thu, 01 Jan 2026 12:00:00 GMT"
