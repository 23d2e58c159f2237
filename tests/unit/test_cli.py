"""
Unit tests for the command line entry point.
"""

import socket

import pytest

from httptestserver import __version__
from httptestserver.__main__ import build_parser, main


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.host == "127.0.0.1"
        assert args.port == 0
        assert args.maxconn == 10
        assert args.timeout == 60.0
        assert args.keep_proxy is False
        assert args.log_format == "text"

    def test_short_options(self):
        args = build_parser().parse_args(["-p", "8080", "-m", "2", "-t", "5", "-l", "DEBUG"])
        assert args.port == 8080
        assert args.maxconn == 2
        assert args.timeout == 5.0
        assert args.log_level == "DEBUG"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:

    def test_invalid_config_exits_2(self, capsys):
        assert main(["--maxconn", "0", "--keep-proxy"]) == 2
        assert "maxconn" in capsys.readouterr().err

    def test_bind_failure_exits_1(self, capsys):
        with socket.socket() as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen()
            port = taken.getsockname()[1]
            assert main(["--port", str(port), "--keep-proxy", "-l", "ERROR"]) == 1
        assert "Error" in capsys.readouterr().err
