"""Tests for simplerest.cli argument parsing and request dispatch.

Tests cover:
- Verb subcommands with common and body options
- Argument type validation (headers, fields, file parts, numbers)
- Error cases (missing URL, conflicting body options)
- run_request against a mock transport: output, exit codes, config overrides
"""

import argparse
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from simplerest.cli import (
    RequestArgs,
    _resolve_config,
    non_negative_int,
    parse_args,
    parse_field,
    parse_file_part,
    parse_header,
    positive_float,
    run_request,
)
from simplerest.client import HttpClient
from simplerest.models import ClientConfig
from tests.conftest import RecordingTransport, make_transport


# =============================================================================
# Argument Type Tests
# =============================================================================


class TestArgumentTypes:
    def test_parse_header(self) -> None:
        assert parse_header("Accept: text/plain") == ("Accept", "text/plain")

    def test_parse_header_value_may_contain_colon(self) -> None:
        assert parse_header("Referer: http://x/y") == ("Referer", "http://x/y")

    @pytest.mark.parametrize("value", ["NoColon", ": value"])
    def test_parse_header_invalid(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_header(value)

    def test_parse_field(self) -> None:
        assert parse_field("q=a=b") == ("q", "a=b")

    @pytest.mark.parametrize("value", ["novalue", "=x"])
    def test_parse_field_invalid(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_field(value)

    def test_parse_file_part(self) -> None:
        assert parse_file_part("doc=report.pdf") == ("doc", Path("report.pdf"), None)

    def test_parse_file_part_with_type(self) -> None:
        assert parse_file_part("doc=a.bin;type=image/png") == ("doc", Path("a.bin"), "image/png")

    @pytest.mark.parametrize("value", ["doc=", "doc=a.bin;type="])
    def test_parse_file_part_invalid(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_file_part(value)

    def test_non_negative_int(self) -> None:
        assert non_negative_int("0") == 0
        with pytest.raises(argparse.ArgumentTypeError):
            non_negative_int("-1")
        with pytest.raises(argparse.ArgumentTypeError):
            non_negative_int("abc")

    def test_positive_float(self) -> None:
        assert positive_float("2.5") == 2.5
        with pytest.raises(argparse.ArgumentTypeError):
            positive_float("0")


# =============================================================================
# Parsing Tests
# =============================================================================


class TestParseArgs:
    def test_get_minimal(self) -> None:
        args = parse_args(["get", "http://test/items"])
        assert isinstance(args, RequestArgs)
        assert args.verb == "get"
        assert args.url == "http://test/items"
        assert args.headers == {}
        assert args.config is None
        assert args.wait_ms is None
        assert args.cache is False

    def test_common_options(self) -> None:
        args = parse_args([
            "delete", "http://test/items/1",
            "--config", "client.yaml",
            "--wait-ms", "250",
            "--timeout", "5",
            "-H", "Accept: text/plain",
            "--header", "X-Trace: abc",
            "-v",
        ])
        assert args.config == Path("client.yaml")
        assert args.wait_ms == 250
        assert args.timeout == 5.0
        assert args.headers == {"Accept": "text/plain", "X-Trace": "abc"}
        assert args.verbose is True

    def test_cache_flag(self) -> None:
        args = parse_args(["get", "http://test/items", "--cache"])
        assert args.cache is True

    def test_options_before_verb_rejected(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--cache", "get", "http://test/items"])
        assert exc_info.value.code == 2

    def test_missing_url(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["get"])
        assert exc_info.value.code == 2

    def test_missing_verb(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args([])
        assert exc_info.value.code == 2

    def test_get_rejects_body_options(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["get", "http://test/x", "--data", "hello"])

    def test_post_data(self) -> None:
        args = parse_args(["post", "http://test/x", "--data", "hello"])
        assert args.data == "hello"
        assert not args.is_multipart

    def test_put_form(self) -> None:
        args = parse_args(["put", "http://test/x", "--form", "a=1", "--form", "b=2"])
        assert args.form == {"a": "1", "b": "2"}

    def test_data_and_form_conflict(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["post", "http://test/x", "--data", "a", "--form", "b=1"])

    def test_post_multipart(self) -> None:
        args = parse_args([
            "post", "http://test/upload",
            "--part", "title=Report",
            "--file", "doc=report.pdf;type=application/pdf",
        ])
        assert args.is_multipart
        assert args.parts == {"title": "Report"}
        assert args.files == [("doc", Path("report.pdf"), "application/pdf")]

    def test_multipart_conflicts_with_data(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["post", "http://test/x", "--data", "a", "--part", "b=1"])

    def test_put_has_no_multipart(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["put", "http://test/x", "--part", "b=1"])


# =============================================================================
# Execution Tests
# =============================================================================


class TestRunRequest:
    def test_get_prints_body(
        self, ok_transport: RecordingTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = run_request(parse_args(["get", "http://test/items"]), transport=ok_transport)

        assert code == 0
        assert capsys.readouterr().out == "ok\n"
        assert ok_transport.last_request.method == "GET"

    def test_headers_forwarded(self, ok_transport: RecordingTransport) -> None:
        run_request(
            parse_args(["head", "http://test/x", "-H", "X-Trace: 42"]), transport=ok_transport
        )
        request = ok_transport.last_request
        assert request.method == "HEAD"
        assert request.headers["x-trace"] == "42"

    def test_post_form(self, ok_transport: RecordingTransport) -> None:
        run_request(
            parse_args(["post", "http://test/x", "--form", "name=x y"]), transport=ok_transport
        )
        assert ok_transport.last_request.content == b"name=x%20y"

    def test_put_data_file(self, tmp_path: Path, ok_transport: RecordingTransport) -> None:
        payload = tmp_path / "body.bin"
        payload.write_bytes(b"\x01\x02")

        run_request(
            parse_args(["put", "http://test/x", "--data-file", str(payload)]),
            transport=ok_transport,
        )
        request = ok_transport.last_request
        assert request.method == "PUT"
        assert request.content == b"\x01\x02"

    def test_post_without_body_sends_empty(self, ok_transport: RecordingTransport) -> None:
        run_request(parse_args(["post", "http://test/x"]), transport=ok_transport)
        assert ok_transport.last_request.content == b""

    def test_post_multipart_file(self, tmp_path: Path, ok_transport: RecordingTransport) -> None:
        upload = tmp_path / "notes.txt"
        upload.write_text("remember", encoding="utf-8")

        code = run_request(
            parse_args([
                "post", "http://test/upload",
                "--part", "title=Notes",
                "--file", f"doc={upload}",
            ]),
            transport=ok_transport,
        )

        assert code == 0
        request = ok_transport.last_request
        assert request.headers["content-type"].startswith("multipart/form-data; boundary=")
        assert b'name="doc"; filename="notes.txt"' in request.content
        assert b"Content-Type: text/plain" in request.content
        assert b"remember" in request.content
        assert b'name="title"\r\n\r\nNotes\r\n' in request.content

    def test_cache_flag_reaches_client(self, ok_transport: RecordingTransport) -> None:
        with patch("simplerest.client.HttpClient", wraps=HttpClient) as client_cls:
            run_request(parse_args(["get", "http://test/x", "--cache"]), transport=ok_transport)

        config = client_cls.call_args.args[0]
        assert config.cache_results is True

    def test_http_error_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        transport = make_transport(status_code=404, text="no such item")

        code = run_request(parse_args(["get", "http://test/missing"]), transport=transport)

        assert code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "404" in captured.err
        assert "no such item" in captured.err

    def test_transport_error_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        code = run_request(
            parse_args(["get", "http://test/x"]), transport=RecordingTransport(handler)
        )

        assert code == 1
        assert "connection error" in capsys.readouterr().err

    def test_missing_config_file(
        self, tmp_path: Path, ok_transport: RecordingTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = run_request(
            parse_args(["get", "http://test/x", "--config", str(tmp_path / "none.yaml")]),
            transport=ok_transport,
        )

        assert code == 1
        assert "Error loading config" in capsys.readouterr().err
        assert ok_transport.call_count == 0

    def test_missing_upload_file(
        self, tmp_path: Path, ok_transport: RecordingTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = run_request(
            parse_args(["post", "http://test/x", "--file", f"doc={tmp_path / 'gone.txt'}"]),
            transport=ok_transport,
        )

        assert code == 1
        assert "Error reading input file" in capsys.readouterr().err
        assert ok_transport.call_count == 0


class TestResolveConfig:
    def test_defaults_without_config(self) -> None:
        assert _resolve_config(parse_args(["get", "http://test/x"])) == ClientConfig()

    def test_cache_flag_enables_caching(self) -> None:
        config = _resolve_config(parse_args(["get", "http://test/x", "--cache"]))
        assert config.cache_results is True

    def test_overrides_applied_over_file(self, tmp_path: Path) -> None:
        config_path = tmp_path / "client.yaml"
        config_path.write_text(
            "client:\n  cache_results: true\n  read_timeout: 10\nrate_limit:\n  wait_millis: 100\n",
            encoding="utf-8",
        )

        config = _resolve_config(parse_args([
            "get", "http://test/x",
            "--config", str(config_path),
            "--wait-ms", "0",
            "--timeout", "3",
        ]))

        assert config.cache_results is True
        assert config.wait_millis == 0
        assert config.read_timeout == 3.0
