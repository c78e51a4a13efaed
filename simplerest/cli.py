"""CLI entry point for simplerest.

Sends a single request with one of the client verbs and prints the response
body to stdout.
"""

from __future__ import annotations

import argparse
import mimetypes
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

    from simplerest.models import ClientConfig


VERBS = ("get", "post", "put", "delete", "head")
BODY_VERBS = ("post", "put")


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def non_negative_int(value: str) -> int:
    """Parse and validate a non-negative integer value.

    Raises:
        argparse.ArgumentTypeError: If value is not an integer >= 0.
    """
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer '{value}'.")
    if result < 0:
        raise argparse.ArgumentTypeError(f"Value must be >= 0, got {result}.")
    return result


def parse_header(value: str) -> tuple[str, str]:
    """Parse 'Name: value' format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if ":" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid header '{value}'. Expected 'Name: value' (e.g., 'Accept: text/plain')"
        )
    name, header_value = value.split(":", 1)
    name = name.strip()
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid header '{value}'. Name cannot be empty.")
    return (name, header_value.strip())


def parse_field(value: str) -> tuple[str, str]:
    """Parse KEY=VALUE format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"Invalid field '{value}'. Expected KEY=VALUE")
    key, field_value = value.split("=", 1)
    if not key:
        raise argparse.ArgumentTypeError(f"Invalid field '{value}'. Key cannot be empty.")
    return (key, field_value)


def parse_file_part(value: str) -> tuple[str, Path, str | None]:
    """Parse KEY=PATH or KEY=PATH;type=CONTENT_TYPE format.

    Returns:
        Tuple of (field name, file path, content type or None).

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    key, rest = parse_field(value)
    content_type: str | None = None
    if ";type=" in rest:
        rest, content_type = rest.rsplit(";type=", 1)
        if not content_type:
            raise argparse.ArgumentTypeError(f"Invalid file part '{value}'. Empty content type.")
    if not rest:
        raise argparse.ArgumentTypeError(f"Invalid file part '{value}'. Path cannot be empty.")
    return (key, Path(rest), content_type)


@dataclass
class RequestArgs:
    """Parsed arguments for a single request."""

    verb: str
    url: str
    config: Path | None
    wait_ms: int | None
    timeout: float | None
    cache: bool
    headers: dict[str, str]
    verbose: bool
    log_file: str | None
    data: str | None = None
    data_file: Path | None = None
    form: dict[str, str] = field(default_factory=dict)
    parts: dict[str, str] = field(default_factory=dict)
    files: list[tuple[str, Path, str | None]] = field(default_factory=list)

    @property
    def is_multipart(self) -> bool:
        return bool(self.parts or self.files)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="Absolute URL to request")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML client configuration file",
    )
    parser.add_argument(
        "--wait-ms",
        type=non_negative_int,
        default=None,
        help="Minimum milliseconds between request starts (overrides config)",
    )
    parser.add_argument(
        "--cache",
        action="store_true",
        help="Cache successful GET responses for this run (overrides config)",
    )
    parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help="Read timeout in seconds (overrides config)",
    )
    parser.add_argument(
        "-H",
        "--header",
        type=parse_header,
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        dest="header",
        help="Extra request header (can be repeated)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log request activity to stderr",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file",
    )


def _add_body_arguments(parser: argparse.ArgumentParser, multipart: bool) -> None:
    body_group = parser.add_mutually_exclusive_group()
    body_group.add_argument("--data", default=None, help="Request body text")
    body_group.add_argument(
        "--data-file", type=Path, default=None, help="Send this file's bytes as the body"
    )
    body_group.add_argument(
        "--form",
        type=parse_field,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Form field sent url-encoded (can be repeated)",
    )
    if multipart:
        parser.add_argument(
            "--part",
            type=parse_field,
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Multipart text field (can be repeated)",
        )
        parser.add_argument(
            "--file",
            type=parse_file_part,
            action="append",
            default=[],
            metavar="KEY=PATH[;type=CONTENT_TYPE]",
            help="Multipart file field (can be repeated)",
        )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per verb."""
    parser = argparse.ArgumentParser(
        prog="simplerest",
        description="Send an HTTP request and print the response body.",
    )

    subparsers = parser.add_subparsers(dest="verb", required=True, help="HTTP verb")

    for verb in VERBS:
        verb_parser = subparsers.add_parser(verb, help=f"Send a {verb.upper()} request")
        _add_common_arguments(verb_parser)
        if verb in BODY_VERBS:
            _add_body_arguments(verb_parser, multipart=(verb == "post"))

    return parser


def _build_headers(header_list: list[tuple[str, str]]) -> dict[str, str]:
    """Build header dict, warning on duplicates."""
    result: dict[str, str] = {}
    for name, value in header_list:
        if name in result:
            print(
                f"Warning: header '{name}' specified multiple times, using last value",
                file=sys.stderr,
            )
        result[name] = value
    return result


def parse_request_args(
    namespace: argparse.Namespace,
    parser: argparse.ArgumentParser | None = None,
) -> RequestArgs:
    """Convert parsed namespace to RequestArgs dataclass."""
    args = RequestArgs(
        verb=namespace.verb,
        url=namespace.url,
        config=namespace.config,
        wait_ms=namespace.wait_ms,
        timeout=namespace.timeout,
        cache=namespace.cache,
        headers=_build_headers(namespace.header or []),
        verbose=namespace.verbose,
        log_file=namespace.log_file,
    )

    if namespace.verb in BODY_VERBS:
        args.data = namespace.data
        args.data_file = namespace.data_file
        args.form = dict(namespace.form or [])
        args.parts = dict(getattr(namespace, "part", None) or [])
        args.files = list(getattr(namespace, "file", None) or [])

        has_plain_body = args.data is not None or args.data_file is not None or args.form
        if args.is_multipart and has_plain_body and parser is not None:
            parser.error("--part/--file cannot be combined with --data, --data-file, or --form")

    return args


def parse_args(args: list[str] | None = None) -> RequestArgs:
    """Parse command-line arguments and return typed args dataclass.

    Args:
        args: Command-line arguments to parse. If None, uses sys.argv[1:].

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)
    return parse_request_args(namespace, parser)


def main() -> int:
    """Main entry point."""
    try:
        parsed = parse_args()
        return run_request(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def _resolve_config(args: RequestArgs) -> ClientConfig:
    """Load the config file (if any) and apply command-line overrides."""
    from simplerest.config_loader import load_client_config
    from simplerest.models import ClientConfig

    config = load_client_config(args.config) if args.config is not None else ClientConfig()

    overrides: dict[str, Any] = {}
    if args.wait_ms is not None:
        overrides["wait_millis"] = args.wait_ms
    if args.timeout is not None:
        overrides["read_timeout"] = args.timeout
    if args.cache:
        overrides["cache_results"] = True
    if overrides:
        config = ClientConfig.model_validate({**config.model_dump(), **overrides})
    return config


def _build_multipart_parts(args: RequestArgs) -> dict[str, Any]:
    from simplerest.models import FormFile

    parts: dict[str, Any] = dict(args.parts)
    for name, path, content_type in args.files:
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        parts[name] = FormFile(
            filename=path.name,
            content_type=content_type,
            content=path.read_bytes(),
        )
    return parts


def run_request(args: RequestArgs, transport: httpx.BaseTransport | None = None) -> int:
    """Send the request described by args.

    Args:
        args: Parsed request arguments.
        transport: httpx transport override, used by tests.

    Returns:
        Process exit code.
    """
    from simplerest.client import ClientError, HTTPError, HttpClient
    from simplerest.config_loader import ConfigError
    from simplerest.logging_config import setup_logging

    if args.verbose or args.log_file:
        setup_logging(level="DEBUG" if args.verbose else "INFO", log_file=args.log_file)

    try:
        config = _resolve_config(args)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    headers = args.headers or None

    try:
        with HttpClient(config, transport=transport) as client:
            if args.verb == "get":
                body = client.get(args.url, headers=headers)
            elif args.verb == "head":
                body = client.head(args.url, headers=headers)
            elif args.verb == "delete":
                body = client.delete(args.url, headers=headers)
            elif args.is_multipart:
                body = client.post_multipart(args.url, _build_multipart_parts(args), headers=headers)
            else:
                send = client.post if args.verb == "post" else client.put
                if args.data_file is not None:
                    data: Any = args.data_file.read_bytes()
                elif args.form:
                    data = args.form
                else:
                    data = args.data or ""
                body = send(args.url, data, headers=headers)
    except HTTPError as e:
        print(f"Error: server responded with status {e.status_code}", file=sys.stderr)
        print(e.message, file=sys.stderr)
        return 1
    except ClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading input file: {e}", file=sys.stderr)
        return 1

    if body:
        sys.stdout.write(body)
        if not body.endswith("\n"):
            sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
