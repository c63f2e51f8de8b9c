"""CLI entry point for redprobe.

Runs one request (from flags) or a batch (from a YAML config) sequentially,
prints the outcomes as tables, JSON or HAR, and exits non-zero when any
probe failed.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, BinaryIO, Coroutine

# uvloop is optional; the stock asyncio loop is used without it.
_HAS_UVLOOP = False
try:
    import uvloop
    _HAS_UVLOOP = True
except ImportError:
    pass

from . import __version__
from .config import DEFAULT_METHOD, DEFAULT_TIMEOUT, build_request_spec, load_config, parse_header_args
from .console import build_console, render_outcomes
from .exceptions import RedProbeConfigError, RedProbeError
from .har import dumps_har
from .logging_config import get_logger
from .models import Outcome, RequestSpec
from .report import dumps_outcomes
from .runner import all_successful, run_probes

logger = get_logger("cli")

FORMATS = ("console", "json", "har")
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    if _HAS_UVLOOP:
        return uvloop.run(coro)
    return asyncio.run(coro)


def _read_body(stream: BinaryIO | None = None) -> bytes:
    """Request body from piped stdin; empty when stdin is a terminal."""
    if stream is None:
        stdin = sys.stdin
        if stdin is None or stdin.isatty():
            return b""
        stream = stdin.buffer
    return stream.read()


def _format_arg(value: str) -> str:
    fmt = value.strip().lower()
    if fmt not in FORMATS:
        raise argparse.ArgumentTypeError(f"invalid format {value!r} (choose from {', '.join(FORMATS)})")
    return fmt


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redprobe",
        description="Probe an HTTP endpoint once: per-phase timings (DNS, connect, TLS, TTFB, transfer) "
        "and expression assertions. Exits non-zero if any probe fails.",
    )
    parser.add_argument("-X", "--method", default=DEFAULT_METHOD, help="HTTP method (default: GET)")
    parser.add_argument("-u", "--url", help="Target URL (required unless -c is used)")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        dest="headers",
        metavar="'NAME: VALUE'",
        help="Request header (can be repeated)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        default=DEFAULT_TIMEOUT,
        help="Deadline for the whole attempt, e.g. 500ms, 5s, 1m (default: 5s; 0 = none)",
    )
    parser.add_argument(
        "-f",
        "--format",
        type=_format_arg,
        default="console",
        help="Output format: console, json or har (default: console)",
    )
    parser.add_argument(
        "-A",
        "--assertion",
        action="append",
        dest="assertions",
        metavar="EXPR",
        help="Assertion expression, e.g. 'Outcome.status_code == 200' (can be repeated)",
    )
    parser.add_argument(
        "-a",
        "--annotation",
        action="append",
        dest="annotations",
        metavar="EXPR",
        help="Annotation expression, printed with the results (can be repeated)",
    )
    parser.add_argument("-c", "--config", help="YAML file with one or more request definitions")
    parser.add_argument("-s", "--skip-ssl", action="store_true", dest="skip_ssl", help="Skip TLS certificate verification")
    parser.add_argument("--http2", action="store_true", help="Allow HTTP/2 (negotiated via ALPN)")
    parser.add_argument("--no-color", action="store_true", dest="no_color", help="Disable coloured console output")
    parser.add_argument("-v", "--version", action="version", version=f"redprobe {__version__}")
    return parser


def _specs_from_args(args: argparse.Namespace) -> list[RequestSpec]:
    if args.config:
        return load_config(args.config)
    if not args.url:
        raise RedProbeConfigError("-u/--url or -c/--config is required")
    spec = build_request_spec(
        url=args.url,
        method=args.method,
        headers=parse_header_args(args.headers),
        body=_read_body(),
        timeout=args.timeout,
        skip_ssl=args.skip_ssl,
        http2=args.http2,
        assertions=args.assertions,
        annotations=args.annotations,
    )
    return [spec]


def _emit(outcomes: list[Outcome], fmt: str, color: bool) -> None:
    if fmt == "json":
        sys.stdout.buffer.write(dumps_outcomes(outcomes) + b"\n")
        sys.stdout.flush()
    elif fmt == "har":
        sys.stdout.buffer.write(dumps_har(outcomes) + b"\n")
        sys.stdout.flush()
    else:
        render_outcomes(build_console(color=color), outcomes)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    def handle_error(e: BaseException) -> int:
        if isinstance(e, RedProbeError):
            print(f"Error: {e.summary()}", file=sys.stderr)
            return EXIT_FAILURE
        logger.exception("Unexpected error")
        print("Error: An unexpected error occurred. Check logs for details.", file=sys.stderr)
        return EXIT_FAILURE

    try:
        specs = _specs_from_args(args)
    except RedProbeConfigError as e:
        if not args.url and not args.config:
            parser.print_usage(sys.stderr)
        return handle_error(e)

    try:
        outcomes = _run_async(run_probes(specs, keep_response=args.format == "har"))
        _emit(outcomes, args.format, color=not args.no_color)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        return handle_error(e)
    return EXIT_OK if all_successful(outcomes) else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
