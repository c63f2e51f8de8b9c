"""Request definitions from CLI arguments or a YAML configuration file.

A config file holds one request definition per YAML document:

    method: POST
    url: https://api.example.com/orders
    headers:
      Content-Type: application/json
    body: '{"id": 1}'
    timeout: 2s
    assertions:
      - Outcome.status_code == 201
    ---
    url: https://api.example.com/health

A document may also be a list of definitions. Every definition is validated
before anything runs; the first problem raises RedProbeConfigError.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import urlparse

import yaml

from .durations import parse_duration
from .exceptions import RedProbeConfigError
from .logging_config import get_logger
from .models import RequestSpec

logger = get_logger("config")

DEFAULT_METHOD = "GET"
DEFAULT_TIMEOUT = "5s"
SUPPORTED_SCHEMES = frozenset({"http", "https"})


def parse_timeout(value: Any) -> timedelta:
    """Parse a timeout (nanosecond count or duration string). Raises RedProbeConfigError."""
    try:
        return parse_duration(value)
    except ValueError as e:
        raise RedProbeConfigError(
            f"Invalid timeout: {e}", context={"timeout": value}, original_error=e
        ) from e


def parse_header_args(values: Iterable[str] | None) -> dict[str, str]:
    """Turn ``["Name: value", ...]`` into a dict. Entries without a colon are ignored."""
    headers: list[tuple[str, str]] = []
    for raw in values or ():
        name, sep, value = raw.partition(":")
        if not sep:
            logger.debug("Ignoring header without colon: %r", raw)
            continue
        headers.append((name.strip(), value.strip()))
    # RequestSpec collapses case-insensitive duplicates, last wins.
    return dict(headers)


def validate_url(url: str | None) -> str:
    """Return the stripped URL or raise RedProbeConfigError."""
    url = (url or "").strip()
    if not url:
        raise RedProbeConfigError("URL is required")
    parsed = urlparse(url)
    if parsed.scheme.lower() not in SUPPORTED_SCHEMES or not parsed.netloc:
        raise RedProbeConfigError(f"Invalid URL: {url}", context={"url": url})
    return url


def build_request_spec(
    url: str | None,
    method: str = DEFAULT_METHOD,
    headers: dict[str, str] | None = None,
    body: bytes | str = b"",
    timeout: Any = DEFAULT_TIMEOUT,
    skip_ssl: bool = False,
    http2: bool = False,
    assertions: Iterable[str] | None = None,
    annotations: Iterable[str] | None = None,
) -> RequestSpec:
    """Build a validated RequestSpec.

    Raises:
        RedProbeConfigError: Missing/invalid URL or unparsable timeout
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    return RequestSpec(
        method=(method or DEFAULT_METHOD),
        url=validate_url(url),
        headers=dict(headers or {}),
        body=body or b"",
        timeout=parse_timeout(timeout),
        assertions=tuple(str(a) for a in assertions or ()),
        annotations=tuple(str(a) for a in annotations or ()),
        skip_ssl=bool(skip_ssl),
        http2=bool(http2),
    )


def _string_list(entry: dict[str, Any], key: str) -> list[str]:
    value = entry.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise RedProbeConfigError(f"'{key}' must be a list of expressions")
    return [str(v) for v in value]


def spec_from_entry(entry: Any) -> RequestSpec:
    """Build a RequestSpec from one decoded config entry."""
    if not isinstance(entry, dict):
        raise RedProbeConfigError(
            "Request definition must be a YAML mapping",
            context={"actual_type": type(entry).__name__},
        )
    headers = entry.get("headers") or {}
    if not isinstance(headers, dict):
        raise RedProbeConfigError("'headers' must be a mapping of name to value")
    body = entry.get("body")
    skip_ssl = entry.get("skipSSL", entry.get("skip_ssl", False))
    return build_request_spec(
        url=entry.get("url"),
        method=str(entry.get("method") or DEFAULT_METHOD),
        headers={str(k): "" if v is None else str(v) for k, v in headers.items()},
        body="" if body is None else str(body),
        timeout=entry.get("timeout", DEFAULT_TIMEOUT),
        skip_ssl=bool(skip_ssl),
        http2=bool(entry.get("http2", False)),
        assertions=_string_list(entry, "assertions"),
        annotations=_string_list(entry, "annotations"),
    )


def load_config(path: str | Path) -> list[RequestSpec]:
    """Load request definitions from a YAML file.

    Args:
        path: Path to the YAML file (one definition per document)

    Returns:
        RequestSpecs in file order

    Raises:
        RedProbeConfigError: If the file is missing, unreadable, invalid YAML,
            empty, or any definition is invalid
    """
    p = Path(path)
    if not p.exists():
        raise RedProbeConfigError(f"Config file not found: {path}", context={"path": str(path)})

    try:
        documents = list(yaml.safe_load_all(p.read_text(encoding="utf-8")))
    except yaml.YAMLError as e:
        logger.exception("Failed to parse YAML config file")
        raise RedProbeConfigError(
            f"Invalid YAML syntax in config file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    except OSError as e:
        logger.exception("Failed to read config file")
        raise RedProbeConfigError(
            f"Cannot read config file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    entries: list[Any] = []
    for doc in documents:
        if doc is None:
            continue
        entries.extend(doc if isinstance(doc, list) else [doc])
    if not entries:
        raise RedProbeConfigError("Config file contains no request definitions", context={"path": str(path)})

    specs: list[RequestSpec] = []
    for index, entry in enumerate(entries):
        try:
            specs.append(spec_from_entry(entry))
        except RedProbeConfigError as e:
            raise e.with_context(path=str(path), entry=index + 1)
    logger.debug("Loaded %d request definitions from %s", len(specs), path)
    return specs
