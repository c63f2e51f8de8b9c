"""Data models for redprobe.

Everything a caller receives is immutable: frozen dataclasses with slots,
tuples instead of lists. One RequestSpec in, one Outcome out per attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable

ZERO = timedelta(0)


def normalize_headers(headers: dict[str, str] | Iterable[tuple[str, str]] | None) -> dict[str, str]:
    """Collapse header names case-insensitively; a later duplicate replaces the earlier one.

    The spelling of the surviving (last) key is kept as supplied.
    """
    if not headers:
        return {}
    items = headers.items() if isinstance(headers, dict) else headers
    by_lower: dict[str, tuple[str, str]] = {}
    for name, value in items:
        key = str(name)
        by_lower.pop(key.lower(), None)
        by_lower[key.lower()] = (key, str(value))
    return dict(by_lower.values())


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """One request definition, from CLI arguments or a config document."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    timeout: timedelta = timedelta(seconds=5)  # ZERO = no deadline
    assertions: tuple[str, ...] = ()
    annotations: tuple[str, ...] = ()
    skip_ssl: bool = False
    http2: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", (self.method or "GET").strip().upper())
        object.__setattr__(self, "headers", normalize_headers(self.headers))
        object.__setattr__(self, "assertions", tuple(self.assertions))
        object.__setattr__(self, "annotations", tuple(self.annotations))

    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""


@dataclass(slots=True)
class PhaseTimestamps:
    """Monotonic instants (perf_counter_ns) for one attempt. None = phase not reached."""

    start: int | None = None
    dns_start: int | None = None
    dns_done: int | None = None
    connect_start: int | None = None
    connect_done: int | None = None
    tls_start: int | None = None
    tls_done: int | None = None
    first_byte: int | None = None
    complete: int | None = None


@dataclass(frozen=True, slots=True)
class Metrics:
    """Per-phase durations of one attempt. Never negative."""

    dns: timedelta = ZERO
    conn: timedelta = ZERO
    tls: timedelta = ZERO
    ttfb: timedelta = ZERO
    transfer: timedelta = ZERO
    rt: timedelta = ZERO

    @classmethod
    def zero(cls) -> "Metrics":
        return cls()


@dataclass(frozen=True, slots=True)
class Check:
    """Result of one assertion expression."""

    success: bool
    output: Any
    assertion: str


@dataclass(frozen=True, slots=True)
class Annotation:
    """Result of one informational expression. Never affects success."""

    annotation: str
    text: Any


@dataclass(frozen=True, slots=True)
class TransportError:
    """Failure of the HTTP attempt itself (DNS, connect, TLS, timeout, body read)."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class ResponseCookie:
    name: str
    value: str
    path: str = ""
    domain: str = ""
    expires: datetime | None = None
    http_only: bool = False
    secure: bool = False


@dataclass(frozen=True, slots=True)
class ResponseDetail:
    """Raw response detail. Kept on the Outcome only when archive export needs it."""

    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""
    http_version: str = ""
    status_text: str = ""
    cookies: tuple[ResponseCookie, ...] = ()

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup; repeated headers are comma-joined."""
        wanted = name.lower()
        values = [v for k, v in self.headers if k.lower() == wanted]
        return ", ".join(values) if values else default


@dataclass(frozen=True, slots=True)
class Outcome:
    """Terminal record of one attempt."""

    request: RequestSpec
    start_time: datetime
    ip_address: str = ""
    status_code: int = 0
    size: int = 0
    metrics: Metrics = field(default_factory=Metrics)
    error: TransportError | None = None
    annotations: tuple[Annotation, ...] = ()
    checks: tuple[Check, ...] = ()
    response: ResponseDetail | None = None

    @property
    def is_success(self) -> bool:
        """No transport error and every check passed (true when there are no checks)."""
        if self.error is not None:
            return False
        return all(check.success for check in self.checks)


class ResultKind(str, Enum):
    """Dynamic type of an evaluated expression."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    STRING = "string"
    UNCLASSIFIED = "unclassified"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ExpressionResult:
    """Classified result of one expression; `value` holds the error text for ERROR."""

    kind: ResultKind
    value: Any
    success: bool = False
