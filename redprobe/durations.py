"""Duration parsing and formatting.

Two input forms are accepted wherever a duration is configured: a bare
number, taken as a raw count of nanoseconds, and a human-readable string made
of ``<number><unit>`` groups such as ``"5s"``, ``"1m30s"`` or ``"250ms"``.
"""

from __future__ import annotations

import re
from datetime import timedelta

from .models import ZERO

_NS_PER_UNIT: dict[str, float] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # micro sign
    "μs": 1_000,  # greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_GROUP = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_US = timedelta(microseconds=1)


def _from_nanoseconds(ns: float) -> timedelta:
    # timedelta resolution is 1µs; a positive value never rounds down to zero (zero means no deadline).
    value = timedelta(microseconds=ns / 1000)
    return _US if ns > 0 and value == ZERO else value


def parse_duration(value: object) -> timedelta:
    """Parse a duration from a nanosecond count, a duration string or a timedelta.

    Raises:
        ValueError: If the value is negative or not a recognised form.
    """
    if isinstance(value, timedelta):
        if value < ZERO:
            raise ValueError(f"duration must not be negative: {value}")
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"duration must not be negative: {value}")
        return _from_nanoseconds(value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")

    text = value.strip()
    if text.startswith("+"):
        text = text[1:]
    if text == "0":
        return ZERO
    if not text:
        raise ValueError("invalid duration: empty string")

    total_ns = 0.0
    pos = 0
    while pos < len(text):
        match = _GROUP.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration: {value!r}")
        total_ns += float(match.group(1)) * _NS_PER_UNIT[match.group(2)]
        pos = match.end()
    return _from_nanoseconds(total_ns)


def format_duration(value: timedelta) -> str:
    """Compact human form: ``0s``, ``850µs``, ``12.5ms``, ``3.004s``, ``1m30s``."""
    us = value // _US
    if us == 0:
        return "0s"
    sign = "-" if us < 0 else ""
    us = abs(us)
    if us < 1_000:
        return f"{sign}{us}µs"
    if us < 1_000_000:
        return f"{sign}{_trim(us / 1_000)}ms"
    if us < 60_000_000:
        return f"{sign}{_trim(us / 1_000_000)}s"
    hours, rem = divmod(us, 3_600_000_000)
    minutes, rem = divmod(rem, 60_000_000)
    out = f"{sign}{hours}h" if hours else sign
    return f"{out}{minutes}m{_trim(rem / 1_000_000)}s"


def duration_nanoseconds(value: timedelta) -> int:
    """Integer nanoseconds, the unit used in serialized documents."""
    return (value // _US) * 1000


def _trim(number: float) -> str:
    return f"{number:.6f}".rstrip("0").rstrip(".")
