"""Phase tracer: turns transport lifecycle notifications into phase durations.

httpcore reports lifecycle events through the ``trace`` request extension.
Each notification stamps one phase with ``perf_counter_ns()`` the first time
it is seen; repeats are ignored, so a duplicated event can never move a
timestamp. Name resolution is not reported separately by httpcore (it is part
of connect_tcp), so the executor stamps the DNS phase around its own lookup.

Durations are derived on demand and clamped at zero. A missing instant, for
example a request that died before TLS, yields a zero duration rather than an
error.
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any

from .models import ZERO, Metrics, PhaseTimestamps

# httpcore event name -> PhaseTimestamps field
_TRACE_EVENTS: dict[str, str] = {
    "connection.connect_tcp.started": "connect_start",
    "connection.connect_tcp.complete": "connect_done",
    "connection.connect_tcp.failed": "connect_done",
    "connection.start_tls.started": "tls_start",
    "connection.start_tls.complete": "tls_done",
    "connection.start_tls.failed": "tls_done",
    "http11.receive_response_headers.complete": "first_byte",
    "http2.receive_response_headers.complete": "first_byte",
}


def _between(start: int | None, end: int | None) -> timedelta:
    if start is None or end is None or end <= start:
        return ZERO
    return timedelta(microseconds=(end - start) / 1000)


class PhaseTracer:
    """Collects the phase timestamps of exactly one attempt.

    A fresh tracer is created per attempt; it must not be reused.
    """

    __slots__ = ("timestamps",)

    def __init__(self) -> None:
        self.timestamps = PhaseTimestamps()

    def _mark(self, phase: str) -> None:
        if getattr(self.timestamps, phase) is None:
            setattr(self.timestamps, phase, time.perf_counter_ns())

    # Notification entry points

    def begin(self) -> None:
        self._mark("start")

    def dns_start(self) -> None:
        self._mark("dns_start")

    def dns_done(self) -> None:
        self._mark("dns_done")

    def connect_start(self) -> None:
        self._mark("connect_start")

    def connect_done(self) -> None:
        self._mark("connect_done")

    def tls_start(self) -> None:
        self._mark("tls_start")

    def tls_done(self) -> None:
        self._mark("tls_done")

    def first_byte(self) -> None:
        self._mark("first_byte")

    def stop(self) -> None:
        """Mark transfer completion. Must be called once the body is drained (or its read failed)."""
        self._mark("complete")

    # Transport binding

    async def trace(self, event_name: str, info: dict[str, Any]) -> None:
        """httpcore ``trace`` extension callback."""
        phase = _TRACE_EVENTS.get(event_name)
        if phase is not None:
            self._mark(phase)

    def extensions(self, sni_hostname: str | None = None) -> dict[str, Any]:
        """Request extensions that bind this tracer to one httpx request."""
        ext: dict[str, Any] = {"trace": self.trace}
        if sni_hostname:
            ext["sni_hostname"] = sni_hostname
        return ext

    # Derived durations

    def dns(self) -> timedelta:
        return _between(self.timestamps.dns_start, self.timestamps.dns_done)

    def conn(self) -> timedelta:
        return _between(self.timestamps.connect_start, self.timestamps.connect_done)

    def tls(self) -> timedelta:
        return _between(self.timestamps.tls_start, self.timestamps.tls_done)

    def ttfb(self) -> timedelta:
        """First byte relative to the end of the handshake (TLS if one started, else TCP)."""
        ts = self.timestamps
        anchor = ts.tls_done if ts.tls_start is not None else ts.connect_done
        return _between(anchor, ts.first_byte)

    def transfer(self) -> timedelta:
        return _between(self.timestamps.first_byte, self.timestamps.complete)

    def rt(self) -> timedelta:
        return _between(self.timestamps.start, self.timestamps.complete)

    def metrics(self) -> Metrics:
        return Metrics(
            dns=self.dns(),
            conn=self.conn(),
            tls=self.tls(),
            ttfb=self.ttfb(),
            transfer=self.transfer(),
            rt=self.rt(),
        )
