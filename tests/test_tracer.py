"""Unit tests for the phase tracer."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import patch

from redprobe.models import Metrics
from redprobe.tracer import PhaseTracer

MS = 1_000_000  # nanoseconds


def _tracer(**instants: int) -> PhaseTracer:
    tracer = PhaseTracer()
    for phase, value in instants.items():
        setattr(tracer.timestamps, phase, value)
    return tracer


def test_fresh_tracer_reports_zero_metrics() -> None:
    assert PhaseTracer().metrics() == Metrics.zero()


def test_durations_for_https_attempt() -> None:
    t = _tracer(
        start=0,
        dns_start=1 * MS,
        dns_done=11 * MS,
        connect_start=12 * MS,
        connect_done=32 * MS,
        tls_start=33 * MS,
        tls_done=63 * MS,
        first_byte=100 * MS,
        complete=150 * MS,
    )
    m = t.metrics()
    assert m.dns == timedelta(milliseconds=10)
    assert m.conn == timedelta(milliseconds=20)
    assert m.tls == timedelta(milliseconds=30)
    assert m.ttfb == timedelta(milliseconds=37)  # from TLS done
    assert m.transfer == timedelta(milliseconds=50)
    assert m.rt == timedelta(milliseconds=150)


def test_ttfb_anchored_on_connect_without_tls() -> None:
    t = _tracer(connect_start=0, connect_done=5 * MS, first_byte=25 * MS)
    assert t.tls() == timedelta(0)
    assert t.ttfb() == timedelta(milliseconds=20)


def test_ttfb_zero_when_tls_started_but_never_finished() -> None:
    t = _tracer(connect_done=5 * MS, tls_start=6 * MS, first_byte=25 * MS)
    assert t.ttfb() == timedelta(0)
    assert t.tls() == timedelta(0)


def test_transfer_and_rt_zero_without_stop() -> None:
    t = _tracer(start=0, first_byte=10 * MS)
    assert t.transfer() == timedelta(0)
    assert t.rt() == timedelta(0)


def test_out_of_order_instants_clamp_to_zero() -> None:
    t = _tracer(dns_start=10 * MS, dns_done=5 * MS, first_byte=50 * MS, complete=40 * MS)
    m = t.metrics()
    assert m.dns == timedelta(0)
    assert m.transfer == timedelta(0)


def test_every_metric_non_negative() -> None:
    t = _tracer(start=90, dns_start=80, dns_done=70, connect_start=60, connect_done=50,
                tls_start=40, tls_done=30, first_byte=20, complete=10)
    m = t.metrics()
    for value in (m.dns, m.conn, m.tls, m.ttfb, m.transfer, m.rt):
        assert value >= timedelta(0)


def test_marks_are_write_once() -> None:
    tracer = PhaseTracer()
    with patch("redprobe.tracer.time.perf_counter_ns", side_effect=[100, 200]):
        tracer.dns_start()
        tracer.dns_start()
        tracer.dns_done()
    assert tracer.timestamps.dns_start == 100
    assert tracer.timestamps.dns_done == 200


def test_trace_events_map_to_phases() -> None:
    tracer = PhaseTracer()

    async def _feed() -> None:
        for name in (
            "connection.connect_tcp.started",
            "connection.connect_tcp.complete",
            "connection.start_tls.started",
            "connection.start_tls.complete",
            "http11.send_request_headers.started",
            "http11.receive_response_headers.started",
            "http11.receive_response_headers.complete",
        ):
            await tracer.trace(name, {})

    asyncio.run(_feed())
    ts = tracer.timestamps
    assert ts.connect_start is not None
    assert ts.connect_done is not None
    assert ts.tls_start is not None
    assert ts.tls_done is not None
    assert ts.first_byte is not None
    assert ts.connect_start <= ts.connect_done <= ts.tls_start <= ts.tls_done <= ts.first_byte
    assert ts.complete is None


def test_failed_connect_still_closes_phase() -> None:
    tracer = PhaseTracer()
    asyncio.run(tracer.trace("connection.connect_tcp.started", {}))
    asyncio.run(tracer.trace("connection.connect_tcp.failed", {"exception": OSError()}))
    assert tracer.timestamps.connect_done is not None


def test_http2_first_byte_event() -> None:
    tracer = PhaseTracer()
    asyncio.run(tracer.trace("http2.receive_response_headers.complete", {}))
    assert tracer.timestamps.first_byte is not None


def test_unknown_events_ignored() -> None:
    tracer = PhaseTracer()
    asyncio.run(tracer.trace("http11.response_closed.complete", {}))
    assert tracer.metrics() == Metrics.zero()


def test_extensions_bind_trace_and_sni() -> None:
    tracer = PhaseTracer()
    ext = tracer.extensions(sni_hostname="api.example.com")
    assert ext["trace"] == tracer.trace
    assert ext["sni_hostname"] == "api.example.com"
    assert "sni_hostname" not in tracer.extensions()
