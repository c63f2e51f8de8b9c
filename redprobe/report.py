"""Structured document export of Outcomes (JSON via orjson).

Field names are stable and shared with other tooling: ``request``,
``startTime``, ``ip_address``, ``statusCode``, ``size``, ``metrics``,
``error``, ``annotations``, ``checks``. Durations are integer nanoseconds.
Raw response detail (headers, body, cookies) is never part of this document;
it only feeds the HAR export.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Sequence

import orjson

from .durations import duration_nanoseconds
from .exceptions import RedProbeOutputError
from .models import Annotation, Check, Metrics, Outcome, RequestSpec, TransportError

_METRIC_KEYS = (
    ("DNS", "dns"),
    ("conn", "conn"),
    ("TLS", "tls"),
    ("TTFB", "ttfb"),
    ("transfer", "transfer"),
    ("rt", "rt"),
)


def request_to_document(spec: RequestSpec) -> dict[str, Any]:
    return {
        "method": spec.method,
        "url": spec.url,
        "headers": dict(spec.headers),
        "body": spec.body.decode("utf-8", errors="replace"),
        "timeout": duration_nanoseconds(spec.timeout),
        "assertions": list(spec.assertions),
        "annotations": list(spec.annotations),
        "skipSSL": spec.skip_ssl,
        "http2": spec.http2,
    }


def metrics_to_document(metrics: Metrics) -> dict[str, int]:
    return {key: duration_nanoseconds(getattr(metrics, attr)) for key, attr in _METRIC_KEYS}


def outcome_to_document(outcome: Outcome) -> dict[str, Any]:
    return {
        "request": request_to_document(outcome.request),
        "startTime": outcome.start_time,
        "ip_address": outcome.ip_address,
        "statusCode": outcome.status_code,
        "size": outcome.size,
        "metrics": metrics_to_document(outcome.metrics),
        "error": str(outcome.error) if outcome.error is not None else None,
        "annotations": [{"annotation": a.annotation, "text": a.text} for a in outcome.annotations],
        "checks": [{"success": c.success, "output": c.output, "assertion": c.assertion} for c in outcome.checks],
    }


def _ns(value: Any) -> timedelta:
    return timedelta(microseconds=int(value or 0) / 1000)


def outcome_from_document(doc: dict[str, Any]) -> Outcome:
    """Rebuild an Outcome from ``outcome_to_document`` output (decoded JSON)."""
    req = doc.get("request") or {}
    spec = RequestSpec(
        method=req.get("method", "GET"),
        url=req.get("url", ""),
        headers=req.get("headers") or {},
        body=(req.get("body") or "").encode("utf-8"),
        timeout=_ns(req.get("timeout")),
        assertions=tuple(req.get("assertions") or ()),
        annotations=tuple(req.get("annotations") or ()),
        skip_ssl=bool(req.get("skipSSL", False)),
        http2=bool(req.get("http2", False)),
    )
    start = doc.get("startTime")
    raw_metrics = doc.get("metrics") or {}
    error = doc.get("error")
    return Outcome(
        request=spec,
        start_time=datetime.fromisoformat(start) if isinstance(start, str) else start,
        ip_address=doc.get("ip_address", ""),
        status_code=int(doc.get("statusCode", 0)),
        size=int(doc.get("size", 0)),
        metrics=Metrics(**{attr: _ns(raw_metrics.get(key)) for key, attr in _METRIC_KEYS}),
        error=TransportError(error) if error else None,
        annotations=tuple(Annotation(a["annotation"], a.get("text")) for a in doc.get("annotations") or ()),
        checks=tuple(Check(c["success"], c.get("output"), c["assertion"]) for c in doc.get("checks") or ()),
    )


def _default(obj: Any) -> Any:
    if isinstance(obj, timedelta):
        return duration_nanoseconds(obj)
    if isinstance(obj, (bytes, bytearray)):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def dumps_document(payload: Any) -> bytes:
    """Pretty JSON bytes. Values JSON has no type for fall back to a string form."""
    try:
        return orjson.dumps(payload, default=_default, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise RedProbeOutputError(f"Could not encode output: {e}", original_error=e) from e


def dumps_outcomes(outcomes: Sequence[Outcome]) -> bytes:
    """One outcome encodes as an object, several as an array."""
    docs = [outcome_to_document(o) for o in outcomes]
    return dumps_document(docs[0] if len(docs) == 1 else docs)
