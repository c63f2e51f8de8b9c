"""HTTP Archive (HAR 1.2) export.

Response headers, body and cookies are only present when the probe ran with
response retention; otherwise entries carry empty response detail.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Sequence
from urllib.parse import parse_qsl, urlparse

from . import __version__
from .models import Metrics, Outcome, ResponseCookie
from .report import dumps_document

HAR_VERSION = "1.2"
CREATOR_NAME = "redprobe"
DEFAULT_HTTP_VERSION = "HTTP/1.1"

_MS = timedelta(milliseconds=1)


def _ms(value: timedelta) -> int:
    return int(value / _MS)


def _pairs(items: Any) -> list[dict[str, str]]:
    return [{"name": name, "value": value} for name, value in items]


def _cookie(cookie: ResponseCookie) -> dict[str, Any]:
    return {
        "name": cookie.name,
        "value": cookie.value,
        "path": cookie.path,
        "domain": cookie.domain,
        "expires": cookie.expires.isoformat() if cookie.expires else None,
        "httpOnly": cookie.http_only,
        "secure": cookie.secure,
    }


def har_timings(metrics: Metrics) -> dict[str, int]:
    """Map probe phases onto HAR timing buckets (milliseconds)."""
    return {
        "blocked": 0,
        "dns": _ms(metrics.dns),
        "connect": _ms(metrics.conn),
        "send": 0,
        "wait": _ms(metrics.ttfb),
        "receive": _ms(metrics.transfer),
        "ssl": _ms(metrics.tls),
    }


def har_entry(outcome: Outcome) -> dict[str, Any]:
    spec = outcome.request
    detail = outcome.response
    http_version = detail.http_version if detail and detail.http_version else DEFAULT_HTTP_VERSION

    request: dict[str, Any] = {
        "method": spec.method,
        "url": spec.url,
        "httpVersion": http_version,
        "headers": _pairs(spec.headers.items()),
        "queryString": _pairs(parse_qsl(urlparse(spec.url).query, keep_blank_values=True)),
        "cookies": [],
        "headersSize": -1,
        "bodySize": len(spec.body),
    }
    if spec.body:
        request["postData"] = {
            "mimeType": spec.content_type(),
            "text": spec.body.decode("utf-8", errors="replace"),
        }

    body = detail.body if detail else b""
    response: dict[str, Any] = {
        "status": outcome.status_code,
        "statusText": detail.status_text if detail else "",
        "httpVersion": http_version,
        "headers": _pairs(detail.headers) if detail else [],
        "cookies": [_cookie(c) for c in detail.cookies] if detail else [],
        "redirectURL": detail.header("location") if detail else "",
        "headersSize": -1,
        "bodySize": len(body) if detail else outcome.size,
        "content": {
            "size": len(body) if detail else outcome.size,
            "mimeType": detail.header("content-type") if detail else "",
            "text": body.decode("utf-8", errors="replace"),
        },
    }

    entry: dict[str, Any] = {
        "startedDateTime": outcome.start_time.isoformat(),
        "time": _ms(outcome.metrics.rt),
        "request": request,
        "response": response,
        "cache": {},
        "timings": har_timings(outcome.metrics),
    }
    if outcome.ip_address:
        entry["serverIPAddress"] = outcome.ip_address
    if outcome.error is not None:
        entry["comment"] = str(outcome.error)
    return entry


def to_har(outcomes: Sequence[Outcome]) -> dict[str, Any]:
    return {
        "log": {
            "version": HAR_VERSION,
            "creator": {"name": CREATOR_NAME, "version": __version__},
            "entries": [har_entry(o) for o in outcomes],
        }
    }


def dumps_har(outcomes: Sequence[Outcome]) -> bytes:
    return dumps_document(to_har(outcomes))
