"""Pytest fixtures for redprobe tests."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Iterator

import httpx
import pytest

from redprobe.models import Metrics, Outcome, RequestSpec, ResponseDetail

# IP literal: the executor skips name resolution, so tests never touch DNS.
LOCAL_URL = "http://127.0.0.1:8080/health"


@pytest.fixture
def tmp_path_config(tmp_path: Path) -> Path:
    """Two request definitions in one YAML file (two documents)."""
    content = """
method: post
url: https://api.example.com/orders?debug=1
headers:
  Content-Type: application/json
body: '{"id": 1}'
timeout: 2s
assertions:
  - Outcome.status_code == 201
annotations:
  - Outcome.size
skipSSL: true
---
url: https://api.example.com/health
"""
    p = tmp_path / "probes.yaml"
    p.write_text(content, encoding="utf-8")
    return p


@pytest.fixture
def make_outcome() -> Callable[..., Outcome]:
    """Factory for Outcomes built without any network."""

    def _make(
        status_code: int = 200,
        body: bytes = b"",
        headers: tuple[tuple[str, str], ...] = (),
        metrics: Metrics | None = None,
        spec: RequestSpec | None = None,
        **kwargs: Any,
    ) -> Outcome:
        return Outcome(
            request=spec or RequestSpec(method="GET", url=LOCAL_URL),
            start_time=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
            ip_address="127.0.0.1",
            status_code=status_code,
            size=len(body),
            metrics=metrics or Metrics(dns=timedelta(milliseconds=3), ttfb=timedelta(milliseconds=40)),
            response=ResponseDetail(
                headers=headers,
                body=body,
                http_version="HTTP/1.1",
                status_text="OK" if status_code == 200 else "",
            ),
            **kwargs,
        )

    return _make


@pytest.fixture
def mock_transport() -> Callable[..., httpx.MockTransport]:
    """MockTransport returning a fixed response and recording the requests it saw."""

    def _make(
        status_code: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | list[tuple[str, str]] | None = None,
        seen: list[httpx.Request] | None = None,
    ) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            if seen is not None:
                seen.append(request)
            return httpx.Response(status_code, content=content, headers=headers)

        return httpx.MockTransport(handler)

    return _make


class _TimedHandler(BaseHTTPRequestHandler):
    """Fixed latencies so every phase of a loopback request is measurable.

    /        10ms before headers, 20ms before the body
    /slow    headers at once, then one body byte every 100ms
    """

    protocol_version = "HTTP/1.1"

    def do_GET(self) -> None:  # noqa: N802
        try:
            if self.path == "/slow":
                self._drip()
            else:
                self._delayed()
        except OSError:
            # Client gave up (timeout tests).
            pass

    def _delayed(self) -> None:
        body = b'{"status": "up"}'
        time.sleep(0.01)
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.flush()
        time.sleep(0.02)
        self.wfile.write(body)

    def _drip(self) -> None:
        self.send_response(200)
        self.send_header("Content-Length", "20")
        self.end_headers()
        self.wfile.flush()
        for _ in range(20):
            time.sleep(0.1)
            self.wfile.write(b"x")
            self.wfile.flush()

    def log_message(self, format: str, *args: Any) -> None:
        pass


@pytest.fixture
def local_server() -> Iterator[str]:
    """Real HTTP server on 127.0.0.1 (ephemeral port); yields its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _TimedHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
