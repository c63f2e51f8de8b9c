"""Request executor: one HTTP attempt in, one Outcome out.

Each attempt gets its own PhaseTracer and its own AsyncClient, so nothing is
shared between attempts and every attempt opens a fresh connection. The
attempt never raises for network reasons: DNS failures, refused connections,
TLS errors, the deadline and broken bodies all end up in ``Outcome.error``
next to whatever timings were captured before the failure.

Name resolution is done here rather than inside httpcore so the DNS phase can
be timed on its own. The request is then sent to the resolved address with
the original Host header and the original hostname as TLS SNI, so virtual
hosting and certificate verification behave as for a normal request.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from http.cookies import CookieError, SimpleCookie

import httpx

from .assertions import finalize_outcome
from .durations import format_duration
from .logging_config import get_logger
from .models import ZERO, Outcome, RequestSpec, ResponseCookie, ResponseDetail, TransportError
from .tracer import PhaseTracer

logger = get_logger("engine")

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(slots=True)
class _Attempt:
    """Scratch state filled in while the attempt runs; frozen into an Outcome afterwards."""

    ip_address: str = ""
    status_code: int = 0
    body: bytearray = field(default_factory=bytearray)
    headers: tuple[tuple[str, str], ...] = ()
    http_version: str = ""
    status_text: str = ""
    cookies: tuple[ResponseCookie, ...] = ()
    error: TransportError | None = None


def create_client(spec: RequestSpec, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Client for a single attempt.

    The deadline is enforced around the whole attempt by execute_request, so
    httpx's own per-operation timeouts are disabled. Environment proxies are
    ignored: the request is sent straight to the resolved address.
    """
    return httpx.AsyncClient(
        http2=spec.http2,
        verify=not spec.skip_ssl,
        timeout=None,
        trust_env=False,
        follow_redirects=False,
        transport=transport,
    )


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


async def resolve_host(host: str, port: int, tracer: PhaseTracer) -> str:
    """Resolve ``host`` to a single address, timing the lookup as the DNS phase.

    IP literals are returned as-is and record no DNS phase.
    """
    if _is_ip_literal(host):
        return host
    loop = asyncio.get_running_loop()
    tracer.dns_start()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    finally:
        tracer.dns_done()
    if not infos:
        raise socket.gaierror(f"no address found for {host}")
    return str(infos[0][4][0])


def parse_set_cookies(headers: httpx.Headers) -> tuple[ResponseCookie, ...]:
    """Parse every Set-Cookie header. Malformed cookies are skipped."""
    cookies: list[ResponseCookie] = []
    for raw in headers.get_list("set-cookie"):
        jar: SimpleCookie = SimpleCookie()
        try:
            jar.load(raw)
        except CookieError:
            logger.debug("Skipping malformed Set-Cookie header: %r", raw)
            continue
        for morsel in jar.values():
            cookies.append(
                ResponseCookie(
                    name=morsel.key,
                    value=morsel.value,
                    path=morsel["path"],
                    domain=morsel["domain"],
                    expires=_parse_expires(morsel["expires"]),
                    http_only=bool(morsel["httponly"]),
                    secure=bool(morsel["secure"]),
                )
            )
    return tuple(cookies)


def _parse_expires(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


async def _perform(client: httpx.AsyncClient, spec: RequestSpec, tracer: PhaseTracer, attempt: _Attempt) -> None:
    url = httpx.URL(spec.url)
    if url.scheme not in DEFAULT_PORTS:
        raise httpx.UnsupportedProtocol(f"unsupported URL scheme {url.scheme!r}")
    host = url.host
    if not host:
        raise httpx.InvalidURL(f"no host in URL {spec.url!r}")
    address = await resolve_host(host, url.port or DEFAULT_PORTS.get(url.scheme, 80), tracer)
    attempt.ip_address = address

    headers = dict(spec.headers)
    target = url
    sni_hostname = None
    if address != host:
        target = url.copy_with(host=address)
        sni_hostname = host
        if not any(name.lower() == "host" for name in headers):
            headers["Host"] = url.netloc.decode("ascii")

    request = client.build_request(
        spec.method,
        target,
        headers=headers,
        content=spec.body or None,
        extensions=tracer.extensions(sni_hostname=sni_hostname),
    )
    response = await client.send(request, stream=True)
    try:
        attempt.status_code = response.status_code
        attempt.http_version = response.http_version
        attempt.status_text = response.reason_phrase
        attempt.headers = tuple(response.headers.multi_items())
        attempt.cookies = parse_set_cookies(response.headers)
        try:
            async for chunk in response.aiter_bytes():
                attempt.body.extend(chunk)
        finally:
            # No transport event marks the end of the body.
            tracer.stop()
    finally:
        await response.aclose()


async def execute_request(
    spec: RequestSpec,
    *,
    keep_response: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Outcome:
    """Perform exactly one HTTP attempt and return its finalized Outcome.

    Args:
        spec: The request to perform
        keep_response: Keep headers, body, cookies, protocol and status text on
            the Outcome (needed for archive export); dropped otherwise once
            annotations and assertions have been evaluated
        transport: Optional httpx transport replacing the network (tests)

    Returns:
        Outcome with metrics, annotations and checks. Never raises for
        transport failures; they are recorded in ``Outcome.error``.
    """
    tracer = PhaseTracer()
    attempt = _Attempt()
    logger.debug("Starting %s %s (timeout=%s)", spec.method, spec.url, format_duration(spec.timeout))

    async with create_client(spec, transport) as client:
        # Client setup (certificate loading) stays outside the measured attempt.
        start_time = datetime.now(timezone.utc)
        tracer.begin()
        try:
            if spec.timeout > ZERO:
                await asyncio.wait_for(_perform(client, spec, tracer, attempt), spec.timeout.total_seconds())
            else:
                await _perform(client, spec, tracer, attempt)
        except asyncio.TimeoutError:
            attempt.error = TransportError(f"timeout: attempt exceeded {format_duration(spec.timeout)}")
        except Exception as e:  # noqa: BLE001
            attempt.error = TransportError(_describe(e))

    detail = None
    if attempt.status_code:
        detail = ResponseDetail(
            headers=attempt.headers,
            body=bytes(attempt.body),
            http_version=attempt.http_version,
            status_text=attempt.status_text,
            cookies=attempt.cookies,
        )
    outcome = Outcome(
        request=spec,
        start_time=start_time,
        ip_address=attempt.ip_address,
        status_code=attempt.status_code,
        size=len(attempt.body),
        metrics=tracer.metrics(),
        error=attempt.error,
        response=detail,
    )
    outcome = finalize_outcome(outcome)
    if not keep_response:
        outcome = replace(outcome, response=None)
    logger.debug(
        "Finished %s %s: status=%s size=%d error=%s success=%s",
        spec.method,
        spec.url,
        outcome.status_code,
        outcome.size,
        outcome.error,
        outcome.is_success,
    )
    return outcome
