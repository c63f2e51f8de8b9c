"""Probe runner: executes request definitions one after another."""

from __future__ import annotations

import asyncio
from typing import Iterable

import httpx

from .engine import execute_request
from .logging_config import get_logger
from .models import Outcome, RequestSpec

logger = get_logger("runner")


async def run_probes(
    specs: Iterable[RequestSpec],
    keep_response: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Outcome]:
    """Run every spec strictly in sequence; outcomes come back in input order.

    Attempts share nothing: each gets its own client, tracer and Outcome, and
    a failed attempt does not stop the ones after it.
    """
    outcomes: list[Outcome] = []
    for index, spec in enumerate(specs):
        logger.debug("Probe %d: %s %s", index + 1, spec.method, spec.url)
        outcomes.append(await execute_request(spec, keep_response=keep_response, transport=transport))
    failed = sum(1 for o in outcomes if not o.is_success)
    if failed:
        logger.info("%d of %d probes failed", failed, len(outcomes))
    return outcomes


def probe(
    spec: RequestSpec,
    keep_response: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Outcome:
    """Blocking single attempt, for callers without an event loop."""
    return asyncio.run(execute_request(spec, keep_response=keep_response, transport=transport))


def all_successful(outcomes: Iterable[Outcome]) -> bool:
    return all(o.is_success for o in outcomes)
