"""Expression evaluation against a probe Outcome.

Expressions use Python expression syntax and are evaluated by simpleeval,
which refuses statements, imports and private attribute access. Both names
``Outcome`` and ``Response`` are bound to the same read-only ResponseView:

    Outcome.status_code == 200
    Response.header("content-type").startswith("application/json")
    Outcome.metrics.ttfb < duration("200ms")
    "OK" if Outcome.json_map().get("status") == "up" else "DOWN"

Evaluation never raises. Compile and runtime failures come back as an
ERROR result carrying the failure description; successful values are
classified by ``classify``.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import orjson
from simpleeval import DEFAULT_FUNCTIONS, EvalWithCompoundTypes, InvalidExpression

from .durations import parse_duration
from .logging_config import get_logger
from .models import ExpressionResult, Metrics, Outcome, ResultKind

logger = get_logger("expressions")

CONTEXT_NAMES = ("Outcome", "Response")


class MetricsView:
    """Read-only metrics for expressions: timedeltas plus millisecond floats."""

    __slots__ = ("_metrics",)

    def __init__(self, metrics: Metrics) -> None:
        self._metrics = metrics

    @property
    def dns(self) -> timedelta:
        return self._metrics.dns

    @property
    def conn(self) -> timedelta:
        return self._metrics.conn

    @property
    def tls(self) -> timedelta:
        return self._metrics.tls

    @property
    def ttfb(self) -> timedelta:
        return self._metrics.ttfb

    @property
    def transfer(self) -> timedelta:
        return self._metrics.transfer

    @property
    def rt(self) -> timedelta:
        return self._metrics.rt

    @property
    def dns_ms(self) -> float:
        return self._metrics.dns / timedelta(milliseconds=1)

    @property
    def conn_ms(self) -> float:
        return self._metrics.conn / timedelta(milliseconds=1)

    @property
    def tls_ms(self) -> float:
        return self._metrics.tls / timedelta(milliseconds=1)

    @property
    def ttfb_ms(self) -> float:
        return self._metrics.ttfb / timedelta(milliseconds=1)

    @property
    def transfer_ms(self) -> float:
        return self._metrics.transfer / timedelta(milliseconds=1)

    @property
    def rt_ms(self) -> float:
        return self._metrics.rt / timedelta(milliseconds=1)


class ResponseView:
    """The narrow projection of an Outcome that expressions may see.

    Only what is listed here is reachable; the Outcome itself is not.
    """

    __slots__ = ("_outcome", "_body", "_headers", "metrics")

    def __init__(self, outcome: Outcome) -> None:
        self._outcome = outcome
        detail = outcome.response
        self._body = detail.body if detail is not None else b""
        self._headers = detail.headers if detail is not None else ()
        self.metrics = MetricsView(outcome.metrics)

    @property
    def status_code(self) -> int:
        return self._outcome.status_code

    @property
    def status_text(self) -> str:
        return self._outcome.response.status_text if self._outcome.response else ""

    @property
    def http_version(self) -> str:
        return self._outcome.response.http_version if self._outcome.response else ""

    @property
    def ip_address(self) -> str:
        return self._outcome.ip_address

    @property
    def size(self) -> int:
        return self._outcome.size

    @property
    def method(self) -> str:
        return self._outcome.request.method

    @property
    def url(self) -> str:
        return self._outcome.request.url

    @property
    def error(self) -> str | None:
        return str(self._outcome.error) if self._outcome.error is not None else None

    @property
    def headers(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for name, value in self._headers:
            out[name] = f"{out[name]}, {value}" if name in out else value
        return out

    def header(self, name: str, default: str = "") -> str:
        wanted = name.lower()
        values = [v for k, v in self._headers if k.lower() == wanted]
        return ", ".join(values) if values else default

    def body(self) -> str:
        return self._body.decode("utf-8", errors="replace")

    def json_map(self) -> dict[str, Any]:
        """Body as a JSON object; {} when the body is not one."""
        data = self._json()
        return data if isinstance(data, dict) else {}

    def json_array(self) -> list[Any]:
        """Body as a JSON array; [] when the body is not one."""
        data = self._json()
        return data if isinstance(data, list) else []

    def _json(self) -> Any:
        if not self._body:
            return None
        try:
            return orjson.loads(self._body)
        except orjson.JSONDecodeError:
            return None


EXPRESSION_FUNCTIONS: dict[str, Any] = {
    **DEFAULT_FUNCTIONS,
    "duration": parse_duration,
    "len": len,
}


def classify(value: Any) -> ExpressionResult:
    """Classify an evaluated value.

    bool -> success is the value; int -> success iff == 1;
    str -> success iff it reads "ok" (trimmed, any case); anything else is unclassified.
    """
    if isinstance(value, bool):
        return ExpressionResult(ResultKind.BOOLEAN, value, value)
    if isinstance(value, int):
        return ExpressionResult(ResultKind.INTEGER, value, value == 1)
    if isinstance(value, str):
        return ExpressionResult(ResultKind.STRING, value, value.strip().lower() == "ok")
    return ExpressionResult(ResultKind.UNCLASSIFIED, value, False)


def _evaluator(view: ResponseView) -> EvalWithCompoundTypes:
    return EvalWithCompoundTypes(
        functions=EXPRESSION_FUNCTIONS,
        names={name: view for name in CONTEXT_NAMES},
    )


def _describe(exc: Exception) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


def evaluate(expr: str, view: ResponseView) -> ExpressionResult:
    """Compile and run one expression against ``view`` and classify the result."""
    if not expr or not expr.strip():
        return ExpressionResult(ResultKind.ERROR, "empty expression")
    evaluator = _evaluator(view)
    try:
        parsed = evaluator.parse(expr)
    except (SyntaxError, ValueError, InvalidExpression) as e:
        logger.debug("Expression %r does not compile: %s", expr, e)
        return ExpressionResult(ResultKind.ERROR, _describe(e))
    try:
        value = evaluator.eval(expr, previously_parsed=parsed)
    except Exception as e:  # noqa: BLE001
        logger.debug("Expression %r failed: %s", expr, e)
        return ExpressionResult(ResultKind.ERROR, _describe(e))
    return classify(value)

