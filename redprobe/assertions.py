"""Outcome aggregation: annotations and assertions.

Results keep the declaration order of their expressions, one result per
expression, so callers can zip expressions with results positionally.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from .expressions import ResponseView, evaluate
from .logging_config import get_logger
from .models import Annotation, Check, Outcome, ResultKind

logger = get_logger("assertions")


def run_annotations(expressions: Iterable[str], view: ResponseView) -> tuple[Annotation, ...]:
    """Evaluate informational expressions. The value is kept verbatim, errors as their text."""
    return tuple(Annotation(annotation=expr, text=evaluate(expr, view).value) for expr in expressions)


def run_assertions(expressions: Iterable[str], view: ResponseView) -> tuple[Check, ...]:
    checks: list[Check] = []
    for expr in expressions:
        result = evaluate(expr, view)
        output = str(result.value) if result.kind is ResultKind.UNCLASSIFIED else result.value
        checks.append(Check(success=result.success, output=output, assertion=expr))
    return tuple(checks)


def finalize_outcome(outcome: Outcome) -> Outcome:
    """Attach annotation and check results to ``outcome``.

    Annotations run before assertions, both against the same view. Failed
    attempts are evaluated too (status 0, empty body) so every assertion
    still yields exactly one Check.
    """
    spec = outcome.request
    view = ResponseView(outcome)
    annotations = run_annotations(spec.annotations, view)
    checks = run_assertions(spec.assertions, view)
    failed = sum(1 for c in checks if not c.success)
    if failed:
        logger.debug("%d of %d assertions failed for %s %s", failed, len(checks), spec.method, spec.url)
    return replace(outcome, annotations=annotations, checks=checks)
