"""Unit tests for expression evaluation and result classification."""

from __future__ import annotations

from datetime import timedelta

import pytest

from redprobe.expressions import ResponseView, classify, evaluate
from redprobe.models import Metrics, ResultKind


@pytest.mark.parametrize(
    ("value", "kind", "success"),
    [
        (True, ResultKind.BOOLEAN, True),
        (False, ResultKind.BOOLEAN, False),
        (1, ResultKind.INTEGER, True),
        (0, ResultKind.INTEGER, False),
        (2, ResultKind.INTEGER, False),
        ("ok", ResultKind.STRING, True),
        ("  OK \n", ResultKind.STRING, True),
        ("okay", ResultKind.STRING, False),
        (1.0, ResultKind.UNCLASSIFIED, False),
        (None, ResultKind.UNCLASSIFIED, False),
        ({"a": 1}, ResultKind.UNCLASSIFIED, False),
    ],
)
def test_classify(value, kind, success) -> None:
    result = classify(value)
    assert result.kind is kind
    assert result.success is success
    assert result.value == value


def test_status_code_assertion_passes(make_outcome) -> None:
    result = evaluate("Outcome.status_code == 200", ResponseView(make_outcome(status_code=200)))
    assert result.kind is ResultKind.BOOLEAN
    assert result.success is True


def test_response_is_an_alias_of_outcome(make_outcome) -> None:
    result = evaluate("Response.status_code == Outcome.status_code", ResponseView(make_outcome()))
    assert result.success is True


def test_metric_comparison_is_strict(make_outcome) -> None:
    view = ResponseView(make_outcome(metrics=Metrics(dns=timedelta(seconds=10))))
    assert evaluate("Outcome.metrics.dns.total_seconds() > 10", view).success is False
    assert evaluate("Outcome.metrics.dns.total_seconds() >= 10", view).success is True


def test_metric_compared_with_duration_helper(make_outcome) -> None:
    view = ResponseView(make_outcome(metrics=Metrics(ttfb=timedelta(milliseconds=150))))
    assert evaluate('Outcome.metrics.ttfb < duration("200ms")', view).success is True
    assert evaluate("Outcome.metrics.ttfb_ms > 100", view).success is True


def test_unknown_attribute_is_an_error(make_outcome) -> None:
    result = evaluate("Outcome.foo", ResponseView(make_outcome()))
    assert result.kind is ResultKind.ERROR
    assert result.success is False
    assert result.value


def test_syntax_error_is_an_error(make_outcome) -> None:
    result = evaluate("Outcome.status_code ==", ResponseView(make_outcome()))
    assert result.kind is ResultKind.ERROR
    assert "SyntaxError" in result.value


def test_empty_expression_is_an_error(make_outcome) -> None:
    result = evaluate("   ", ResponseView(make_outcome()))
    assert result.kind is ResultKind.ERROR


def test_private_attributes_are_refused(make_outcome) -> None:
    result = evaluate("Outcome._outcome", ResponseView(make_outcome()))
    assert result.kind is ResultKind.ERROR


def test_ternary_string_result(make_outcome) -> None:
    expr = '"OK" if Outcome.status_code == 200 else "Nope"'
    ok = evaluate(expr, ResponseView(make_outcome(status_code=200)))
    assert ok.success is True
    assert ok.value == "OK"
    nope = evaluate(expr, ResponseView(make_outcome(status_code=500)))
    assert nope.success is False
    assert nope.value == "Nope"


def test_json_map(make_outcome) -> None:
    view = ResponseView(make_outcome(body=b'{"foo": "bar"}'))
    assert evaluate('Response.json_map()["foo"] == "bar"', view).success is True
    assert evaluate('Response.json_map().get("foo") == "bar"', view).success is True


def test_json_array(make_outcome) -> None:
    view = ResponseView(make_outcome(body=b'[{"foo": "bar"}]'))
    assert evaluate('Response.json_array()[0]["foo"] == "bar"', view).success is True


def test_malformed_json_gives_empty_containers(make_outcome) -> None:
    view = ResponseView(make_outcome(body=b"<html>not json</html>"))
    assert view.json_map() == {}
    assert view.json_array() == []
    assert evaluate("len(Response.json_map()) == 0", view).success is True


def test_json_type_mismatch_gives_empty_container(make_outcome) -> None:
    view = ResponseView(make_outcome(body=b"[1, 2]"))
    assert view.json_map() == {}
    assert view.json_array() == [1, 2]


def test_header_lookup_is_case_insensitive(make_outcome) -> None:
    view = ResponseView(
        make_outcome(headers=(("Content-Type", "application/json"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")))
    )
    assert view.header("content-type") == "application/json"
    assert view.header("set-cookie") == "a=1, b=2"
    assert view.header("x-missing", "none") == "none"
    assert evaluate('Response.header("CONTENT-TYPE").startswith("application/")', view).success is True


def test_integer_result(make_outcome) -> None:
    view = ResponseView(make_outcome(body=b'{"count": 1}'))
    result = evaluate('Response.json_map()["count"]', view)
    assert result.kind is ResultKind.INTEGER
    assert result.success is True


def test_runtime_error_is_captured(make_outcome) -> None:
    result = evaluate('Response.json_map()["missing"]', ResponseView(make_outcome(body=b"{}")))
    assert result.kind is ResultKind.ERROR
    assert "KeyError" in result.value


def test_view_without_response_detail(make_outcome) -> None:
    from dataclasses import replace

    outcome = replace(make_outcome(), response=None)
    view = ResponseView(outcome)
    assert view.body() == ""
    assert view.headers == {}
    assert view.status_text == ""
    assert view.json_map() == {}
