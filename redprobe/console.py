"""Rich console rendering of probe outcomes."""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .durations import format_duration
from .models import Outcome

_UNITS = "kMGTPE"


def build_console(color: bool = True, width: int | None = None) -> Console:
    """Console with an explicit colour choice; nothing global is touched."""
    return Console(no_color=not color, highlight=False, width=width)


def byte_count_decimal(size: int) -> str:
    """Human-readable size in decimal units: ``999 B``, ``1.5 kB``, ``2.0 MB``."""
    unit = 1000
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {_UNITS[exp]}B"


def _table(*headers: str) -> Table:
    table = Table(expand=True, show_lines=False, header_style="bold white on grey23")
    table.add_column(headers[0], style="cyan", justify="right", ratio=1)
    table.add_column(headers[1], justify="left", ratio=1, overflow="fold")
    return table


def _label(text: str, ok: bool) -> Text:
    return Text(text, style="bold green" if ok else "bold red")


def _value(value: Any) -> str:
    return "" if value is None else str(value)


def build_tables(outcome: Outcome) -> list[Table]:
    """Request, Response and Metrics tables, plus Annotations/Assertions when present."""
    spec = outcome.request
    request = _table("Request", "Values")
    request.add_row("Method", spec.method)
    request.add_row("URL", spec.url)
    request.add_row("Timeout", format_duration(spec.timeout))

    response = _table("Response", "Values")
    response.add_row("IP Address", outcome.ip_address)
    response.add_row("Status", str(outcome.status_code))
    response.add_row("Size", byte_count_decimal(outcome.size))
    if outcome.error is not None:
        response.add_row(_label("Error", False), str(outcome.error))

    metrics = _table("Metrics", "Values")
    m = outcome.metrics
    for label, value in (
        ("DNS", m.dns),
        ("Conn", m.conn),
        ("TLS", m.tls),
        ("TTFB", m.ttfb),
        ("Transfer", m.transfer),
        ("RT", m.rt),
    ):
        metrics.add_row(label, format_duration(value))

    tables = [request, response, metrics]
    if outcome.annotations:
        annotations = _table("Annotations", "Values")
        for a in outcome.annotations:
            annotations.add_row(a.annotation, _value(a.text))
        tables.append(annotations)
    if outcome.checks:
        checks = _table("Assertions", "Results")
        for c in outcome.checks:
            checks.add_row(_label(c.assertion, c.success), _value(c.output))
        tables.append(checks)
    return tables


def render_outcome(console: Console, outcome: Outcome) -> None:
    for table in build_tables(outcome):
        console.print(table)


def render_outcomes(console: Console, outcomes: Sequence[Outcome]) -> None:
    for index, outcome in enumerate(outcomes):
        if index:
            console.rule(style="dim")
        render_outcome(console, outcome)
