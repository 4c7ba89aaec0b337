"""Plan summary and output rendering (Terraform-style)."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import typer
from rich.table import Table

from snapcd_runner.engine.types import PlanAction

if TYPE_CHECKING:
    from collections.abc import Callable

    from snapcd_runner.engine.types import OutputSet, PlanSummary


class _ActionStyle(NamedTuple):
    color: str
    symbol: str
    description: str


_ACTION_STYLES: dict[PlanAction, _ActionStyle] = {
    PlanAction.CREATE: _ActionStyle("green", "+", "will be created"),
    PlanAction.UPDATE: _ActionStyle("yellow", "~", "will be updated in-place"),
    PlanAction.DELETE: _ActionStyle("red", "-", "will be destroyed"),
    PlanAction.REPLACE: _ActionStyle("magenta", "-/+", "will be replaced"),
    PlanAction.NOOP: _ActionStyle("bright_black", " ", "is up-to-date"),
}


def styler(color: bool) -> Callable[..., str]:
    """Return ``typer.style`` when *color* is True, otherwise a passthrough."""
    if color:
        return typer.style
    return lambda text, **_kw: text


def _changed(summary: PlanSummary) -> list[tuple[PlanAction, list[str], list[str]]]:
    return [
        (
            PlanAction.CREATE,
            [c.address for c in summary.create],
            [c.name for c in summary.outputs_create],
        ),
        (
            PlanAction.UPDATE,
            [c.address for c in summary.modify],
            [c.name for c in summary.outputs_modify],
        ),
        (
            PlanAction.REPLACE,
            [c.address for c in summary.recreate],
            [c.name for c in summary.outputs_recreate],
        ),
        (
            PlanAction.DELETE,
            [c.address for c in summary.destroy],
            [c.name for c in summary.outputs_destroy],
        ),
    ]


def format_changes(summary: PlanSummary, *, color: bool = True) -> str:
    """List every pending resource and output change, one per line."""
    style = styler(color)
    lines: list[str] = []
    for action, addresses, names in _changed(summary):
        s = _ACTION_STYLES[action]
        lines.extend(
            style(f"  {s.symbol} {address} {s.description}", fg=s.color) for address in addresses
        )
        lines.extend(
            style(f"  {s.symbol} output.{name} {s.description}", fg=s.color) for name in names
        )
    if not lines:
        return "No changes. Infrastructure matches the configuration."
    return "\n".join(lines)


_PLAN_COUNTS = (
    ("create_count", "to add", "green"),
    ("modify_count", "to change", "yellow"),
    ("recreate_count", "to replace", "magenta"),
    ("destroy_count", "to destroy", "red"),
)


def format_plan_summary(summary: PlanSummary, *, color: bool = True) -> str:
    """Render ``Plan: 2 to add, 1 to change, 0 to replace, 1 to destroy.``"""
    style = styler(color)
    parts = []
    for field, verb, fg in _PLAN_COUNTS:
        n = getattr(summary, field)
        parts.append(style(f"{n} {verb}", fg=fg) if n and color else f"{n} {verb}")
    return f"Plan: {', '.join(parts)}."


def summary_table(summary: PlanSummary) -> Table:
    """Tabulate resource and output counts per action."""
    table = Table(title="Plan summary")
    table.add_column("Action")
    table.add_column("Resources", justify="right")
    table.add_column("Outputs", justify="right")
    rows = (
        ("unchanged", summary.total_unchanged_count, summary.outputs_total_unchanged_count),
        ("create", summary.create_count, summary.outputs_create_count),
        ("update", summary.modify_count, summary.outputs_modify_count),
        ("replace", summary.recreate_count, summary.outputs_recreate_count),
        ("delete", summary.destroy_count, summary.outputs_destroy_count),
    )
    for label, resources, outputs in rows:
        table.add_row(label, str(resources), str(outputs))
    table.add_section()
    table.add_row("existing", str(summary.existing_count), "")
    table.add_row("before", str(summary.total_count_before), "")
    table.add_row("after", str(summary.total_count_after), "")
    return table


def outputs_table(output_set: OutputSet) -> Table:
    """Tabulate an output set; sensitive values are masked."""
    table = Table(title=f"Outputs ({output_set.checksum[:12]})")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Value")
    table.add_column("Extra file")
    for o in output_set.outputs:
        value = "(sensitive)" if o.sensitive else o.value
        table.add_row(o.name, o.type, value, "yes" if o.from_extra_file else "")
    return table
