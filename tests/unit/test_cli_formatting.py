from __future__ import annotations

import re

from rich.console import Console

from snapcd_runner.cli.formatting import (
    format_changes,
    format_plan_summary,
    outputs_table,
    summary_table,
)
from snapcd_runner.engine.plan import PulumiParsedPlan, summarize_plan
from snapcd_runner.engine.types import Output, OutputChange, OutputSet, PlanAction, PlanSummary


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


def _summary(*ops: tuple[str, str]) -> PlanSummary:
    return summarize_plan(
        PulumiParsedPlan({"steps": [{"op": op, "urn": urn} for urn, op in ops]})
    )


def _render(table: object) -> str:
    console = Console(width=120, no_color=True, record=True)
    console.print(table)
    return console.export_text()


class TestFormatPlanSummary:
    def test_all_zeros(self) -> None:
        result = format_plan_summary(_summary(), color=False)
        assert result == "Plan: 0 to add, 0 to change, 0 to replace, 0 to destroy."

    def test_with_counts(self) -> None:
        summary = _summary(
            ("a", "create"), ("b", "create"), ("c", "update"), ("d", "replace"), ("e", "delete")
        )
        result = format_plan_summary(summary, color=False)
        assert result == "Plan: 2 to add, 1 to change, 1 to replace, 1 to destroy."

    def test_color_mode_contains_ansi(self) -> None:
        result = format_plan_summary(_summary(("a", "create")), color=True)
        assert "\x1b[" in result
        assert _strip_ansi(result) == "Plan: 1 to add, 0 to change, 0 to replace, 0 to destroy."


class TestFormatChanges:
    def test_no_changes(self) -> None:
        result = format_changes(_summary(("a", "same")), color=False)
        assert result == "No changes. Infrastructure matches the configuration."

    def test_lines_per_action(self) -> None:
        summary = _summary(
            ("urn:new", "create"),
            ("urn:same", "same"),
            ("urn:moved", "replace"),
            ("urn:gone", "delete"),
        )

        lines = format_changes(summary, color=False).splitlines()

        assert lines == [
            "  + urn:new will be created",
            "  -/+ urn:moved will be replaced",
            "  - urn:gone will be destroyed",
        ]

    def test_outputs_are_listed(self) -> None:
        summary = _summary().model_copy(
            update={
                "outputs_modify": [OutputChange(name="url", action=PlanAction.UPDATE)],
                "outputs_modify_count": 1,
                "outputs_total_changed_count": 1,
            }
        )
        assert format_changes(summary, color=False) == "  ~ output.url will be updated in-place"

    def test_color_wraps_lines(self) -> None:
        result = format_changes(_summary(("urn:new", "create")), color=True)
        assert "\x1b[" in result
        assert _strip_ansi(result) == "  + urn:new will be created"


class TestTables:
    def test_summary_table(self) -> None:
        text = _render(summary_table(_summary(("a", "create"), ("b", "same"))))

        assert "Plan summary" in text
        assert re.search(r"create\s+│\s+1\s+│\s+0", text)
        assert re.search(r"existing\s+│\s+1", text)
        assert re.search(r"after\s+│\s+2", text)

    def test_outputs_table_masks_sensitive(self) -> None:
        output_set = OutputSet(
            checksum="0123456789abcdef",
            timestamp=0,
            outputs=[
                Output(name="password", type="string", value="hunter2", sensitive=True),
                Output(name="url", type="string", value="https://x", from_extra_file=True),
            ],
        )

        text = _render(outputs_table(output_set))

        assert "Outputs (0123456789ab)" in text
        assert "hunter2" not in text
        assert "(sensitive)" in text
        assert re.search(r"url\s+│\s+string\s+│\s+https://x\s+│\s+yes", text)
