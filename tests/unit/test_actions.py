"""Tests for backend action normalization."""

from __future__ import annotations

import pytest

from snapcd_runner.engine.actions import (
    TERRAFORM_CHANGE_ACTIONS,
    TerraformAction,
    normalize_pulumi_op,
    normalize_terraform_action,
)
from snapcd_runner.engine.types import PlanAction


class TestTerraformActions:
    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            (TerraformAction.NOOP, PlanAction.NOOP),
            (TerraformAction.CREATE, PlanAction.CREATE),
            (TerraformAction.UPDATE, PlanAction.UPDATE),
            (TerraformAction.DELETE, PlanAction.DELETE),
            (TerraformAction.DELETE_THEN_CREATE, PlanAction.REPLACE),
            (TerraformAction.CREATE_THEN_DELETE, PlanAction.REPLACE),
        ],
    )
    def test_change_actions(self, native: TerraformAction, expected: PlanAction) -> None:
        assert normalize_terraform_action(native) == expected

    def test_every_change_action_maps_to_one_plan_action(self) -> None:
        for native in TERRAFORM_CHANGE_ACTIONS:
            assert normalize_terraform_action(native) in set(PlanAction)

    def test_both_replace_orderings_collapse(self) -> None:
        a = normalize_terraform_action(TerraformAction.DELETE_THEN_CREATE)
        b = normalize_terraform_action(TerraformAction.CREATE_THEN_DELETE)
        assert a == b == PlanAction.REPLACE

    @pytest.mark.parametrize(
        "native",
        [TerraformAction.READ, TerraformAction.FORGET, TerraformAction.CREATE_THEN_FORGET],
    )
    def test_non_change_actions_have_no_bucket(self, native: TerraformAction) -> None:
        assert normalize_terraform_action(native) is None

    def test_unknown_number(self) -> None:
        assert normalize_terraform_action(42) is None


class TestPulumiOps:
    @pytest.mark.parametrize(
        ("op", "expected"),
        [
            ("same", PlanAction.NOOP),
            ("create", PlanAction.CREATE),
            ("update", PlanAction.UPDATE),
            ("delete", PlanAction.DELETE),
            ("replace", PlanAction.REPLACE),
            ("create-replacement", PlanAction.REPLACE),
            ("delete-replaced", PlanAction.REPLACE),
        ],
    )
    def test_known_ops(self, op: str, expected: PlanAction) -> None:
        assert normalize_pulumi_op(op) == expected

    @pytest.mark.parametrize("op", ["refresh", "import", "", "CREATE"])
    def test_unknown_ops_fall_back_to_noop(self, op: str) -> None:
        assert normalize_pulumi_op(op) == PlanAction.NOOP
