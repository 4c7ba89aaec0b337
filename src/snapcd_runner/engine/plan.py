"""Parsed plan artifacts and change summaries."""

from __future__ import annotations

import json
import logging
import zipfile
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from google.protobuf.message import DecodeError

from snapcd_runner.engine import tfplan
from snapcd_runner.engine.actions import normalize_pulumi_op, normalize_terraform_action
from snapcd_runner.engine.errors import MalformedPlanError
from snapcd_runner.engine.types import OutputChange, PlanAction, PlanSummary, ResourceChange

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

PLAN_ENTRY_NAME = "tfplan"
STATE_ENTRY_NAME = "tfstate"
PULUMI_STACK_TYPE = "pulumi:pulumi:Stack"


class ParsedPlan(ABC):
    """Read-only query interface over one plan artifact."""

    @abstractmethod
    def existing_count(self) -> int:
        """Number of resources that exist before the plan is applied."""

    @abstractmethod
    def resource_changes(self, action: PlanAction) -> list[ResourceChange]: ...

    @abstractmethod
    def output_changes(self, action: PlanAction) -> list[OutputChange]: ...

    def resource_count(self, action: PlanAction) -> int:
        return len(self.resource_changes(action))

    def output_count(self, action: PlanAction) -> int:
        return len(self.output_changes(action))


class TerraformParsedPlan(ParsedPlan):
    """Plan decoded from a Terraform/OpenTofu plan file."""

    def __init__(self, plan: Any, state: dict[str, Any]) -> None:
        self._state = state
        self._resources: list[ResourceChange] = []
        self._outputs: list[OutputChange] = []
        for rc in plan.resource_changes:
            action = normalize_terraform_action(rc.change.action)
            if action is not None:
                self._resources.append(ResourceChange(address=rc.addr, action=action))
        for oc in plan.output_changes:
            action = normalize_terraform_action(oc.change.action)
            if action is not None:
                self._outputs.append(OutputChange(name=oc.name, action=action))

    @classmethod
    def from_file(cls, path: Path) -> TerraformParsedPlan:
        """Open a plan zip holding the ``tfplan`` message and ``tfstate`` document.

        Raises:
            MalformedPlanError: Not a zip, an entry is missing, or an entry
                cannot be decoded.
        """
        try:
            with zipfile.ZipFile(path) as archive:
                names = set(archive.namelist())
                for entry in (PLAN_ENTRY_NAME, STATE_ENTRY_NAME):
                    if entry not in names:
                        raise MalformedPlanError(f"Missing {entry} entry in archive {path}")
                plan_bytes = archive.read(PLAN_ENTRY_NAME)
                state_text = archive.read(STATE_ENTRY_NAME).decode("utf-8")
        except zipfile.BadZipFile as exc:
            raise MalformedPlanError(f"{path} is not a valid plan archive: {exc}") from exc

        try:
            plan = tfplan.decode_plan(plan_bytes)
        except DecodeError as exc:
            raise MalformedPlanError(f"Cannot decode {PLAN_ENTRY_NAME} in {path}: {exc}") from exc

        try:
            state = json.loads(state_text)
        except json.JSONDecodeError as exc:
            raise MalformedPlanError(f"Cannot parse {STATE_ENTRY_NAME} in {path}: {exc}") from exc
        if not isinstance(state, dict):
            raise MalformedPlanError(f"{STATE_ENTRY_NAME} in {path} is not a JSON object")

        logger.debug(
            "Parsed plan %s: %d resource change(s), %d output change(s)",
            path,
            len(plan.resource_changes),
            len(plan.output_changes),
        )
        return cls(plan, state)

    def existing_count(self) -> int:
        resources = self._state.get("resources")
        return len(resources) if isinstance(resources, list) else 0

    def resource_changes(self, action: PlanAction) -> list[ResourceChange]:
        return [c for c in self._resources if c.action == action]

    def output_changes(self, action: PlanAction) -> list[OutputChange]:
        return [c for c in self._outputs if c.action == action]


def _step_type(step: dict[str, Any]) -> str:
    new = step.get("newState")
    if isinstance(new, dict) and new.get("type"):
        return str(new["type"])
    if step.get("type"):
        return str(step["type"])
    old = step.get("oldState")
    if isinstance(old, dict) and old.get("type"):
        return str(old["type"])
    return ""


class PulumiParsedPlan(ParsedPlan):
    """Plan read from a Pulumi plan file or a ``--json`` preview.

    Pulumi artifacts carry no output-level diff, so output queries are
    always empty.
    """

    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document
        self._resources = self._resource_ops(document)

    @classmethod
    def from_file(cls, path: Path) -> PulumiParsedPlan:
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise MalformedPlanError(f"Cannot parse Pulumi plan {path}: {exc}") from exc
        if not isinstance(document, dict):
            raise MalformedPlanError(f"Pulumi plan {path} is not a JSON object")
        return cls(document)

    @staticmethod
    def _resource_ops(document: dict[str, Any]) -> list[ResourceChange]:
        changes: list[ResourceChange] = []

        # Plan file: {"resourcePlans": {urn: {"goal": {"type": ...}, "steps": [op, ...]}}}
        resource_plans = document.get("resourcePlans")
        if isinstance(resource_plans, dict):
            for urn, resource_plan in resource_plans.items():
                if not isinstance(resource_plan, dict):
                    continue
                goal = resource_plan.get("goal")
                goal_type = goal.get("type") if isinstance(goal, dict) else None
                if goal_type == PULUMI_STACK_TYPE:
                    continue
                steps = resource_plan.get("steps")
                if not isinstance(steps, list):
                    continue
                changes.extend(
                    ResourceChange(address=urn, action=normalize_pulumi_op(str(op))) for op in steps
                )
            return changes

        # Preview: {"steps": [{"op": ..., "urn": ..., "newState": {"type": ...}}, ...]}
        steps = document.get("steps")
        if isinstance(steps, list):
            for step in steps:
                if not isinstance(step, dict) or _step_type(step) == PULUMI_STACK_TYPE:
                    continue
                changes.append(
                    ResourceChange(
                        address=str(step.get("urn") or ""),
                        action=normalize_pulumi_op(str(step.get("op") or "")),
                    )
                )
        return changes

    def existing_count(self) -> int:
        summary = self._document.get("changeSummary")
        if isinstance(summary, dict):
            return sum(int(summary.get(k) or 0) for k in ("same", "update", "delete", "replace"))
        return sum(1 for c in self._resources if c.action != PlanAction.CREATE)

    def resource_changes(self, action: PlanAction) -> list[ResourceChange]:
        return [c for c in self._resources if c.action == action]

    def output_changes(self, action: PlanAction) -> list[OutputChange]:
        _ = action
        return []


def summarize_plan(plan: ParsedPlan) -> PlanSummary:
    """Build the counts reported to the orchestrator for a parsed plan."""
    noop = plan.resource_changes(PlanAction.NOOP)
    create = plan.resource_changes(PlanAction.CREATE)
    update = plan.resource_changes(PlanAction.UPDATE)
    delete = plan.resource_changes(PlanAction.DELETE)
    replace = plan.resource_changes(PlanAction.REPLACE)

    out_noop = plan.output_changes(PlanAction.NOOP)
    out_create = plan.output_changes(PlanAction.CREATE)
    out_update = plan.output_changes(PlanAction.UPDATE)
    out_delete = plan.output_changes(PlanAction.DELETE)
    out_replace = plan.output_changes(PlanAction.REPLACE)
    out_changed = len(out_create) + len(out_update) + len(out_delete) + len(out_replace)

    return PlanSummary(
        existing_count=plan.existing_count(),
        total_count_before=len(noop) + len(update) + len(replace) + len(delete),
        total_count_after=len(noop) + len(update) + len(replace) + len(create),
        total_changed_count=len(create) + len(update) + len(delete) + len(replace),
        total_unchanged_count=len(noop),
        create_count=len(create),
        modify_count=len(update),
        destroy_count=len(delete),
        recreate_count=len(replace),
        unchanged=noop,
        create=create,
        modify=update,
        destroy=delete,
        recreate=replace,
        outputs_total_count=out_changed + len(out_noop),
        outputs_total_changed_count=out_changed,
        outputs_total_unchanged_count=len(out_noop),
        outputs_create_count=len(out_create),
        outputs_modify_count=len(out_update),
        outputs_destroy_count=len(out_delete),
        outputs_recreate_count=len(out_replace),
        outputs_unchanged=out_noop,
        outputs_create=out_create,
        outputs_modify=out_update,
        outputs_destroy=out_delete,
        outputs_recreate=out_replace,
    )
