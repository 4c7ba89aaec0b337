"""Map each backend's native change vocabulary onto :class:`PlanAction`."""

from __future__ import annotations

from enum import IntEnum

from snapcd_runner.engine.types import PlanAction


class TerraformAction(IntEnum):
    """Action values of Terraform's plan file (``planproto.Action``)."""

    NOOP = 0
    CREATE = 1
    READ = 2
    UPDATE = 3
    DELETE = 5
    DELETE_THEN_CREATE = 6
    CREATE_THEN_DELETE = 7
    FORGET = 8
    CREATE_THEN_FORGET = 9


# Both replace orderings collapse to REPLACE; the ordering cannot be recovered.
_TERRAFORM_ACTIONS: dict[TerraformAction, PlanAction] = {
    TerraformAction.NOOP: PlanAction.NOOP,
    TerraformAction.CREATE: PlanAction.CREATE,
    TerraformAction.UPDATE: PlanAction.UPDATE,
    TerraformAction.DELETE: PlanAction.DELETE,
    TerraformAction.DELETE_THEN_CREATE: PlanAction.REPLACE,
    TerraformAction.CREATE_THEN_DELETE: PlanAction.REPLACE,
}

TERRAFORM_CHANGE_ACTIONS = frozenset(_TERRAFORM_ACTIONS)

_PULUMI_OPS: dict[str, PlanAction] = {
    "same": PlanAction.NOOP,
    "create": PlanAction.CREATE,
    "update": PlanAction.UPDATE,
    "delete": PlanAction.DELETE,
    "replace": PlanAction.REPLACE,
    "create-replacement": PlanAction.REPLACE,
    "delete-replaced": PlanAction.REPLACE,
}


def normalize_terraform_action(action: int) -> PlanAction | None:
    """Normalize a raw plan-file action.

    Returns ``None`` for actions outside the six change kinds (data reads,
    forgets); such entries belong to no :class:`PlanAction` bucket.
    """
    try:
        native = TerraformAction(action)
    except ValueError:
        return None
    return _TERRAFORM_ACTIONS.get(native)


def normalize_pulumi_op(op: str) -> PlanAction:
    """Normalize a Pulumi step op; unknown ops fall back to NOOP."""
    return _PULUMI_OPS.get(op, PlanAction.NOOP)
