"""Engines that drive Terraform, OpenTofu and Pulumi, and the plan summaries they produce."""

from snapcd_runner.engine.base import Engine
from snapcd_runner.engine.errors import (
    EngineCanceled,
    EngineError,
    EngineValidationError,
    EnvironmentNotInitializedError,
    ExecutionError,
    MalformedPlanError,
    OutputPropertyError,
    OutputSetError,
    UnknownBackendError,
)
from snapcd_runner.engine.outputs import parse_json_to_output_set
from snapcd_runner.engine.plan import (
    ParsedPlan,
    PulumiParsedPlan,
    TerraformParsedPlan,
    summarize_plan,
)
from snapcd_runner.engine.pulumi import PulumiEngine
from snapcd_runner.engine.registry import (
    BackendRegistration,
    BackendRegistry,
    EngineFactory,
    default_registry,
)
from snapcd_runner.engine.script import compose_script
from snapcd_runner.engine.terraform import TerraformEngine
from snapcd_runner.engine.types import (
    BackendConfigEntry,
    BackendConfiguration,
    EngineFlags,
    Hooks,
    Output,
    OutputChange,
    OutputSet,
    PlanAction,
    PlanSummary,
    PulumiBackendConfig,
    PulumiLoginType,
    ResourceChange,
    TerraformBackendConfig,
)

__all__ = [
    "BackendConfigEntry",
    "BackendConfiguration",
    "BackendRegistration",
    "BackendRegistry",
    "Engine",
    "EngineCanceled",
    "EngineError",
    "EngineFactory",
    "EngineFlags",
    "EngineValidationError",
    "EnvironmentNotInitializedError",
    "ExecutionError",
    "Hooks",
    "MalformedPlanError",
    "Output",
    "OutputChange",
    "OutputPropertyError",
    "OutputSet",
    "OutputSetError",
    "ParsedPlan",
    "PlanAction",
    "PlanSummary",
    "PulumiBackendConfig",
    "PulumiEngine",
    "PulumiLoginType",
    "PulumiParsedPlan",
    "ResourceChange",
    "TerraformBackendConfig",
    "TerraformEngine",
    "TerraformParsedPlan",
    "compose_script",
    "default_registry",
    "parse_json_to_output_set",
    "summarize_plan",
]
