"""Engine types (actions, changes, backend configuration, summaries)."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PlanAction(str, Enum):
    """Backend-independent change type every plan artifact normalizes into."""

    NOOP = "no-op"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"


class ResourceChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    action: PlanAction


class OutputChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    action: PlanAction


class EngineFlags(BaseModel):
    """Init toggles."""

    model_config = ConfigDict(frozen=True)

    auto_upgrade: bool = False
    auto_reconfigure: bool = False
    auto_migrate: bool = False


class BackendConfigEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class TerraformBackendConfig(BaseModel):
    """``-backend-config`` overrides; module entries win over namespace entries."""

    model_config = ConfigDict(frozen=True)

    namespace: tuple[BackendConfigEntry, ...] = ()
    module: tuple[BackendConfigEntry, ...] = ()
    ignore_namespace: bool = False

    def merged(self) -> dict[str, str]:
        """Return the effective key/value overrides in application order."""
        configs: dict[str, str] = {}
        if not self.ignore_namespace:
            for entry in self.namespace:
                configs[entry.name] = entry.value
        for entry in self.module:
            configs[entry.name] = entry.value
        return configs


class PulumiLoginType(str, Enum):
    PULUMI_CLOUD = "pulumi-cloud"
    LOCAL = "local"
    CUSTOM = "custom"
    NONE = "none"


class PulumiBackendConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    login_type: PulumiLoginType = PulumiLoginType.NONE
    stack_name: str | None = None
    custom_login_url: str | None = None


class BackendConfiguration(BaseModel):
    """Backend settings for one lifecycle request.

    Each engine reads only its own section.
    """

    model_config = ConfigDict(frozen=True)

    terraform: TerraformBackendConfig = Field(default_factory=TerraformBackendConfig)
    pulumi: PulumiBackendConfig = Field(default_factory=PulumiBackendConfig)


class PlanSummary(BaseModel):
    """Counts and change lists reported back to the orchestrator after a plan."""

    existing_count: int
    total_count_before: int
    total_count_after: int
    total_changed_count: int
    total_unchanged_count: int
    create_count: int
    modify_count: int
    destroy_count: int
    recreate_count: int
    unchanged: list[ResourceChange] = Field(default_factory=list)
    create: list[ResourceChange] = Field(default_factory=list)
    modify: list[ResourceChange] = Field(default_factory=list)
    destroy: list[ResourceChange] = Field(default_factory=list)
    recreate: list[ResourceChange] = Field(default_factory=list)

    outputs_total_count: int = 0
    outputs_total_changed_count: int = 0
    outputs_total_unchanged_count: int = 0
    outputs_create_count: int = 0
    outputs_modify_count: int = 0
    outputs_destroy_count: int = 0
    outputs_recreate_count: int = 0
    outputs_unchanged: list[OutputChange] = Field(default_factory=list)
    outputs_create: list[OutputChange] = Field(default_factory=list)
    outputs_modify: list[OutputChange] = Field(default_factory=list)
    outputs_destroy: list[OutputChange] = Field(default_factory=list)
    outputs_recreate: list[OutputChange] = Field(default_factory=list)

    def has_changes(self) -> bool:
        return self.total_changed_count > 0 or self.outputs_total_changed_count > 0


class Output(BaseModel):
    name: str
    type: str
    value: str
    sensitive: bool | None = None
    from_extra_file: bool = False


class OutputSet(BaseModel):
    checksum: str
    timestamp: int
    outputs: list[Output] = Field(default_factory=list)


class Hooks(BaseModel):
    """Pre-approved shell snippets run around a lifecycle step's main command."""

    model_config = ConfigDict(frozen=True)

    before: str | None = None
    after: str | None = None
