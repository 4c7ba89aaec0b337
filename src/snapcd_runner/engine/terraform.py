"""Terraform and OpenTofu engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from snapcd_runner.engine.base import Engine
from snapcd_runner.engine.plan import TerraformParsedPlan

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from snapcd_runner.core.directories import ModuleDirectory
    from snapcd_runner.core.metadata import TaskContext
    from snapcd_runner.engine.types import BackendConfiguration, EngineFlags, Hooks

logger = logging.getLogger(__name__)

TFVARS_FILE_NAME = "inputs.tfvars"
APPLY_PLAN_FILE_NAME = "plan.out"
DESTROY_PLAN_FILE_NAME = "destroy.out"
DATA_SOURCE_PREFIX = "data."


def backend_config_args(config: BackendConfiguration) -> list[str]:
    return [f'-backend-config="{k}={v}"' for k, v in config.terraform.merged().items()]


def render_tfvars(parameters: Mapping[str, str]) -> str:
    return "".join(f"{k}={v}\n" for k, v in parameters.items())


def count_managed_resources(state_list: str) -> int:
    """Count ``state list`` addresses, ignoring data sources."""
    return sum(
        1
        for line in state_list.split("\n")
        if line.strip() and not line.strip().startswith(DATA_SOURCE_PREFIX)
    )


class TerraformEngine(Engine):
    """Engine for the Terraform family; *executable* selects ``terraform`` or ``tofu``.

    Any stderr output fails a step, even when the tool exits 0.
    """

    def __init__(
        self,
        context: TaskContext,
        directory: ModuleDirectory,
        executable: str = "terraform",
        *,
        additional_binary_paths: Sequence[Path] = (),
    ) -> None:
        super().__init__(context, directory, additional_binary_paths=additional_binary_paths)
        self.executable = executable
        self.name = executable

    @property
    def tfvars_path(self) -> Path:
        return self._scratch_path(TFVARS_FILE_NAME)

    @property
    def apply_plan_path(self) -> Path:
        return self._scratch_path(APPLY_PLAN_FILE_NAME)

    @property
    def destroy_plan_path(self) -> Path:
        return self._scratch_path(DESTROY_PLAN_FILE_NAME)

    def _init_command(self, backend_config: BackendConfiguration, flags: EngineFlags) -> str:
        parts = [self.executable, "init"]
        if flags.auto_upgrade:
            parts.append("-upgrade")
        if flags.auto_reconfigure:
            parts.append("-reconfigure")
        if flags.auto_migrate:
            parts.append("-migrate-state")
        command = " ".join(parts)

        # Both flags prompt on stdin; answer up front so init never blocks.
        if flags.auto_migrate:
            command = f'echo "yes" | {command}'
        elif flags.auto_reconfigure:
            command = f'echo "no" | {command}'

        args = backend_config_args(backend_config)
        if args:
            command = f"{command} {' '.join(args)}"
        return command

    def _validate_command(self) -> str:
        return f"{self.executable} validate"

    def _plan_command(self, out: Path, *, destroy: bool) -> str:
        destroy_flag = " -destroy" if destroy else ""
        return (
            f"{self.executable} plan{destroy_flag} -out={out} -input=false "
            f"-var-file={self.tfvars_path}"
        )

    def _apply_command(self, plan_path: Path) -> str:
        return (
            f"{self.executable} apply {plan_path}\n"
            f"{self.executable} state list | grep -v '^data\\.' | wc -l > {self.statistics_path}"
        )

    async def plan(
        self,
        parameters: Mapping[str, str],
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        self._write_file(TFVARS_FILE_NAME, render_tfvars(parameters))
        command = self._plan_command(self.apply_plan_path, destroy=False)
        return await self._run_step("plan.sh", command, hooks, kill=kill, graceful=graceful)

    async def plan_destroy(
        self,
        parameters: Mapping[str, str],
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        self._write_file(TFVARS_FILE_NAME, render_tfvars(parameters))
        command = self._plan_command(self.destroy_plan_path, destroy=True)
        return await self._run_step("plan_destroy.sh", command, hooks, kill=kill, graceful=graceful)

    async def apply_from_plan(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        command = self._apply_command(self.apply_plan_path)
        return await self._run_step("apply.sh", command, hooks, kill=kill, graceful=graceful)

    async def destroy_from_plan(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        command = self._apply_command(self.destroy_plan_path)
        return await self._run_step("destroy.sh", command, hooks, kill=kill, graceful=graceful)

    async def output(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        command = f"{self.executable} output -json > {self.output_path}"
        await self._run_step("output.sh", command, hooks, kill=kill, graceful=graceful)
        return self.output_path.read_text(encoding="utf-8")

    async def statistics(
        self,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> int:
        state_list = await self._run(f"{self.executable} state list", kill=kill, graceful=graceful)
        return count_managed_resources(state_list)

    def parse_apply_plan(self) -> TerraformParsedPlan:
        return TerraformParsedPlan.from_file(self.apply_plan_path)

    def parse_destroy_plan(self) -> TerraformParsedPlan:
        return TerraformParsedPlan.from_file(self.destroy_plan_path)
