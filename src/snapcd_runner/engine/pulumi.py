"""Pulumi engine."""

from __future__ import annotations

import json
import logging
import shlex
from typing import TYPE_CHECKING, Any, ClassVar

from snapcd_runner.engine.base import STATISTICS_FILE_NAME, Engine
from snapcd_runner.engine.errors import EngineCanceled
from snapcd_runner.engine.plan import PULUMI_STACK_TYPE, PulumiParsedPlan
from snapcd_runner.engine.types import PulumiLoginType

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping
    from pathlib import Path

    from snapcd_runner.engine.types import BackendConfiguration, EngineFlags, Hooks

logger = logging.getLogger(__name__)

PLAN_FILE_NAME = "plan.json"
DESTROY_PREVIEW_FILE_NAME = "destroy_preview.json"
EXPORT_FILE_NAME = "export.json"
CONFIG_SCRIPT_NAME = "config.sh"


def count_exported_resources(export_path: Path) -> int:
    """Count resources in a ``pulumi stack export`` document, excluding the root stack."""
    if not export_path.is_file():
        return 0
    document = json.loads(export_path.read_text(encoding="utf-8"))
    deployment = document.get("deployment") if isinstance(document, dict) else None
    resources = deployment.get("resources") if isinstance(deployment, dict) else None
    if not isinstance(resources, list):
        return 0
    return sum(
        1 for r in resources if not (isinstance(r, dict) and r.get("type") == PULUMI_STACK_TYPE)
    )


def wrap_stack_outputs(raw: str) -> str:
    """Give flat ``stack output --json`` values the ``{value, type, sensitive}`` shape."""
    outputs = json.loads(raw)
    if not isinstance(outputs, dict):
        raise ValueError("pulumi stack output did not return a JSON object")
    wrapped = {
        name: {"value": value, "type": "string", "sensitive": False}
        for name, value in outputs.items()
    }
    return json.dumps(wrapped, separators=(",", ":"), ensure_ascii=False)


class PulumiEngine(Engine):
    """Engine for Pulumi.

    Pulumi writes progress and diagnostics to stderr, so only the exit code
    decides whether a step failed.
    """

    name = "pulumi"
    treat_stderr_as_error: ClassVar[bool] = False

    @property
    def plan_path(self) -> Path:
        return self._scratch_path(PLAN_FILE_NAME)

    @property
    def destroy_preview_path(self) -> Path:
        return self._scratch_path(DESTROY_PREVIEW_FILE_NAME)

    @property
    def export_path(self) -> Path:
        return self._scratch_path(EXPORT_FILE_NAME)

    def _init_command(self, backend_config: BackendConfiguration, flags: EngineFlags) -> str:
        _ = flags
        pulumi = backend_config.pulumi
        commands: list[str] = []
        if pulumi.login_type == PulumiLoginType.PULUMI_CLOUD:
            commands.append("pulumi login")
        elif pulumi.login_type == PulumiLoginType.LOCAL:
            commands.append("pulumi login --local")
        elif pulumi.login_type == PulumiLoginType.CUSTOM:
            commands.append(f"pulumi login {pulumi.custom_login_url or ''}".rstrip())
        if pulumi.stack_name and pulumi.stack_name.strip():
            commands.append(f"pulumi stack select {pulumi.stack_name} --create --non-interactive")
        return "\n".join(commands)

    def _validate_command(self) -> str:
        # No native validate; a preview is the closest check.
        return "pulumi preview --non-interactive"

    async def _set_config(
        self,
        parameters: Mapping[str, str],
        *,
        kill: asyncio.Event | None,
        graceful: asyncio.Event | None,
    ) -> None:
        if not parameters:
            return
        script = "\n".join(
            f"pulumi config set {shlex.quote(k)} {shlex.quote(v)} --non-interactive"
            for k, v in parameters.items()
        )
        self._write_file(CONFIG_SCRIPT_NAME, script)
        await self._run(script, kill=kill, graceful=graceful)

    def _write_statistics_from_export(self) -> None:
        try:
            count = count_exported_resources(self.export_path)
            self._write_file(STATISTICS_FILE_NAME, str(count))
        except (OSError, ValueError) as exc:
            self._log.warning("Could not write statistics from %s: %s", self.export_path, exc)

    def _log_destroy_preview(self) -> None:
        path = self.destroy_preview_path
        if not path.is_file():
            return
        try:
            preview = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._log.warning("Could not read destroy preview %s: %s", path, exc)
            return
        if not isinstance(preview, dict):
            return

        for step in preview.get("steps") or []:
            if not isinstance(step, dict):
                continue
            step_type = _state_type(step.get("newState")) or _state_type(step.get("oldState"))
            if step_type == PULUMI_STACK_TYPE:
                continue
            urn = str(step.get("urn") or "")
            name = urn.split("::")[-1] if "::" in urn else urn
            self._log.info("  %-10s %s (%s)", step.get("op") or "", step_type, name)

        summary = preview.get("changeSummary")
        if isinstance(summary, dict):
            parts = [
                f"{count} to {op}"
                for op, count in summary.items()
                if isinstance(count, int) and count > 0
            ]
            self._log.info("Resources: %s", ", ".join(parts))

    async def plan(
        self,
        parameters: Mapping[str, str],
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        await self._set_config(parameters, kill=kill, graceful=graceful)
        command = f"pulumi preview --save-plan {self.plan_path} --non-interactive"
        return await self._run_step("plan.sh", command, hooks, kill=kill, graceful=graceful)

    async def plan_destroy(
        self,
        parameters: Mapping[str, str],
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        await self._set_config(parameters, kill=kill, graceful=graceful)
        command = (
            f"pulumi destroy --preview-only --json --non-interactive > {self.destroy_preview_path}"
        )
        result = await self._run_step(
            "plan_destroy.sh", command, hooks, kill=kill, graceful=graceful
        )
        self._log_destroy_preview()
        return result

    async def apply_from_plan(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        command = (
            f"pulumi up --yes --plan {self.plan_path} --non-interactive\n"
            f"pulumi stack export > {self.export_path}"
        )
        try:
            return await self._run_step("apply.sh", command, hooks, kill=kill, graceful=graceful)
        except EngineCanceled as exc:
            await exc.wait_for_exit()
            raise
        finally:
            self._write_statistics_from_export()

    async def destroy_from_plan(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        command = (
            "pulumi destroy --yes --non-interactive\n"
            f"pulumi stack export > {self.export_path}"
        )
        try:
            return await self._run_step("destroy.sh", command, hooks, kill=kill, graceful=graceful)
        except EngineCanceled as exc:
            await exc.wait_for_exit()
            raise
        finally:
            self._write_statistics_from_export()

    async def output(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        command = f"pulumi stack output --json > {self.output_path}"
        await self._run_step("output.sh", command, hooks, kill=kill, graceful=graceful)
        return wrap_stack_outputs(self.output_path.read_text(encoding="utf-8"))

    async def statistics(
        self,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> int:
        await self._run(f"pulumi stack export > {self.export_path}", kill=kill, graceful=graceful)
        return count_exported_resources(self.export_path)

    def parse_apply_plan(self) -> PulumiParsedPlan:
        return PulumiParsedPlan.from_file(self.plan_path)

    def parse_destroy_plan(self) -> PulumiParsedPlan:
        return PulumiParsedPlan.from_file(self.destroy_preview_path)


def _state_type(state: Any) -> str:
    if isinstance(state, dict) and state.get("type"):
        return str(state["type"])
    return ""
