"""Shared lifecycle machinery for every engine backend."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from snapcd_runner.engine import env_file, process
from snapcd_runner.engine.errors import (
    EngineCanceled,
    EngineValidationError,
    EnvironmentNotInitializedError,
)
from snapcd_runner.engine.outputs import parse_json_to_output_set
from snapcd_runner.engine.script import compose_script
from snapcd_runner.engine.types import Hooks

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from snapcd_runner.core.directories import ModuleDirectory
    from snapcd_runner.core.metadata import TaskContext
    from snapcd_runner.engine.plan import ParsedPlan
    from snapcd_runner.engine.types import BackendConfiguration, EngineFlags, OutputSet

logger = logging.getLogger(__name__)

STATISTICS_FILE_NAME = "statistics.txt"
OUTPUT_FILE_NAME = "output.json"

_NO_HOOKS = Hooks()


class Engine(ABC):
    """Drives one IaC tool through init/plan/apply/destroy/output for one module.

    Lifecycle steps talk to each other only through well-known files in the
    module's scratch directory, so they may run in separate processes as
    long as that directory survives.  Every step accepts two optional
    cancellation events: setting *graceful* interrupts the tool, setting
    *kill* force-kills it.
    """

    name: str
    treat_stderr_as_error: ClassVar[bool] = True

    def __init__(
        self,
        context: TaskContext,
        directory: ModuleDirectory,
        *,
        additional_binary_paths: Sequence[Path] = (),
    ) -> None:
        self._context = context
        self._log = context.logger
        self._directory = directory
        self._additional_binary_paths = tuple(additional_binary_paths)
        self._env: dict[str, str] | None = None

    @property
    def init_dir(self) -> Path:
        return self._directory.init_dir

    @property
    def scratch_dir(self) -> Path:
        return self._directory.scratch_dir

    def _scratch_path(self, file_name: str) -> Path:
        return self._directory.scratch_dir / file_name

    @property
    def env_path(self) -> Path:
        return self._scratch_path(env_file.ENV_FILE_NAME)

    @property
    def statistics_path(self) -> Path:
        return self._scratch_path(STATISTICS_FILE_NAME)

    @property
    def output_path(self) -> Path:
        return self._scratch_path(OUTPUT_FILE_NAME)

    # -- environment -------------------------------------------------------

    def _store_env(self, env: Mapping[str, str]) -> None:
        self._directory.ensure_scratch_dir()
        self._env = dict(env)
        env_file.save_env(self.env_path, self._env)
        self._log.info("Environment Variables saved to file")

    def _ensure_env_loaded(self) -> dict[str, str]:
        if self._env is None:
            loaded = env_file.load_env(self.env_path)
            if loaded is None:
                raise EnvironmentNotInitializedError(self.env_path)
            self._log.info("Environment Variables loaded from file")
            self._env = loaded
        return self._env

    # -- execution ---------------------------------------------------------

    async def _run(
        self,
        script: str,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        env = self._ensure_env_loaded()
        return await process.run_script(
            script,
            cwd=self.init_dir,
            env=env,
            log=self._log,
            additional_binary_paths=self._additional_binary_paths,
            treat_stderr_as_error=self.treat_stderr_as_error,
            kill=kill,
            graceful=graceful,
        )

    def _write_file(self, file_name: str, content: str) -> Path:
        path = self._scratch_path(file_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    async def _run_step(
        self,
        script_name: str | None,
        base_command: str,
        hooks: Hooks | None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        hooks = hooks or _NO_HOOKS
        script = compose_script(base_command, hooks.before, hooks.after)
        if script_name is not None:
            self._write_file(script_name, script)
        return await self._run(script, kill=kill, graceful=graceful)

    # -- lifecycle ---------------------------------------------------------

    async def init(
        self,
        env: Mapping[str, str],
        backend_config: BackendConfiguration,
        flags: EngineFlags,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        """Persist *env* for later steps and run the backend's init commands."""
        self._store_env(env)
        command = self._init_command(backend_config, flags)
        return await self._run_step("init.sh", command, hooks, kill=kill, graceful=graceful)

    async def validate(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> None:
        """Run the backend's validation command.

        Raises:
            EngineValidationError: Any failure other than cancellation.
        """
        try:
            command = self._validate_command()
            await self._run_step(None, command, hooks, kill=kill, graceful=graceful)
        except EngineCanceled:
            raise
        except Exception as exc:
            raise EngineValidationError(
                f"{self.name} validation failed in directory {self.init_dir}",
                working_directory=str(self.init_dir),
                exit_code=-1,
                error_output=str(exc),
            ) from exc

    @abstractmethod
    def _init_command(self, backend_config: BackendConfiguration, flags: EngineFlags) -> str: ...

    @abstractmethod
    def _validate_command(self) -> str: ...

    @abstractmethod
    async def plan(
        self,
        parameters: Mapping[str, str],
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        """Compute a plan into the module's apply-plan artifact; return stdout."""

    @abstractmethod
    async def plan_destroy(
        self,
        parameters: Mapping[str, str],
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        """Compute a destroy plan into the module's destroy-plan artifact; return stdout."""

    @abstractmethod
    async def apply_from_plan(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str: ...

    @abstractmethod
    async def destroy_from_plan(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str: ...

    @abstractmethod
    async def output(
        self,
        hooks: Hooks | None = None,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> str:
        """Return the module outputs as ``{name: {value, type, sensitive}}`` JSON."""

    @abstractmethod
    async def statistics(
        self,
        *,
        kill: asyncio.Event | None = None,
        graceful: asyncio.Event | None = None,
    ) -> int:
        """Query the backend for the current number of managed resources."""

    @abstractmethod
    def parse_apply_plan(self) -> ParsedPlan: ...

    @abstractmethod
    def parse_destroy_plan(self) -> ParsedPlan: ...

    # -- shared helpers ----------------------------------------------------

    def read_statistics_from_file(self) -> int:
        """Return the count the last apply/destroy wrote, or 0 if there is none."""
        path = self.statistics_path
        if not path.is_file():
            self._log.warning("Statistics file not found at %s", path)
            return 0
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            self._log.error("Error reading statistics file: %s", exc)
            return 0
        try:
            return int(content.strip())
        except ValueError:
            self._log.warning("Unable to parse statistics from file: %s", content)
            return 0

    async def parse_json_to_output_set(
        self,
        raw: str,
        output_sources: Mapping[str, bool] | None = None,
    ) -> OutputSet:
        return await parse_json_to_output_set(raw, output_sources)
