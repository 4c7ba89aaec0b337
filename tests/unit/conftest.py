"""Shared fixtures for unit tests."""

from __future__ import annotations

import json
import logging
import stat
import zipfile
from typing import TYPE_CHECKING, Any

import pytest

from snapcd_runner.config.schema import RunnerSettings
from snapcd_runner.core.directories import ModuleDirectory
from snapcd_runner.core.metadata import TASK_LOGGER_NAME, JobMetadata, TaskContext
from snapcd_runner.engine import tfplan

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence
    from pathlib import Path

_SNAPCD_ENV_VARS = (
    "SNAPCD_WORKING_DIRECTORY",
    "SNAPCD_TEMP_DIRECTORY",
    "SNAPCD_ADDITIONAL_BINARY_PATHS",
    "SNAPCD_LOG",
    "NO_COLOR",
)


@pytest.fixture(autouse=True)
def _clean_snapcd_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SNAPCD_* env vars so unit tests don't leak host config."""
    for var in _SNAPCD_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_task_logger() -> Iterator[None]:
    """The CLI detaches the task logger from the root; undo that between tests."""
    yield
    task_logger = logging.getLogger(TASK_LOGGER_NAME)
    for h in list(task_logger.handlers):
        task_logger.removeHandler(h)
    task_logger.propagate = True
    task_logger.setLevel(logging.NOTSET)


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, bin_dir: Path) -> RunnerSettings:
    return RunnerSettings(
        working_directory=tmp_path / "modules",
        temp_directory=tmp_path / "temp",
        additional_binary_paths=[bin_dir],
    )


@pytest.fixture
def metadata() -> JobMetadata:
    return JobMetadata(stack_name="prod", namespace_name="network", module_name="vpc")


@pytest.fixture
def context(metadata: JobMetadata) -> TaskContext:
    return TaskContext(task_name="Test", metadata=metadata)


@pytest.fixture
def directory(metadata: JobMetadata, settings: RunnerSettings) -> ModuleDirectory:
    d = ModuleDirectory(metadata, settings)
    d.init_dir.mkdir(parents=True)
    return d


@pytest.fixture
def fake_binary(bin_dir: Path) -> Callable[[str, str], Path]:
    """Factory fixture: write an executable bash script named *name* into ``bin_dir``."""

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(f"#!/bin/bash\n{body}\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def write_tfplan() -> Callable[..., Path]:
    """Factory fixture: write a Terraform plan zip with ``tfplan`` and ``tfstate`` entries."""

    def _write(
        path: Path,
        *,
        resources: Sequence[tuple[str, int]] = (),
        outputs: Sequence[tuple[str, int]] = (),
        state: dict[str, Any] | None = None,
        include_plan: bool = True,
        include_state: bool = True,
    ) -> Path:
        plan = tfplan.Plan(version=3, terraform_version="1.9.0")
        for addr, action in resources:
            plan.resource_changes.append(
                tfplan.ResourceInstanceChange(addr=addr, change=tfplan.Change(action=action))
            )
        for name, action in outputs:
            plan.output_changes.append(
                tfplan.OutputChange(name=name, change=tfplan.Change(action=action))
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            if include_plan:
                archive.writestr("tfplan", plan.SerializeToString())
            if include_state:
                archive.writestr("tfstate", json.dumps(state or {"resources": []}))
        return path

    return _write
