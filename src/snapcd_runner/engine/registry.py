"""Backend registry and engine factory."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING

from snapcd_runner.core.directories import ModuleDirectory
from snapcd_runner.engine.errors import UnknownBackendError
from snapcd_runner.engine.pulumi import PulumiEngine
from snapcd_runner.engine.terraform import TerraformEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from snapcd_runner.config.schema import RunnerSettings
    from snapcd_runner.core.metadata import JobMetadata, TaskContext
    from snapcd_runner.engine.base import Engine

    EngineBuilder = Callable[..., Engine]


@dataclass(frozen=True)
class BackendRegistration:
    backend: str
    builder: EngineBuilder


class BackendRegistry:
    """Registry mapping backend name -> engine builder.

    Names are matched case-insensitively.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, BackendRegistration] = {}

    def register(self, backend: str, builder: EngineBuilder, *aliases: str) -> None:
        if not backend:
            raise ValueError("Backend name must be non-empty")
        registration = BackendRegistration(backend=backend.lower(), builder=builder)
        for name in (backend, *aliases):
            key = name.lower()
            if key in self._registrations:
                raise ValueError(f"Backend already registered: {name}")
            self._registrations[key] = registration

    def get(self, backend: str) -> BackendRegistration:
        try:
            return self._registrations[backend.lower()]
        except KeyError as e:
            raise UnknownBackendError(backend) from e

    def names(self) -> list[str]:
        return sorted(self._registrations)


def default_registry() -> BackendRegistry:
    registry = BackendRegistry()
    registry.register("terraform", functools.partial(TerraformEngine, executable="terraform"))
    registry.register("tofu", functools.partial(TerraformEngine, executable="tofu"), "opentofu")
    registry.register("pulumi", PulumiEngine)
    return registry


class EngineFactory:
    """Builds the engine for a backend name and the module a job targets."""

    def __init__(
        self,
        settings: RunnerSettings,
        registry: BackendRegistry | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry or default_registry()

    @property
    def additional_binary_paths(self) -> Sequence[Path]:
        return self._settings.additional_binary_paths

    def create(self, context: TaskContext, backend: str, metadata: JobMetadata) -> Engine:
        """Return a fresh engine; raises :class:`UnknownBackendError` for unsupported names."""
        registration = self._registry.get(backend)
        directory = ModuleDirectory(metadata, self._settings)
        return registration.builder(
            context,
            directory,
            additional_binary_paths=self.additional_binary_paths,
        )
