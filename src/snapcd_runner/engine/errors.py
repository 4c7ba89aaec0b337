"""Engine error types."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    import asyncio

CancelMode = Literal["graceful", "kill"]


class EngineError(Exception):
    """Base exception for engine errors."""


class UnknownBackendError(EngineError):
    """Raised when no engine is registered for a backend name."""

    def __init__(self, backend: str) -> None:
        super().__init__(f"Unknown engine backend: {backend}")
        self.backend = backend


class EnvironmentNotInitializedError(EngineError):
    """Raised when a lifecycle step runs before Init persisted the environment."""

    def __init__(self, env_path: object) -> None:
        super().__init__(
            f"Environment variables file {env_path} not found. "
            "Init must be run first to resolve and store environment variables."
        )
        self.env_path = env_path


class ExecutionError(EngineError):
    """A subprocess exited non-zero or (for strict backends) wrote to stderr."""

    def __init__(self, message: str, *, stderr: str = "", exit_code: int | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class EngineValidationError(ExecutionError):
    """Raised by ``validate`` so callers can render it apart from other failures."""

    def __init__(
        self,
        message: str,
        *,
        working_directory: str,
        exit_code: int = -1,
        error_output: str = "",
    ) -> None:
        super().__init__(message, stderr=error_output, exit_code=exit_code)
        self.working_directory = working_directory
        self.error_output = error_output


class EngineCanceled(EngineError):
    """Raised when a running step is canceled gracefully or killed.

    Deliberately not an :class:`ExecutionError`: callers report it as
    canceled rather than failed.
    """

    def __init__(self, mode: CancelMode, exited: asyncio.Task[None] | None = None) -> None:
        super().__init__(f"Process canceled ({mode})")
        self.mode = mode
        self._exited = exited

    async def wait_for_exit(self) -> None:
        """Wait until the canceled process has actually exited.

        The kill path stays armed meanwhile, so a kill requested after a
        graceful cancel still reaches the process.
        """
        if self._exited is not None:
            await self._exited


class MalformedPlanError(EngineError):
    """The plan artifact is missing required entries or cannot be decoded."""


class OutputPropertyError(EngineError):
    """A single output property could not be converted."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Error processing JSON property '{name}': {message}")
        self.name = name


class OutputSetError(EngineError):
    """One or more output properties failed; every failure is collected."""

    def __init__(self, errors: list[OutputPropertyError]) -> None:
        self.errors = errors
        msg = "One or more errors occurred while processing JSON properties:\n" + "\n".join(
            f"  - {e}" for e in errors
        )
        super().__init__(msg)
