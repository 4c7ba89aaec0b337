"""Map exceptions to clean stderr messages and exit codes."""

from __future__ import annotations

import typer

EXIT_CANCELED = 130


def _err(msg: str, *, fg: str | None) -> None:
    """Print a styled message to stderr."""
    typer.echo(typer.style(msg, fg=fg), err=True)


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Print a clean error message to stderr and return an exit code.

    Cancellation maps to 130, every other error to 1.  No tracebacks are
    printed; tool stderr is shown as-is.
    """
    from snapcd_runner.config.loader import ConfigError
    from snapcd_runner.engine.errors import (
        EngineCanceled,
        EngineValidationError,
        EnvironmentNotInitializedError,
        ExecutionError,
        MalformedPlanError,
        OutputSetError,
        UnknownBackendError,
    )

    fg = typer.colors.RED if color else None

    if isinstance(exc, EngineCanceled):
        _err(f"Canceled ({exc.mode}).", fg=typer.colors.YELLOW if color else None)
        return EXIT_CANCELED

    if isinstance(exc, ConfigError):
        _err(f"Configuration error: {exc}", fg=fg)
    elif isinstance(exc, UnknownBackendError):
        _err(f"Configuration error: {exc}", fg=fg)
    elif isinstance(exc, EnvironmentNotInitializedError):
        _err(f"Not initialized: {exc}", fg=fg)
    elif isinstance(exc, EngineValidationError):
        _err(f"Validation failed: {exc}", fg=fg)
        if exc.error_output:
            _err(exc.error_output, fg=fg)
    elif isinstance(exc, ExecutionError):
        _err(f"Command failed (exit code {exc.exit_code}):", fg=fg)
        _err(exc.stderr or str(exc), fg=fg)
    elif isinstance(exc, MalformedPlanError):
        _err(f"Malformed plan: {exc}", fg=fg)
    elif isinstance(exc, OutputSetError):
        _err("Output processing failed:", fg=fg)
        for e in exc.errors:
            _err(f"  - {e}", fg=fg)
    else:
        _err(f"Error: {exc}", fg=fg)

    return 1
