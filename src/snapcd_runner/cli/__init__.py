"""Typer app for snapcd-runner.

Two streams reach stderr: tool output streamed through the task logger,
which is always shown bare, and the runner's own diagnostics, which stay
silent unless ``-v`` or ``SNAPCD_LOG`` asks for them.
"""

from __future__ import annotations

import logging
import os
import sys

import typer

from snapcd_runner import __version__
from snapcd_runner.core.metadata import TASK_LOGGER_NAME

app = typer.Typer(
    name="snapcd-runner",
    help="Drive Terraform, OpenTofu and Pulumi through a module's lifecycle.",
    no_args_is_help=True,
    add_completion=False,
)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class _ToolOutputHandler(logging.StreamHandler):
    """Echoes tool stdout lines without a level or logger prefix."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)
        self.setFormatter(logging.Formatter("%(message)s"))


def _show_tool_output() -> None:
    task_logger = logging.getLogger(TASK_LOGGER_NAME)
    for h in list(task_logger.handlers):
        if isinstance(h, _ToolOutputHandler):
            task_logger.removeHandler(h)
    task_logger.addHandler(_ToolOutputHandler())
    task_logger.setLevel(logging.INFO)
    # Diagnostics formatting on the root must not prefix tool lines.
    task_logger.propagate = False


def _diagnostics_level(verbose: int) -> int | None:
    requested = os.environ.get("SNAPCD_LOG", "").upper()
    if requested:
        if requested not in _LEVEL_NAMES:
            print(
                f"WARNING: invalid SNAPCD_LOG level '{requested}', "
                f"expected one of {', '.join(sorted(_LEVEL_NAMES))}; defaulting to INFO",
                file=sys.stderr,
            )
            return logging.INFO
        return getattr(logging, requested)
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return None


def _configure_logging(verbose: int) -> None:
    """Wire tool output and, when requested, runner diagnostics to stderr."""
    _show_tool_output()
    level = _diagnostics_level(verbose)
    if level is None:
        return
    logging.basicConfig(
        level=logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("snapcd_runner").setLevel(level)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"snapcd-runner {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Show runner diagnostics (-v info, -vv debug). SNAPCD_LOG overrides.",
    ),
) -> None:
    """Run one lifecycle step for the module named by --stack/--namespace/--module."""
    _ = version
    _configure_logging(verbose)


# Commands import ``app`` from here, so they register last.
from snapcd_runner.cli import commands as _commands  # noqa: E402, F401
