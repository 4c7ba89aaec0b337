"""Assemble the shell script executed for a lifecycle step."""

from __future__ import annotations


def _banner(message: str) -> str:
    return f'echo ">>>>>>>> {message} <<<<<<<<<"'


def compose_script(
    base_command: str,
    before_hook: str | None = None,
    after_hook: str | None = None,
) -> str:
    """Wrap *base_command* with the optional before/after hook bodies.

    Hooks are inserted verbatim; they are approved before reaching the engine.
    """
    before_msg = "Now running before hook" if before_hook else "No before hook defined. Skipping."
    after_msg = "Now running after hook" if after_hook else "No after hook defined. Skipping."
    return "\n".join(
        [
            "",
            _banner(before_msg),
            before_hook or "",
            "",
            _banner("Now running main script"),
            base_command,
            "",
            _banner(after_msg),
            after_hook or "",
            "",
        ]
    )
