"""Process-group signalling used for cancellation."""

from __future__ import annotations

import os
import signal


def send_interrupt(pid: int) -> None:
    """Send SIGINT to the process group led by *pid*."""
    os.killpg(os.getpgid(pid), signal.SIGINT)


def kill_tree(pid: int) -> None:
    """Force-kill the process group led by *pid*."""
    os.killpg(os.getpgid(pid), signal.SIGKILL)
