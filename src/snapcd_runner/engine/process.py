"""Run an assembled script under bash with two independent cancellation paths."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import TYPE_CHECKING

from snapcd_runner.engine import signals
from snapcd_runner.engine.errors import EngineCanceled, ExecutionError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from pathlib import Path

    from snapcd_runner.engine.errors import CancelMode

logger = logging.getLogger(__name__)

SHELL = "/bin/bash"
# Engines print long single-line JSON documents; readline() must not choke on them.
_STREAM_LIMIT = 16 * 1024 * 1024

# Reapers for processes whose caller already got EngineCanceled.
_reapers: set[asyncio.Task[None]] = set()


def build_env(
    env: Mapping[str, str],
    additional_binary_paths: Sequence[Path] = (),
) -> dict[str, str]:
    """Overlay *env* on the agent environment and prepend extra binary paths to PATH."""
    merged = {**os.environ, **env}
    if additional_binary_paths:
        extra = ":".join(str(p) for p in additional_binary_paths)
        merged["PATH"] = f"{extra}:{merged.get('PATH', '')}"
    return merged


async def _pump(
    stream: asyncio.StreamReader,
    sink: list[str],
    log: logging.Logger | logging.LoggerAdapter | None,
) -> None:
    while True:
        raw = await stream.readline()
        if not raw:
            return
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line:
            continue
        if log is not None:
            log.info("%s", line)
        sink.append(line)


async def _on_cancel(
    event: asyncio.Event,
    proc: asyncio.subprocess.Process,
    mode: CancelMode,
    action: Callable[[int], None],
    log: logging.Logger | logging.LoggerAdapter,
) -> CancelMode:
    await event.wait()
    if proc.returncode is None:
        try:
            action(proc.pid)
        except ProcessLookupError:
            pass
        except OSError as exc:
            log.error("Failed to signal process %d (%s): %s", proc.pid, mode, exc)
        else:
            if mode == "graceful":
                log.info("Sent SIGINT to process for graceful termination.")
            else:
                log.info("Process killed via cancellation.")
    return mode


async def _reap(
    exited: asyncio.Task[int],
    readers: list[asyncio.Task[None]],
    watchers: list[asyncio.Task[CancelMode]],
) -> None:
    try:
        await exited
        await asyncio.gather(*readers, return_exceptions=True)
    finally:
        for w in watchers:
            w.cancel()


def _detach(
    exited: asyncio.Task[int],
    readers: list[asyncio.Task[None]],
    watchers: list[asyncio.Task[CancelMode]],
) -> asyncio.Task[None]:
    reaper = asyncio.create_task(_reap(exited, readers, watchers))
    _reapers.add(reaper)
    reaper.add_done_callback(_reapers.discard)
    return reaper


async def run_script(
    script: str,
    *,
    cwd: Path,
    env: Mapping[str, str],
    log: logging.Logger | logging.LoggerAdapter,
    additional_binary_paths: Sequence[Path] = (),
    treat_stderr_as_error: bool = True,
    kill: asyncio.Event | None = None,
    graceful: asyncio.Event | None = None,
) -> str:
    """Execute *script* with ``bash -c`` in *cwd* and return its stdout.

    Stdout is forwarded line by line to *log* as it arrives; stderr is only
    collected.  Setting *graceful* sends SIGINT to the process group, setting
    *kill* force-kills it.  Either one makes this call raise
    :class:`EngineCanceled` straight away, while both stay armed until the
    process actually exits so a kill may still follow a graceful cancel.
    Await :meth:`EngineCanceled.wait_for_exit` before touching files the
    tool may still be writing.

    Raises:
        ExecutionError: Non-zero exit code, or any stderr output when
            *treat_stderr_as_error* is set.
        EngineCanceled: *graceful* or *kill* was set before the process exited.
    """
    proc = await asyncio.create_subprocess_exec(
        SHELL,
        "-c",
        script,
        cwd=str(cwd),
        env=build_env(env, additional_binary_paths),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
        limit=_STREAM_LIMIT,
    )
    logger.debug("Started %s (pid %d) in %s", SHELL, proc.pid, cwd)

    out_lines: list[str] = []
    err_lines: list[str] = []
    assert proc.stdout is not None
    assert proc.stderr is not None
    readers = [
        asyncio.create_task(_pump(proc.stdout, out_lines, log)),
        asyncio.create_task(_pump(proc.stderr, err_lines, None)),
    ]
    watchers: list[asyncio.Task[CancelMode]] = []
    if graceful is not None:
        watchers.append(
            asyncio.create_task(_on_cancel(graceful, proc, "graceful", signals.send_interrupt, log))
        )
    if kill is not None:
        watchers.append(asyncio.create_task(_on_cancel(kill, proc, "kill", signals.kill_tree, log)))
    exited = asyncio.create_task(proc.wait())

    try:
        done, _ = await asyncio.wait({exited, *watchers}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                signals.kill_tree(proc.pid)
        _detach(exited, readers, watchers)
        raise

    if exited not in done:
        mode = next(t for t in watchers if t in done).result()
        raise EngineCanceled(mode, _detach(exited, readers, watchers))

    for w in watchers:
        w.cancel()
    await asyncio.gather(*readers)

    stderr = "".join(f"{line}\n" for line in err_lines)
    returncode = exited.result()
    logger.debug("Process %d exited with %d", proc.pid, returncode)
    if returncode != 0 or (treat_stderr_as_error and stderr):
        raise ExecutionError(
            f"Process in {cwd} failed. \n {stderr}",
            stderr=stderr,
            exit_code=returncode,
        )
    return "".join(f"{line}\n" for line in out_lines)
