"""Tests for the process runner."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from snapcd_runner.engine.errors import EngineCanceled, ExecutionError
from snapcd_runner.engine.process import build_env, run_script

_log = logging.getLogger("tests.process")


async def _run(script: str, cwd: Path, **kwargs: object) -> str:
    return await run_script(script, cwd=cwd, env={}, log=_log, **kwargs)  # type: ignore[arg-type]


class TestOutput:
    @pytest.mark.asyncio
    async def test_stdout_lines_returned_and_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="tests.process"):
            out = await _run("echo one\necho\necho two", tmp_path)

        assert out == "one\ntwo\n"
        assert [r.getMessage() for r in caplog.records if r.name == "tests.process"] == [
            "one",
            "two",
        ]

    @pytest.mark.asyncio
    async def test_runs_in_cwd_with_env(self, tmp_path: Path) -> None:
        out = await run_script(
            'pwd\necho "$GREETING"', cwd=tmp_path, env={"GREETING": "hello"}, log=_log
        )
        assert out.splitlines() == [str(tmp_path), "hello"]

    @pytest.mark.asyncio
    async def test_stderr_is_not_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="tests.process"):
            await _run("echo noise >&2", tmp_path, treat_stderr_as_error=False)
        assert "noise" not in caplog.text


class TestFailures:
    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path: Path) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            await _run("echo broken >&2\nexit 3", tmp_path)

        assert exc_info.value.exit_code == 3
        assert exc_info.value.stderr == "broken\n"
        assert "broken" in str(exc_info.value)
        assert str(tmp_path) in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_stderr_fails_strict_runs(self, tmp_path: Path) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            await _run("echo warning >&2", tmp_path)
        assert exc_info.value.exit_code == 0

    @pytest.mark.asyncio
    async def test_stderr_tolerated_when_relaxed(self, tmp_path: Path) -> None:
        out = await _run("echo progress >&2\necho done", tmp_path, treat_stderr_as_error=False)
        assert out == "done\n"

    @pytest.mark.asyncio
    async def test_non_zero_exit_fails_relaxed_runs(self, tmp_path: Path) -> None:
        with pytest.raises(ExecutionError):
            await _run("exit 1", tmp_path, treat_stderr_as_error=False)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_graceful(self, tmp_path: Path) -> None:
        graceful = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, graceful.set)

        with pytest.raises(EngineCanceled) as exc_info:
            await _run("sleep 30", tmp_path, graceful=graceful, kill=asyncio.Event())

        assert exc_info.value.mode == "graceful"
        assert not isinstance(exc_info.value, ExecutionError)
        await asyncio.wait_for(exc_info.value.wait_for_exit(), timeout=5)

    @pytest.mark.asyncio
    async def test_kill(self, tmp_path: Path) -> None:
        kill = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, kill.set)

        with pytest.raises(EngineCanceled) as exc_info:
            await _run("sleep 30", tmp_path, kill=kill)

        assert exc_info.value.mode == "kill"
        await asyncio.wait_for(exc_info.value.wait_for_exit(), timeout=5)

    @pytest.mark.asyncio
    async def test_graceful_lets_the_tool_clean_up(self, tmp_path: Path) -> None:
        marker = tmp_path / "partial.txt"
        graceful = asyncio.Event()
        asyncio.get_running_loop().call_later(0.3, graceful.set)
        script = (
            "sleep 5 >/dev/null 2>&1 &\n"
            f"trap 'kill $!; sleep 0.2; echo partial > {marker}; exit 130' INT\n"
            "wait"
        )

        with pytest.raises(EngineCanceled) as exc_info:
            await _run(script, tmp_path, graceful=graceful)

        assert not marker.exists()
        await asyncio.wait_for(exc_info.value.wait_for_exit(), timeout=5)
        assert marker.read_text() == "partial\n"

    @pytest.mark.asyncio
    async def test_kill_still_reaches_a_process_ignoring_interrupt(self, tmp_path: Path) -> None:
        graceful = asyncio.Event()
        kill = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, graceful.set)

        with pytest.raises(EngineCanceled) as exc_info:
            await _run("trap '' INT\nsleep 30", tmp_path, graceful=graceful, kill=kill)

        assert exc_info.value.mode == "graceful"
        kill.set()
        await asyncio.wait_for(exc_info.value.wait_for_exit(), timeout=5)

    @pytest.mark.asyncio
    async def test_unset_events_do_not_interfere(self, tmp_path: Path) -> None:
        out = await _run("echo ok", tmp_path, kill=asyncio.Event(), graceful=asyncio.Event())
        assert out == "ok\n"

    @pytest.mark.asyncio
    async def test_wait_for_exit_without_a_process(self) -> None:
        await EngineCanceled("kill").wait_for_exit()


class TestBuildEnv:
    def test_overlay_and_path_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PATH", "/usr/bin")
        monkeypatch.setenv("KEEP", "agent")

        env = build_env({"EXTRA": "1"}, [Path("/opt/tools"), Path("/opt/more")])

        assert env["PATH"] == "/opt/tools:/opt/more:/usr/bin"
        assert env["EXTRA"] == "1"
        assert env["KEEP"] == "agent"

    def test_no_extra_paths_keeps_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PATH", "/usr/bin")
        assert build_env({})["PATH"] == "/usr/bin"

    def test_resolved_env_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_REGION", "us-east-1")
        assert build_env({"AWS_REGION": "eu-west-1"})["AWS_REGION"] == "eu-west-1"
