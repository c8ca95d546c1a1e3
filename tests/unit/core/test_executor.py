"""Unit tests for core/executor.py - shell command execution."""
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import contextlib
import os
import signal

import pytest

from core.config import ExecutorConfig
from core.exceptions import CommandError
from core.executor import CommandExecutor, CommandResult, quote_path


@pytest.fixture
def executor() -> CommandExecutor:
    return CommandExecutor(ExecutorConfig(shell=["bash", "-c"], timeout_sec=10.0))


class TestQuotePath:
    def test_plain_path_unchanged(self):
        assert quote_path("/tmp/log.txt") == "/tmp/log.txt"

    def test_space_is_quoted(self):
        assert quote_path("/tmp/my dir") == "'/tmp/my dir'"

    def test_tilde_stays_expandable(self):
        assert quote_path("~") == "~"
        assert quote_path("~/credentials") == "~/credentials"
        assert quote_path("~/my creds") == "~/'my creds'"


class TestCommandResult:
    def test_check_passes_on_zero(self):
        result = CommandResult(stdout="x", exit_code=0)
        assert result.ok
        assert result.check() is result

    def test_check_raises_on_failure(self):
        result = CommandResult(stderr="nope", exit_code=3, command="false")
        with pytest.raises(CommandError) as exc_info:
            result.check()
        assert exc_info.value.exit_code == 3
        assert exc_info.value.stderr == "nope"


class TestCompose:
    def test_background_requires_log_file(self):
        with pytest.raises(ValueError):
            CommandExecutor._compose("sleep 1", background=True, log_file=None, cwd=None)

    def test_background_detaches_and_echoes_pid(self):
        line = CommandExecutor._compose(
            "cardano-node run", background=True, log_file="/tmp/ledger.log", cwd="~",
        )
        assert line.startswith("cd ~ || exit 1; setsid nohup cardano-node run")
        assert "> /tmp/ledger.log 2>&1" in line
        assert line.endswith("& echo $!")

    def test_foreground_cwd_chains_command(self):
        line = CommandExecutor._compose("pwd", background=False, log_file=None, cwd="/srv")
        assert line == "cd /srv && pwd"

    def test_prefix_and_shell_wrap_command(self):
        ex = CommandExecutor(ExecutorConfig(prefix=["wsl"], shell=["bash", "-lc"]))
        assert ex._argv("ls") == ["wsl", "bash", "-lc", "ls"]


class TestRun:
    async def test_captures_stdout(self, executor):
        result = await executor.run("echo hello")
        assert result.ok
        assert result.stdout.strip() == "hello"

    async def test_nonzero_exit_is_returned_not_raised(self, executor):
        result = await executor.run("echo oops >&2; exit 4")
        assert result.exit_code == 4
        assert "oops" in result.stderr

    async def test_stdin_input(self, executor):
        result = await executor.run("cat", input="piped")
        assert result.stdout == "piped"

    async def test_cwd(self, executor, tmp_path):
        result = await executor.run("pwd", cwd=str(tmp_path))
        assert result.stdout.strip() == str(tmp_path)

    async def test_timeout_raises_command_error(self, executor):
        with pytest.raises(CommandError) as exc_info:
            await executor.run("sleep 5", timeout=0.2)
        assert exc_info.value.exit_code == -1

    async def test_background_with_cwd_returns_immediately(self, tmp_path):
        executor = CommandExecutor(ExecutorConfig(shell=["bash", "-c"], timeout_sec=5.0))
        log_file = str(tmp_path / "sleep.log")
        loop = asyncio.get_running_loop()
        started = loop.time()

        result = await executor.run(
            "sleep 30", background=True, log_file=log_file, cwd=str(tmp_path),
        )

        assert loop.time() - started < 2.0
        assert result.ok
        pid = int(result.stdout.strip())
        with contextlib.suppress(ProcessLookupError):
            os.kill(pid, signal.SIGKILL)

    async def test_background_with_missing_cwd_fails(self, executor, tmp_path):
        result = await executor.run(
            "sleep 30", background=True, log_file=str(tmp_path / "x.log"),
            cwd=str(tmp_path / "missing"),
        )
        assert result.exit_code == 1
        assert result.stdout == ""

    async def test_write_and_read_file(self, executor, tmp_path):
        target = str(tmp_path / "payload.json")
        await executor.write_file(target, '{"a": 1}')
        assert await executor.read_file(target) == '{"a": 1}'

    async def test_read_missing_file_returns_none(self, executor, tmp_path):
        assert await executor.read_file(str(tmp_path / "missing")) is None
