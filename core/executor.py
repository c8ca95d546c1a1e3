# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Shell command execution in the target environment.

Every interaction with node binaries, the ledger CLI and the process table
goes through :class:`CommandExecutor`.  The target may be the local machine
or a shell reached through a prefix (``wsl``), so commands are passed as a
single shell string and interpreted by that shell.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass

from core.config import ExecutorConfig
from core.exceptions import CommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured output of a finished command."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    command: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self) -> CommandResult:
        """Return self, or raise :class:`CommandError` on non-zero exit."""
        if self.exit_code != 0:
            raise CommandError(self.command, self.exit_code, self.stderr or self.stdout)
        return self


def quote_path(path: str) -> str:
    """Shell-quote *path* while keeping a leading ``~`` expandable."""
    if path == "~":
        return "~"
    if path.startswith("~/"):
        rest = path[2:]
        return "~/" + shlex.quote(rest) if rest else "~/"
    return shlex.quote(path)


class CommandExecutor:
    """Run shell commands synchronously or as detached background jobs."""

    def __init__(self, config: ExecutorConfig | None = None) -> None:
        self.config = config or ExecutorConfig()

    def _argv(self, command: str) -> list[str]:
        return [*self.config.prefix, *self.config.shell, command]

    @staticmethod
    def _compose(
        command: str,
        *,
        background: bool,
        log_file: str | None,
        cwd: str | None,
    ) -> str:
        if background:
            if not log_file:
                raise ValueError("background commands require log_file")
            # setsid+nohup: the job outlives both the shell and this process.
            command = (
                f"setsid nohup {command} > {quote_path(log_file)} 2>&1 "
                f"< /dev/null & echo $!"
            )
            if cwd:
                # Only the node itself may be backgrounded; a backgrounded
                # `cd && ...` list holds our output pipes open until it exits.
                command = f"cd {quote_path(cwd)} || exit 1; {command}"
            return command
        if cwd:
            command = f"cd {quote_path(cwd)} && {command}"
        return command

    async def run(
        self,
        command: str,
        *,
        background: bool = False,
        log_file: str | None = None,
        cwd: str | None = None,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run *command* and return its captured output.

        Args:
            command: Shell command line, interpreted by the configured shell.
            background: Launch detached with both streams sent to *log_file*.
                The result's stdout carries the launcher pid.
            log_file: Log destination for background jobs (required then).
            cwd: Directory to ``cd`` into first.
            input: Text written to the command's stdin.
            timeout: Seconds before the child is killed.  Defaults to the
                configured executor timeout.

        Raises:
            CommandError: If the command times out.  A non-zero exit status
                is *not* raised; use :meth:`CommandResult.check`.
        """
        full = self._compose(command, background=background, log_file=log_file, cwd=cwd)
        effective_timeout = timeout if timeout is not None else self.config.timeout_sec
        logger.debug("exec: %s", full)

        proc = await asyncio.create_subprocess_exec(
            *self._argv(full),
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(input.encode("utf-8") if input is not None else None),
                timeout=effective_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Command timed out after %.1fs: %s", effective_timeout, full)
            proc.kill()
            await proc.wait()
            raise CommandError(full, -1, f"timed out after {effective_timeout}s") from None

        result = CommandResult(
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            exit_code=proc.returncode or 0,
            command=full,
        )
        logger.debug("exec exit=%d: %s", result.exit_code, command.splitlines()[0] if command else "")
        return result

    async def write_file(self, path: str, content: str) -> None:
        """Write *content* to *path* inside the execution environment."""
        (await self.run(f"cat > {quote_path(path)}", input=content)).check()

    async def read_file(self, path: str) -> str | None:
        """Return the content of *path*, or None when it does not exist."""
        quoted = quote_path(path)
        result = await self.run(f"test -f {quoted} && cat {quoted}")
        if not result.ok:
            return None
        return result.stdout
