from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Unified exception hierarchy for HydraConsole.

All domain-specific exceptions derive from :class:`HydraConsoleError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except HydraConsoleError as e:
        logger.error("Domain error: %s", e)

Each error carries the context needed to diagnose it without re-running
(log excerpt, raw response fragment, stderr).
"""


class HydraConsoleError(Exception):
    """Base exception for all HydraConsole errors."""


# ── Process / Executor ───────────────────────────────────────


class ProcessError(HydraConsoleError):
    """Process supervision and command execution errors."""


class UnknownNodeError(ProcessError):
    """Referenced node id is not one of the managed nodes."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Unknown node: {node_id}")
        self.node_id = node_id


class AlreadyRunningError(ProcessError):
    """A live process already exists for the node."""

    def __init__(self, node_id: str, pid: int | None = None) -> None:
        super().__init__(f"{node_id} is already running (pid={pid})")
        self.node_id = node_id
        self.pid = pid


class StartFailedError(ProcessError):
    """Node did not appear in the process table after launch.

    ``log_excerpt`` holds the tail of the node's log file, which is the
    only failure signal available for a detached process.
    """

    def __init__(self, node_id: str, log_excerpt: str, reason: str = "") -> None:
        message = f"{node_id} failed to start"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.node_id = node_id
        self.log_excerpt = log_excerpt
        self.reason = reason


class NodeNotRunningError(ProcessError):
    """Operation requires a node that is not running."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"{node_id} is not running")
        self.node_id = node_id


class LockDetectedError(ProcessError):
    """Ledger database lock could not be cleared before start."""

    def __init__(self, lock_path: str, detail: str = "") -> None:
        super().__init__(f"Ledger database is locked: {lock_path} {detail}".rstrip())
        self.lock_path = lock_path
        self.detail = detail


class CommandError(ProcessError):
    """Shell command exited with a non-zero status (or timed out)."""

    def __init__(self, command: str, exit_code: int, stderr: str = "") -> None:
        first_line = command.splitlines()[0] if command else ""
        super().__init__(
            f"Command failed (exit={exit_code}): {first_line[:200]}"
            + (f" :: {stderr.strip()[:500]}" if stderr.strip() else "")
        )
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


# ── Head protocol ────────────────────────────────────────────


class HeadError(HydraConsoleError):
    """Head protocol connection errors."""


class NotConnectedError(HeadError):
    """Head websocket is not open; commands are never queued."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Not connected to {node_id}")
        self.node_id = node_id


class InvalidCommandError(HeadError):
    """Command is unknown or not allowed in the current head state."""


# ── Funds ────────────────────────────────────────────────────


class FundsError(HydraConsoleError):
    """Fund-movement workflow errors."""


class NoFundsAvailableError(FundsError):
    """Nothing to commit: the selection and the funds query are both empty."""

    def __init__(self, participant: str) -> None:
        super().__init__(f"No funds available for {participant}")
        self.participant = participant


class InsufficientFundsError(FundsError):
    """No single UTxO covers the requested amount."""

    def __init__(self, requested: int, largest: int) -> None:
        super().__init__(
            f"No single UTxO covers {requested} lovelace (largest: {largest})"
        )
        self.requested = requested
        self.largest = largest


class CommitRejectedError(FundsError):
    """Head node answered the commit request with an error-shaped payload."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Commit rejected: {reason[:500]}")
        self.reason = reason


class MalformedResponseError(FundsError):
    """An external command or node returned data that could not be parsed."""

    def __init__(self, raw: str, detail: str = "") -> None:
        super().__init__(f"Malformed response{': ' + detail if detail else ''}")
        self.raw = raw
        self.detail = detail


# ── Configuration ────────────────────────────────────────────


class ConfigError(HydraConsoleError):
    """Configuration errors."""


class ConfigValidationError(ConfigError):
    """Configuration validation failure."""
