"""
Process-wide registry of known node processes.
"""

# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


# ── Types ──────────────────────────────────────────────────────────

class NodeKind(Enum):
    LEDGER = "ledger"
    HEAD = "head"


class NodePhase(Enum):
    """Lifecycle phase of a managed node."""
    NOT_RUNNING = "not_running"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class NodeProcess:
    """What the supervisor knows about one live node process."""
    node_id: str
    kind: NodeKind
    pid: int
    start_time: datetime | None = None
    api_port: int | None = None
    log_tail: str = ""
    last_known_alive: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "kind": self.kind.value,
            "pid": self.pid,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "api_port": self.api_port,
            "last_known_alive": (
                self.last_known_alive.isoformat() if self.last_known_alive else None
            ),
        }


# ── Registry ───────────────────────────────────────────────────────

@dataclass
class NodeRegistry:
    """
    Cache of node processes keyed by node id.

    The registry is a hint, never ground truth: the supervisor reconciles it
    against the live process table on every status call.  Lifecycle:

    - empty when the process starts
    - entry inserted when a start is confirmed in the process table
    - entry replaced when a status refresh sees a different pid
    - entry removed on confirmed stop or when the live lookup finds nothing

    ``lock(node_id)`` serialises start/stop for one node so that a start in
    flight makes a concurrent start observe the running process.
    """
    _entries: dict[str, NodeProcess] = field(default_factory=dict)
    _phases: dict[str, NodePhase] = field(default_factory=dict)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)

    def lock(self, node_id: str) -> asyncio.Lock:
        lock = self._locks.get(node_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[node_id] = lock
        return lock

    def get(self, node_id: str) -> NodeProcess | None:
        return self._entries.get(node_id)

    def put(self, process: NodeProcess) -> None:
        previous = self._entries.get(process.node_id)
        if previous is not None and previous.pid != process.pid:
            logger.info(
                "Registry entry for %s replaced (pid %s -> %s)",
                process.node_id, previous.pid, process.pid,
            )
        self._entries[process.node_id] = process

    def remove(self, node_id: str) -> NodeProcess | None:
        removed = self._entries.pop(node_id, None)
        if removed is not None:
            logger.debug("Registry entry removed: %s (pid %s)", node_id, removed.pid)
        return removed

    def phase(self, node_id: str) -> NodePhase:
        return self._phases.get(node_id, NodePhase.NOT_RUNNING)

    def set_phase(self, node_id: str, phase: NodePhase) -> None:
        old = self.phase(node_id)
        if old != phase:
            logger.debug("Phase %s: %s -> %s", node_id, old.value, phase.value)
        self._phases[node_id] = phase

    def snapshot(self) -> dict[str, NodeProcess]:
        return dict(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._phases.clear()
        self._locks.clear()


_registry: NodeRegistry | None = None


def get_registry() -> NodeRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _registry
    if _registry is None:
        _registry = NodeRegistry()
    return _registry


def reset_registry() -> None:
    """Drop the process-wide registry (tests, server shutdown)."""
    global _registry
    _registry = None
