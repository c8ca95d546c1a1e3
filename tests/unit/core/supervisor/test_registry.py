"""Unit tests for core/supervisor/registry.py - node process cache."""
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from datetime import datetime, timezone

from core.supervisor.registry import (
    NodeKind,
    NodePhase,
    NodeProcess,
    NodeRegistry,
    get_registry,
    reset_registry,
)


def _proc(node_id: str = "alice-node", pid: int = 42) -> NodeProcess:
    return NodeProcess(node_id=node_id, kind=NodeKind.HEAD, pid=pid, api_port=4001)


class TestNodeRegistry:
    def test_empty_on_creation(self):
        reg = NodeRegistry()
        assert reg.snapshot() == {}
        assert reg.get("alice-node") is None
        assert reg.phase("alice-node") == NodePhase.NOT_RUNNING

    def test_put_get_remove(self):
        reg = NodeRegistry()
        reg.put(_proc())
        assert reg.get("alice-node").pid == 42
        removed = reg.remove("alice-node")
        assert removed is not None and removed.pid == 42
        assert reg.get("alice-node") is None
        assert reg.remove("alice-node") is None

    def test_put_replaces_entry(self):
        reg = NodeRegistry()
        reg.put(_proc(pid=1))
        reg.put(_proc(pid=2))
        assert reg.get("alice-node").pid == 2
        assert len(reg.snapshot()) == 1

    def test_snapshot_is_a_copy(self):
        reg = NodeRegistry()
        reg.put(_proc())
        snap = reg.snapshot()
        snap.clear()
        assert reg.get("alice-node") is not None

    def test_lock_is_per_node_and_stable(self):
        reg = NodeRegistry()
        assert reg.lock("a") is reg.lock("a")
        assert reg.lock("a") is not reg.lock("b")

    def test_clear(self):
        reg = NodeRegistry()
        reg.put(_proc())
        reg.set_phase("alice-node", NodePhase.RUNNING)
        reg.clear()
        assert reg.snapshot() == {}
        assert reg.phase("alice-node") == NodePhase.NOT_RUNNING


class TestNodeProcess:
    def test_to_dict(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        data = NodeProcess(
            node_id="cardano-node", kind=NodeKind.LEDGER, pid=7, start_time=start,
        ).to_dict()
        assert data["kind"] == "ledger"
        assert data["pid"] == 7
        assert data["start_time"] == start.isoformat()
        assert data["api_port"] is None
        assert data["last_known_alive"] is None


class TestSingleton:
    def test_get_registry_is_shared(self):
        assert get_registry() is get_registry()

    def test_reset_drops_instance(self):
        first = get_registry()
        reset_registry()
        assert get_registry() is not first
