"""Unit tests for core/supervisor/manager.py - node lifecycle against a fake host."""
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio

import pytest

from core.config import LEDGER_NODE_ID
from core.exceptions import (
    AlreadyRunningError,
    CommandError,
    ConfigError,
    LockDetectedError,
    StartFailedError,
    UnknownNodeError,
)
from core.executor import CommandResult
from core.supervisor import NodeKind, NodePhase, NodeProcess, NodeSupervisor

ALICE_ARGS = "hydra-node --node-id alice-node --api-port 4001 --listen 127.0.0.1:5001"


def _launches(host) -> list:
    return [c for c in host.calls if c.background]


# ── Start ─────────────────────────────────────────────────


class TestStart:
    async def test_start_ledger(self, supervisor, host, registry):
        process = await supervisor.start(LEDGER_NODE_ID)

        assert process.pid in host.processes
        assert process.kind == NodeKind.LEDGER
        assert registry.get(LEDGER_NODE_ID) is process
        assert registry.phase(LEDGER_NODE_ID) == NodePhase.RUNNING
        launch = _launches(host)[0]
        assert launch.command.startswith("cardano-node run")
        assert launch.log_file == "/tmp/hc-test-logs/cardano-node.log"
        assert launch.cwd == "~"
        assert "cardano-node started" in process.log_tail

    async def test_start_head_uses_api_port(self, supervisor, host):
        process = await supervisor.start("alice-node")

        assert process.api_port == 4001
        assert "--hydra-scripts-tx-id deadbeef" in _launches(host)[0].command
        status = await supervisor.status("alice-node")
        assert status.running
        assert status.pid == process.pid

    async def test_start_twice_raises_and_keeps_one_process(self, supervisor, host):
        first = await supervisor.start(LEDGER_NODE_ID)

        with pytest.raises(AlreadyRunningError) as exc_info:
            await supervisor.start(LEDGER_NODE_ID)

        assert exc_info.value.pid == first.pid
        assert len(_launches(host)) == 1
        assert len(host.processes) == 1

    async def test_concurrent_starts_launch_once(self, supervisor, host):
        results = await asyncio.gather(
            supervisor.start("bob-node"),
            supervisor.start("bob-node"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, NodeProcess) for r in results) == 1
        assert sum(isinstance(r, AlreadyRunningError) for r in results) == 1
        assert len(_launches(host)) == 1

    async def test_externally_started_node_is_already_running(self, supervisor, host):
        pid = host.spawn(ALICE_ARGS, elapsed=300)

        with pytest.raises(AlreadyRunningError) as exc_info:
            await supervisor.start("alice-node")

        assert exc_info.value.pid == pid
        assert _launches(host) == []

    async def test_process_never_appears(self, supervisor, host, registry):
        host.broken_binaries.add("hydra-node")
        host.crash_log = "hydra-node: Missing file: alice-node.sk\n"

        with pytest.raises(StartFailedError) as exc_info:
            await supervisor.start("alice-node")

        assert exc_info.value.log_excerpt == "hydra-node: Missing file: alice-node.sk\n"
        assert registry.get("alice-node") is None
        assert registry.phase("alice-node") == NodePhase.NOT_RUNNING
        # one lookup before launch plus one per poll attempt
        assert len(host.matching("ps -eo")) == 1 + 3

    async def test_launcher_failure(self, supervisor, host):
        host.responses.append(
            ("cardano-node run", CommandResult(stderr="setsid: not found", exit_code=127)),
        )

        with pytest.raises(StartFailedError) as exc_info:
            await supervisor.start(LEDGER_NODE_ID)

        assert "setsid: not found" in exc_info.value.log_excerpt

    async def test_unrecorded_process_is_start_failure(self, supervisor, registry, monkeypatch):
        reconcile = supervisor._reconcile

        def forgetful(spec, rows):
            status = reconcile(spec, rows)
            registry.remove(spec.node_id)
            return status

        monkeypatch.setattr(supervisor, "_reconcile", forgetful)

        with pytest.raises(StartFailedError) as exc_info:
            await supervisor.start(LEDGER_NODE_ID)

        assert exc_info.value.reason == "process appeared but could not be recorded"
        assert registry.phase(LEDGER_NODE_ID) == NodePhase.NOT_RUNNING

    async def test_unknown_node(self, supervisor):
        with pytest.raises(UnknownNodeError):
            await supervisor.start("carol-node")


class TestLedgerLock:
    async def test_stale_lock_removed_before_launch(self, supervisor, host):
        host.lock_present = True

        await supervisor.start(LEDGER_NODE_ID)

        commands = host.commands()
        rm_index = next(i for i, c in enumerate(commands) if c == "rm -f db/lock")
        launch_index = next(i for i, c in enumerate(host.calls) if c.background)
        assert rm_index < launch_index
        assert host.lock_present is False

    async def test_leftover_ledger_processes_killed(self, supervisor, host):
        host.lock_present = True
        leftover = host.spawn("cardano-node --version")

        await supervisor.start(LEDGER_NODE_ID)

        assert f"kill -TERM {leftover}" in host.commands()
        assert leftover not in host.processes

    async def test_stuck_lock_raises(self, supervisor, host, registry):
        host.lock_present = True
        host.lock_stuck = True

        with pytest.raises(LockDetectedError) as exc_info:
            await supervisor.start(LEDGER_NODE_ID)

        assert exc_info.value.lock_path == "db/lock"
        assert _launches(host) == []
        assert registry.phase(LEDGER_NODE_ID) == NodePhase.NOT_RUNNING

    async def test_no_lock_probe_for_heads(self, supervisor, host):
        await supervisor.start("alice-node")
        assert host.matching("echo LOCKED") == []


class TestScriptsTxId:
    @pytest.fixture
    def unresolved(self, config, host, registry) -> NodeSupervisor:
        config.network.hydra_scripts_tx_id = None
        return NodeSupervisor(config, host, registry)

    async def test_fetched_and_cached(self, unresolved, host):
        host.scripts_tx_id_answer = "cafe01"

        assert await unresolved.resolve_scripts_tx_id() == "cafe01"
        assert await unresolved.resolve_scripts_tx_id() == "cafe01"
        assert len(host.matching("curl ")) == 1
        assert "networks.json" in host.matching("curl ")[0].command

    async def test_null_answer_fails_start(self, unresolved, host):
        host.scripts_tx_id_answer = "null"

        with pytest.raises(ConfigError):
            await unresolved.start("bob-node")

        assert _launches(host) == []

    async def test_fetch_disabled(self, unresolved, config, host):
        config.network.fetch_scripts_tx_id = False

        with pytest.raises(ConfigError):
            await unresolved.resolve_scripts_tx_id()
        assert host.matching("curl ") == []


# ── Stop ──────────────────────────────────────────────────


class TestStop:
    async def test_stop_running_node(self, supervisor, host, registry):
        process = await supervisor.start("alice-node")

        await supervisor.stop("alice-node")

        assert f"kill -TERM {process.pid}" in host.commands()
        assert process.pid not in host.processes
        assert registry.get("alice-node") is None
        assert (await supervisor.status("alice-node")).running is False

    async def test_stop_with_empty_registry_finds_live_process(self, supervisor, host):
        pid = host.spawn(ALICE_ARGS)

        await supervisor.stop("alice-node")

        assert pid not in host.processes
        assert (await supervisor.status("alice-node")).running is False

    async def test_stop_not_running_is_noop(self, supervisor, host, registry):
        await supervisor.stop("bob-node")

        assert host.matching("kill ") == []
        assert registry.phase("bob-node") == NodePhase.NOT_RUNNING
        assert (await supervisor.status("bob-node")).running is False

    async def test_escalates_to_kill(self, supervisor, host):
        pid = host.spawn(ALICE_ARGS)
        host.ignore_term.add(pid)

        await supervisor.stop("alice-node")

        assert f"kill -KILL {pid}" in host.commands()
        assert pid not in host.processes

    async def test_residual_process_does_not_raise(self, supervisor, host, registry):
        pid = host.spawn(ALICE_ARGS)
        host.unkillable.add(pid)

        await supervisor.stop("alice-node")

        assert pid in host.processes
        assert registry.get("alice-node") is None
        assert registry.phase("alice-node") == NodePhase.NOT_RUNNING

    async def test_stale_registry_pid_is_signalled(self, supervisor, host, registry):
        registry.put(NodeProcess(node_id="bob-node", kind=NodeKind.HEAD, pid=31337))

        await supervisor.stop("bob-node")

        assert "kill -TERM 31337" in host.commands()
        assert registry.get("bob-node") is None

    async def test_ps_failure_does_not_raise(self, supervisor, host, registry):
        registry.put(NodeProcess(node_id="bob-node", kind=NodeKind.HEAD, pid=55))
        host.responses.append(("ps -eo", CommandResult(stderr="ps: broken", exit_code=1)))

        await supervisor.stop("bob-node")

        assert registry.get("bob-node") is None


# ── Status ────────────────────────────────────────────────


class TestStatus:
    async def test_not_running(self, supervisor):
        status = await supervisor.status(LEDGER_NODE_ID)
        assert status.running is False
        assert status.to_dict() == {"node_id": LEDGER_NODE_ID, "running": False}

    async def test_adopts_external_process(self, supervisor, host, registry):
        pid = host.spawn(ALICE_ARGS, elapsed=120)

        status = await supervisor.status("alice-node")

        assert status.running and status.pid == pid
        assert status.api_port == 4001
        assert registry.get("alice-node").pid == pid
        assert registry.phase("alice-node") == NodePhase.RUNNING
        data = status.to_dict()
        assert data["pid"] == pid
        assert "start_time" in data

    async def test_oldest_match_wins(self, supervisor, host):
        host.spawn(ALICE_ARGS, elapsed=10)
        oldest = host.spawn(ALICE_ARGS, elapsed=500)

        status = await supervisor.status("alice-node")

        assert status.pid == oldest

    async def test_stale_entry_pruned(self, supervisor, registry):
        registry.put(NodeProcess(node_id="bob-node", kind=NodeKind.HEAD, pid=999))
        registry.set_phase("bob-node", NodePhase.RUNNING)

        status = await supervisor.status("bob-node")

        assert status.running is False
        assert registry.get("bob-node") is None
        assert registry.phase("bob-node") == NodePhase.NOT_RUNNING

    async def test_pid_change_replaces_entry(self, supervisor, host, registry):
        registry.put(NodeProcess(node_id="alice-node", kind=NodeKind.HEAD, pid=999))
        pid = host.spawn(ALICE_ARGS)

        await supervisor.status("alice-node")

        assert registry.get("alice-node").pid == pid

    async def test_status_all_single_lookup(self, supervisor, host):
        host.spawn("cardano-node run --config config.json")

        statuses = await supervisor.status_all()

        assert list(statuses) == [LEDGER_NODE_ID, "alice-node", "bob-node"]
        assert statuses[LEDGER_NODE_ID].running
        assert not statuses["alice-node"].running
        assert len(host.matching("ps -eo")) == 1

    async def test_ps_failure_raises(self, supervisor, host):
        host.responses.append(("ps -eo", CommandResult(stderr="denied", exit_code=1)))
        with pytest.raises(CommandError):
            await supervisor.status(LEDGER_NODE_ID)

    async def test_cached_process_status(self, supervisor):
        assert supervisor.get_process_status("alice-node") == {
            "phase": "not_running", "process": None,
        }
        process = await supervisor.start("alice-node")
        cached = supervisor.get_process_status("alice-node")
        assert cached["phase"] == "running"
        assert cached["process"]["pid"] == process.pid


# ── Clear data ────────────────────────────────────────────


class TestClearData:
    async def test_default_paths_single_command(self, supervisor, host):
        cleared = await supervisor.clear_data()

        assert "~/persistence-alice" in cleared
        assert len(host.calls) == 1
        command = host.calls[0].command
        assert "rm -rf ~/persistence-alice" in command
        assert "rm -rf /tmp/hydra-*" in command
        assert command.endswith("mkdir -p ~/persistence-alice ~/persistence-bob")

    async def test_explicit_paths(self, supervisor, host):
        cleared = await supervisor.clear_data(["/tmp/persistence-x"])
        assert cleared == ["/tmp/persistence-x"]
        assert host.calls[0].command.startswith("rm -rf /tmp/persistence-x && mkdir -p")

    @pytest.mark.parametrize("path", ["/", "~", "~/", "/*", "a;rm -rf /", "$(reboot)", "x y"])
    async def test_unsafe_paths_rejected(self, supervisor, host, path):
        with pytest.raises(ValueError):
            await supervisor.clear_data([path])
        assert host.calls == []

    async def test_failure_raises(self, supervisor, host):
        host.responses.append(("rm -rf", CommandResult(stderr="Permission denied", exit_code=1)))
        with pytest.raises(CommandError):
            await supervisor.clear_data()
