"""
Node Supervisor - Manages lifecycle of the ledger node and the head nodes.
"""

# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from core.config import LEDGER_NODE_ID, HydraConsoleConfig
from core.exceptions import (
    AlreadyRunningError,
    CommandError,
    ConfigError,
    LockDetectedError,
    StartFailedError,
)
from core.executor import CommandExecutor, quote_path
from core.supervisor.nodes import (
    PS_COMMAND,
    NodeSpec,
    ProcessRow,
    ProcessSignature,
    build_node_specs,
    get_spec,
    head_command,
    ledger_command,
    ledger_lock_path,
    parse_process_table,
)
from core.supervisor.registry import (
    NodePhase,
    NodeProcess,
    NodeRegistry,
    get_registry,
)
from core.logging_config import bind_node_context
from core.time_utils import now_utc, started_at

logger = logging.getLogger(__name__)

# Characters allowed in clear-data paths; they are passed to ``rm -rf`` unquoted
# so that globs expand.
_SAFE_PATH_RE = re.compile(r"^[A-Za-z0-9_./~*-]+$")


@dataclass
class NodeStatus:
    """Live status of one node, as reported to callers."""
    node_id: str
    running: bool
    pid: int | None = None
    start_time: datetime | None = None
    api_port: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"node_id": self.node_id, "running": self.running}
        if self.pid is not None:
            data["pid"] = self.pid
        if self.start_time is not None:
            data["start_time"] = self.start_time.isoformat()
        if self.api_port is not None:
            data["api_port"] = self.api_port
        return data


# ── Node Supervisor ────────────────────────────────────────────────

class NodeSupervisor:
    """
    Supervisor for the three demo nodes.

    Node processes are detached background jobs, so there is no child
    handle to wait on.  Identity is re-derived from the process table
    (executable + signature arguments) on every call; the registry only
    caches the last observation.

    Responsibilities:
    - Start nodes (stale ledger lock cleanup, launch, appearance polling)
    - Stop nodes (TERM, grace period, KILL, verification)
    - Live status with registry reconciliation
    - Bulk removal of persistence data
    """

    def __init__(
        self,
        config: HydraConsoleConfig,
        executor: CommandExecutor | None = None,
        registry: NodeRegistry | None = None,
    ):
        self.config = config
        self.executor = executor or CommandExecutor(config.executor)
        self.registry = registry if registry is not None else get_registry()
        self.specs: dict[str, NodeSpec] = build_node_specs(config)
        self._scripts_tx_id: str | None = config.network.hydra_scripts_tx_id

    @property
    def node_ids(self) -> list[str]:
        return list(self.specs)

    def spec(self, node_id: str) -> NodeSpec:
        return get_spec(self.specs, node_id)

    # ── Process table ──────────────────────────────────────────

    async def _process_table(self) -> list[ProcessRow]:
        result = await self.executor.run(PS_COMMAND)
        if not result.ok:
            raise CommandError(PS_COMMAND, result.exit_code, result.stderr)
        return parse_process_table(result.stdout)

    async def find_processes(self, signature: ProcessSignature) -> list[ProcessRow]:
        """Return live processes matching *signature*."""
        return [row for row in await self._process_table() if signature.matches(row)]

    async def _signal(self, pids: list[int], sig: str) -> None:
        if not pids:
            return
        pid_args = " ".join(str(p) for p in pids)
        # kill exits non-zero when a pid is already gone; that is expected here.
        result = await self.executor.run(f"kill -{sig} {pid_args}")
        if not result.ok:
            logger.debug("kill -%s %s: %s", sig, pid_args, result.stderr.strip())

    async def _read_log_tail(self, spec: NodeSpec) -> str:
        lines = self.config.supervisor.log_tail_lines
        result = await self.executor.run(
            f"tail -n {lines} {quote_path(spec.log_file)} 2>/dev/null"
        )
        return result.stdout

    # ── Status ─────────────────────────────────────────────────

    async def status(self, node_id: str) -> NodeStatus:
        """Return live status of *node_id*, reconciling the registry."""
        spec = self.spec(node_id)
        rows = await self.find_processes(spec.signature)
        return self._reconcile(spec, rows)

    async def status_all(self) -> dict[str, NodeStatus]:
        """Return live status of every managed node from a single ps call."""
        table = await self._process_table()
        return {
            node_id: self._reconcile(spec, [r for r in table if spec.signature.matches(r)])
            for node_id, spec in self.specs.items()
        }

    def _reconcile(self, spec: NodeSpec, rows: list[ProcessRow]) -> NodeStatus:
        if not rows:
            if self.registry.remove(spec.node_id) is not None:
                logger.info("Pruned stale registry entry: %s", spec.node_id)
            if self.registry.phase(spec.node_id) == NodePhase.RUNNING:
                self.registry.set_phase(spec.node_id, NodePhase.NOT_RUNNING)
            return NodeStatus(node_id=spec.node_id, running=False)

        if len(rows) > 1:
            logger.warning(
                "Multiple processes match %s: %s",
                spec.node_id, [r.pid for r in rows],
            )
        # Oldest match is the one the registry most likely launched.
        row = max(rows, key=lambda r: r.elapsed_sec)
        now = now_utc()
        entry = self.registry.get(spec.node_id)
        if entry is None or entry.pid != row.pid:
            entry = NodeProcess(
                node_id=spec.node_id,
                kind=spec.kind,
                pid=row.pid,
                start_time=started_at(row.elapsed_sec),
                api_port=spec.api_port,
            )
            self.registry.put(entry)
        entry.last_known_alive = now
        if self.registry.phase(spec.node_id) == NodePhase.NOT_RUNNING:
            self.registry.set_phase(spec.node_id, NodePhase.RUNNING)
        return NodeStatus(
            node_id=spec.node_id,
            running=True,
            pid=entry.pid,
            start_time=entry.start_time,
            api_port=spec.api_port,
        )

    # ── Start ──────────────────────────────────────────────────

    async def start(self, node_id: str) -> NodeProcess:
        """
        Start *node_id* as a detached background job.

        Returns:
            The registry entry of the confirmed process.

        Raises:
            AlreadyRunningError: A live process already matches the node.
            LockDetectedError: Stale ledger lock could not be cleared.
            StartFailedError: The process never appeared; carries the log tail.
            ConfigError: Hydra scripts tx id could not be resolved.
        """
        spec = self.spec(node_id)
        bind_node_context(node_id)
        async with self.registry.lock(node_id):
            current = await self.status(node_id)
            if current.running:
                raise AlreadyRunningError(node_id, current.pid)

            self.registry.set_phase(node_id, NodePhase.STARTING)
            try:
                command = await self._launch_command(spec)
                if spec.node_id == LEDGER_NODE_ID:
                    await self._clear_stale_lock(spec)
                process = await self._launch_and_wait(spec, command)
            except BaseException:
                self.registry.set_phase(node_id, NodePhase.NOT_RUNNING)
                raise

            self.registry.set_phase(node_id, NodePhase.RUNNING)
            logger.info(
                "Node started: %s (PID %s, api_port=%s)",
                node_id, process.pid, process.api_port,
            )
            return process

    async def _launch_command(self, spec: NodeSpec) -> str:
        if spec.participant is None:
            return ledger_command(self.config)
        scripts_tx_id = await self.resolve_scripts_tx_id()
        return head_command(self.config, spec.participant, scripts_tx_id)

    async def _launch_and_wait(self, spec: NodeSpec, command: str) -> NodeProcess:
        log_dir = self.config.supervisor.log_dir
        (await self.executor.run(f"mkdir -p {quote_path(log_dir)}")).check()

        logger.info("Launching %s", spec.node_id)
        logger.debug("Command: %s", command)
        launch = await self.executor.run(
            command,
            background=True,
            log_file=spec.log_file,
            cwd=spec.working_dir,
        )
        if not launch.ok:
            excerpt = await self._read_log_tail(spec)
            raise StartFailedError(
                spec.node_id,
                excerpt or launch.stderr,
                reason=f"launcher exited with {launch.exit_code}",
            )

        sup = self.config.supervisor
        for attempt in range(1, sup.start_attempts + 1):
            await asyncio.sleep(sup.start_poll_interval)
            rows = await self.find_processes(spec.signature)
            if rows:
                self._reconcile(spec, rows)
                process = self.registry.get(spec.node_id)
                if process is None:
                    raise StartFailedError(
                        spec.node_id,
                        await self._read_log_tail(spec),
                        reason="process appeared but could not be recorded",
                    )
                process.log_tail = await self._read_log_tail(spec)
                return process
            logger.debug(
                "Waiting for %s to appear (%d/%d)",
                spec.node_id, attempt, sup.start_attempts,
            )

        excerpt = await self._read_log_tail(spec)
        logger.error(
            "%s did not appear after %d attempts; log tail:\n%s",
            spec.node_id, sup.start_attempts, excerpt,
        )
        raise StartFailedError(
            spec.node_id,
            excerpt,
            reason=f"no matching process after {sup.start_attempts} attempts",
        )

    async def _clear_stale_lock(self, spec: NodeSpec) -> None:
        """Remove a lock file left behind by a crashed ledger node.

        cardano-node refuses to open a locked database, and the failure is
        not recoverable without manual cleanup.  Any leftover cardano-node
        process is terminated, then killed, before the lock is removed.
        """
        lock = quote_path(ledger_lock_path(self.config))
        probe = f"test -e {lock} && echo LOCKED || echo CLEAR"
        check = await self.executor.run(probe, cwd=spec.working_dir)
        if "LOCKED" not in check.stdout:
            return

        logger.warning("Stale ledger lock detected: %s", ledger_lock_path(self.config))
        leftovers = await self.find_processes(ProcessSignature(spec.binary))
        pids = [r.pid for r in leftovers]
        if pids:
            logger.warning("Terminating leftover %s processes: %s", spec.binary, pids)
            await self._signal(pids, "TERM")
            await asyncio.sleep(self.config.supervisor.stop_grace_sec)
            await self._signal(pids, "KILL")

        removed = await self.executor.run(f"rm -f {lock}", cwd=spec.working_dir)
        recheck = await self.executor.run(probe, cwd=spec.working_dir)
        if not removed.ok or "LOCKED" in recheck.stdout:
            raise LockDetectedError(
                ledger_lock_path(self.config),
                removed.stderr.strip() or "lock file still present after cleanup",
            )
        logger.info("Stale ledger lock removed")

    async def resolve_scripts_tx_id(self) -> str:
        """Return the Hydra scripts transaction id for head nodes.

        Uses ``network.hydra_scripts_tx_id`` when set; otherwise, if
        ``network.fetch_scripts_tx_id`` is enabled, reads the published
        ``networks.json`` once and caches the answer.  There is no built-in
        fallback id.
        """
        if self._scripts_tx_id:
            return self._scripts_tx_id

        net = self.config.network
        if not net.fetch_scripts_tx_id:
            raise ConfigError(
                "network.hydra_scripts_tx_id is not set and fetching is disabled"
            )
        jq_filter = quote_path(f'.["{net.name}"]["{net.hydra_version}"]')
        result = await self.executor.run(
            f"curl -fsSL {quote_path(net.networks_json_url)} | jq -r {jq_filter}"
        )
        tx_id = result.stdout.strip()
        if not result.ok or not tx_id or tx_id == "null":
            raise ConfigError(
                f"Could not resolve Hydra scripts tx id for "
                f"{net.name}/{net.hydra_version}; set network.hydra_scripts_tx_id"
            )
        logger.info("Resolved Hydra scripts tx id for %s/%s: %s", net.name, net.hydra_version, tx_id)
        self._scripts_tx_id = tx_id
        return tx_id

    # ── Stop ───────────────────────────────────────────────────

    async def stop(self, node_id: str) -> None:
        """
        Stop *node_id* with escalating force.

        Shutdown flow:
        1. SIGTERM the registry pid and every live signature match
        2. Poll for exit up to ``stop_grace_sec``
        3. SIGKILL survivors
        4. Verify; a residual process is logged, not raised

        Never raises for process reasons: callers cannot act on a failed
        stop, so the outcome is reported as stopped.
        """
        spec = self.spec(node_id)
        bind_node_context(node_id)
        sup = self.config.supervisor
        async with self.registry.lock(node_id):
            self.registry.set_phase(node_id, NodePhase.STOPPING)
            try:
                pids: set[int] = set()
                entry = self.registry.get(node_id)
                if entry is not None:
                    pids.add(entry.pid)
                try:
                    pids.update(r.pid for r in await self.find_processes(spec.signature))
                except CommandError as exc:
                    logger.warning("Process lookup failed while stopping %s: %s", node_id, exc)

                if not pids:
                    logger.info("Node %s is not running", node_id)
                    return

                logger.info("Stopping %s (PIDs %s)", node_id, sorted(pids))
                await self._signal(sorted(pids), "TERM")

                survivors = await self._wait_for_exit(spec, sup.stop_grace_sec)
                if survivors:
                    logger.warning(
                        "%s did not exit after SIGTERM, sending SIGKILL: %s",
                        node_id, survivors,
                    )
                    await self._signal(survivors, "KILL")
                    survivors = await self._wait_for_exit(spec, sup.stop_poll_interval * 2)

                if survivors:
                    logger.warning("Residual %s processes after kill: %s", node_id, survivors)
                else:
                    logger.info("Node stopped: %s", node_id)
            except CommandError as exc:
                logger.warning("Stop of %s incomplete: %s", node_id, exc)
            finally:
                self.registry.remove(node_id)
                self.registry.set_phase(node_id, NodePhase.NOT_RUNNING)

    async def _wait_for_exit(self, spec: NodeSpec, timeout: float) -> list[int]:
        """Poll until no process matches *spec*; return whatever remains."""
        interval = self.config.supervisor.stop_poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = [r.pid for r in await self.find_processes(spec.signature)]
            if not remaining or loop.time() >= deadline:
                return remaining
            await asyncio.sleep(interval)

    # ── Data ───────────────────────────────────────────────────

    async def clear_data(self, paths: list[str] | None = None) -> list[str]:
        """
        Remove persistence data and recreate the head persistence dirs.

        The whole batch is one shell invocation; any failure fails the call
        with :class:`CommandError`.

        Returns:
            The list of paths that were removed.
        """
        targets = list(paths) if paths else list(self.config.supervisor.clear_paths)
        for path in targets:
            if not _SAFE_PATH_RE.match(path) or path.strip("/.~*") == "":
                raise ValueError(f"Refusing to clear unsafe path: {path!r}")

        recreate = " ".join(
            quote_path(self.config.persistence_dir(p)) for p in self.config.heads
        )
        commands = [f"rm -rf {p}" for p in targets]
        commands.append(f"mkdir -p {recreate}")
        command = " && ".join(commands)

        logger.info("Clearing data: %s", targets)
        (await self.executor.run(command)).check()
        return targets

    # ── Introspection ──────────────────────────────────────────

    def get_process_status(self, node_id: str) -> dict:
        """Cached view of *node_id* (no live lookup)."""
        entry = self.registry.get(node_id)
        return {
            "phase": self.registry.phase(node_id).value,
            "process": entry.to_dict() if entry else None,
        }
