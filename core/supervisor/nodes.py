"""
Node definitions: launch command lines and process-table signatures.
"""

# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass

from core.config import LEDGER_NODE_ID, HydraConsoleConfig
from core.exceptions import UnknownNodeError
from core.executor import quote_path
from core.supervisor.registry import NodeKind

logger = logging.getLogger(__name__)

# ps format used for every process-table lookup: pid, elapsed seconds, argv.
PS_COMMAND = "ps -eo pid=,etimes=,args="


# ── Process table ──────────────────────────────────────────────────

@dataclass(frozen=True)
class ProcessRow:
    """One line of the process table."""
    pid: int
    elapsed_sec: int
    args: tuple[str, ...]


def parse_process_table(output: str) -> list[ProcessRow]:
    """Parse ``ps -eo pid=,etimes=,args=`` output, skipping garbage lines."""
    rows: list[ProcessRow] = []
    for line in output.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3:
            continue
        try:
            pid = int(parts[0])
            elapsed = int(parts[1])
        except ValueError:
            continue
        rows.append(ProcessRow(pid=pid, elapsed_sec=elapsed, args=tuple(parts[2].split())))
    return rows


@dataclass(frozen=True)
class ProcessSignature:
    """
    Identifies a node in the process table.

    A row matches when its executable basename equals ``binary`` and
    ``args`` appears as a contiguous run of tokens.  Shell wrappers
    (``bash -lc "hydra-node ..."``) never match because their executable
    is the shell.
    """
    binary: str
    args: tuple[str, ...] = ()

    def matches(self, row: ProcessRow) -> bool:
        if not row.args or posixpath.basename(row.args[0]) != self.binary:
            return False
        if not self.args:
            return True
        tokens = row.args[1:]
        width = len(self.args)
        return any(
            tokens[i:i + width] == self.args
            for i in range(len(tokens) - width + 1)
        )


# ── Node specs ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class NodeSpec:
    """Static description of one managed node."""
    node_id: str
    kind: NodeKind
    binary: str
    working_dir: str
    log_file: str
    signature: ProcessSignature
    api_port: int | None = None
    participant: str | None = None


def build_node_specs(config: HydraConsoleConfig) -> dict[str, NodeSpec]:
    """Return the managed nodes keyed by node id (ledger first)."""
    log_dir = config.supervisor.log_dir.rstrip("/")
    specs: dict[str, NodeSpec] = {
        LEDGER_NODE_ID: NodeSpec(
            node_id=LEDGER_NODE_ID,
            kind=NodeKind.LEDGER,
            binary=config.ledger.binary,
            working_dir=config.ledger.working_dir,
            log_file=f"{log_dir}/{LEDGER_NODE_ID}.log",
            signature=ProcessSignature(config.ledger.binary, ("run",)),
        ),
    }
    for participant, head in config.heads.items():
        node_id = config.head_node_id(participant)
        specs[node_id] = NodeSpec(
            node_id=node_id,
            kind=NodeKind.HEAD,
            binary=head.binary,
            working_dir=head.working_dir,
            log_file=f"{log_dir}/{node_id}.log",
            signature=ProcessSignature(head.binary, ("--api-port", str(head.api_port))),
            api_port=head.api_port,
            participant=participant,
        )
    return specs


def get_spec(specs: dict[str, NodeSpec], node_id: str) -> NodeSpec:
    spec = specs.get(node_id)
    if spec is None:
        raise UnknownNodeError(node_id)
    return spec


def ledger_lock_path(config: HydraConsoleConfig) -> str:
    """Lock file a crashed cardano-node leaves behind, relative to its working dir."""
    return f"{config.ledger.database_path.rstrip('/')}/{config.ledger.lock_file}"


def ledger_command(config: HydraConsoleConfig) -> str:
    ledger = config.ledger
    return " ".join([
        ledger.binary, "run",
        "--config", quote_path(ledger.config_file),
        "--topology", quote_path(ledger.topology_file),
        "--socket-path", quote_path(ledger.socket_path),
        "--database-path", quote_path(ledger.database_path),
    ])


def head_command(
    config: HydraConsoleConfig,
    participant: str,
    scripts_tx_id: str,
) -> str:
    """Build the hydra-node command line for *participant*.

    Credentials follow the ``<participant>-node.sk`` /
    ``<participant>-hydra.sk`` naming produced by key generation; the peer's
    verification keys identify the other party of the head.
    """
    head = config.heads[participant]
    peer = config.heads[head.peer]
    creds = config.credentials_dir.rstrip("/")
    host = config.head_client.api_host
    args = [
        head.binary,
        "--node-id", f"{participant}-node",
        "--persistence-dir", quote_path(config.persistence_dir(participant)),
        "--cardano-signing-key", quote_path(f"{creds}/{participant}-node.sk"),
        "--hydra-signing-key", quote_path(f"{creds}/{participant}-hydra.sk"),
        "--hydra-scripts-tx-id", quote_path(scripts_tx_id),
        "--ledger-protocol-parameters", quote_path(config.network.protocol_parameters),
        "--testnet-magic", str(config.network.testnet_magic),
        "--node-socket", quote_path(config.ledger.socket_path),
        "--api-port", str(head.api_port),
        "--listen", f"{host}:{head.listen_port}",
        "--api-host", host,
        "--peer", f"{host}:{peer.listen_port}",
        "--hydra-verification-key", quote_path(f"{creds}/{head.peer}-hydra.vk"),
        "--cardano-verification-key", quote_path(f"{creds}/{head.peer}-node.vk"),
    ]
    return " ".join(args)
