from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Fund-movement workflows across the ledger and the heads.

Each workflow is a fixed sequence of steps with a validation gate between
them.  Steps leave their artifacts (``commit-utxo.json``, ``commit-tx.json``,
``head-tx.*``) in the head node's working directory; a workflow interrupted
half way can simply be re-run.  Nothing is resumed automatically.

Steps:
- commit: select UTxOs -> write payload -> POST /commit -> validate -> sign -> submit
- send: head snapshot -> first-fit input -> build-raw (fee 0) -> sign -> NewTx
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from core.config import LEDGER_NODE_ID, HydraConsoleConfig
from core.exceptions import (
    CommitRejectedError,
    FundsError,
    InsufficientFundsError,
    MalformedResponseError,
    NodeNotRunningError,
    NoFundsAvailableError,
    UnknownNodeError,
)
from core.executor import CommandExecutor
from core.funds.ledger_cli import LedgerCli, TxOut, key_files
from core.funds.utxo import UTxOEntry, parse_utxo_map, utxo_map_json
from core.head.connection import HeadConnectionPool
from core.head.protocol import HeadCommand
from core.supervisor.manager import NodeSupervisor

logger = logging.getLogger(__name__)

COMMIT_PAYLOAD_FILE = "commit-utxo.json"
COMMIT_TX_FILE = "commit-tx.json"
COMMIT_SIGNED_FILE = "commit-tx-signed.json"
HEAD_TX_RAW_FILE = "head-tx.raw"
HEAD_TX_SIGNED_FILE = "head-tx-signed.json"


@dataclass
class CommitResult:
    tx_id: str
    committed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"tx_id": self.tx_id, "committed": self.committed}


@dataclass
class SendResult:
    tx_id: str
    spent: str
    change: int

    def to_dict(self) -> dict[str, Any]:
        return {"tx_id": self.tx_id, "spent": self.spent, "change": self.change}


def _covers(entry: UTxOEntry, lovelace: int) -> bool:
    # Native assets ride back on the change output, so an asset-bearing
    # input must leave some lovelace over to carry them.
    if entry.assets:
        return entry.lovelace > lovelace
    return entry.lovelace >= lovelace


class FundsOrchestrator:
    """Commit, send and query workflows for the head participants.

    Args:
        supervisor: Used to confirm the ledger node is up before ledger queries.
        executor: Runs ledger CLI commands and moves payload files.
        connections: Head websocket connections (``NewTx`` goes through them).
        config: Application configuration.
        transport: Optional httpx transport for the head node HTTP API.
    """

    def __init__(
        self,
        supervisor: NodeSupervisor,
        executor: CommandExecutor,
        connections: HeadConnectionPool,
        config: HydraConsoleConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.executor = executor
        self.connections = connections
        self.config = config
        self.cli = LedgerCli(executor, config)
        self._transport = transport

    # ── Helpers ───────────────────────────────────────────────

    def _head(self, participant: str):
        head = self.config.heads.get(participant)
        if head is None:
            raise UnknownNodeError(participant)
        return head

    def _head_url(self, participant: str, path: str) -> str:
        head = self._head(participant)
        return f"http://{self.config.head_client.api_host}:{head.api_port}{path}"

    def _work_file(self, participant: str, name: str) -> str:
        return f"{self._head(participant).working_dir.rstrip('/')}/{name}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.head_client.http_timeout_sec,
            transport=self._transport,
        )

    # ── Queries ───────────────────────────────────────────────

    async def query_funds(self, participant: str) -> dict[str, UTxOEntry]:
        """UTxOs at the participant's funds address on the ledger.

        Returns an empty map when the address file does not exist.

        Raises:
            NodeNotRunningError: The ledger node is not running.
        """
        self._head(participant)
        status = await self.supervisor.status(LEDGER_NODE_ID)
        if not status.running:
            raise NodeNotRunningError(LEDGER_NODE_ID)
        address = await self.cli.read_address(participant)
        if address is None:
            logger.info("No funds address for %s", participant)
            return {}
        return await self.cli.query_utxo(address)

    async def query_head_funds(self, participant: str) -> dict[str, UTxOEntry]:
        """UTxOs owned by the participant inside the head.

        Returns an empty map when the address file is missing, the head node
        is unreachable, or it has no snapshot yet (404).
        """
        self._head(participant)
        address = await self.cli.read_address(participant)
        if address is None:
            logger.info("No funds address for %s", participant)
            return {}

        url = self._head_url(participant, "/snapshot/utxo")
        try:
            async with self._client() as client:
                resp = await client.get(url)
        except httpx.TransportError as e:
            logger.info("Head node %s not reachable: %s", participant, e)
            return {}
        if resp.status_code == 404:
            return {}
        if resp.status_code >= 400:
            raise MalformedResponseError(resp.text, f"HTTP {resp.status_code} from {url}")
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(resp.text, "snapshot is not JSON") from e

        entries = parse_utxo_map(data)
        return {k: e for k, e in entries.items() if e.address == address}

    # ── Commit ────────────────────────────────────────────────

    async def commit(
        self,
        participant: str,
        selection: dict[str, UTxOEntry] | Iterable[str] | None = None,
    ) -> CommitResult:
        """Commit UTxOs from the participant's funds address into the head.

        Args:
            selection: Entries or ``txhash#index`` keys to commit.  Empty
                means everything at the funds address.

        Raises:
            NoFundsAvailableError: Nothing to commit (no HTTP call is made).
            CommitRejectedError: The head node answered with an error-shaped
                or unusable body; ``reason`` holds the raw response.  Also
                raised when the head node cannot be reached.
        """
        utxos = await self._resolve_selection(participant, selection)
        if not utxos:
            raise NoFundsAvailableError(participant)

        payload = utxo_map_json(utxos)
        head = self._head(participant)
        await self.executor.write_file(
            self._work_file(participant, COMMIT_PAYLOAD_FILE), json.dumps(payload, indent=2),
        )

        logger.info("Requesting commit of %d UTxO(s) for %s", len(utxos), participant)
        url = self._head_url(participant, "/commit")
        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload)
        except httpx.TransportError as e:
            logger.warning("Commit request to %s failed: %s", url, e)
            raise CommitRejectedError(f"head node unreachable at {url}: {e}") from e
        tx = self._validate_commit_response(resp)

        tx_file = self._work_file(participant, COMMIT_TX_FILE)
        signed_file = self._work_file(participant, COMMIT_SIGNED_FILE)
        await self.executor.write_file(tx_file, json.dumps(tx))
        await self.cli.sign(
            tx_file,
            self.cli.credential_path(participant, "funds", "sk"),
            signed_file,
            body=False,
            cwd=head.working_dir,
        )
        await self.cli.submit(signed_file, cwd=head.working_dir)
        tx_id = await self.cli.txid(signed_file, cwd=head.working_dir)
        logger.info("Commit submitted for %s: %s", participant, tx_id)
        return CommitResult(tx_id=tx_id, committed=sorted(utxos))

    async def _resolve_selection(
        self,
        participant: str,
        selection: dict[str, UTxOEntry] | Iterable[str] | None,
    ) -> dict[str, UTxOEntry]:
        if isinstance(selection, dict):
            if selection:
                return dict(selection)
            keys: list[str] = []
        else:
            keys = list(selection or [])

        available = await self.query_funds(participant)
        if not keys:
            return available
        missing = [k for k in keys if k not in available]
        if missing:
            raise FundsError(f"Selected UTxOs not found at {participant}'s address: {missing}")
        return {k: available[k] for k in keys}

    @staticmethod
    def _validate_commit_response(resp: httpx.Response) -> dict[str, Any]:
        raw = resp.text
        try:
            body = resp.json()
        except ValueError:
            raise CommitRejectedError(raw) from None
        if not resp.is_success:
            raise CommitRejectedError(raw)
        if not isinstance(body, dict) or "error" in body or "message" in body:
            raise CommitRejectedError(raw)
        if not isinstance(body.get("cborHex"), str) or not body["cborHex"]:
            raise CommitRejectedError(raw)
        return body

    # ── Send within head ──────────────────────────────────────

    async def send_within_head(
        self,
        participant: str,
        recipient: str,
        lovelace: int,
    ) -> SendResult:
        """Pay *lovelace* to *recipient* inside the open head.

        Uses the first own UTxO that covers the amount; there is no
        multi-input selection.  Native assets on that UTxO go back to the
        sender with the change.

        Raises:
            ValueError: Non-positive amount.
            InsufficientFundsError: No single UTxO covers the amount.  Nothing
                is built, signed or submitted.
            NotConnectedError: The head connection is not open.
        """
        if lovelace <= 0:
            raise ValueError("amount must be positive")
        if not recipient:
            raise ValueError("recipient address is required")

        snapshot = await self.query_head_funds(participant)
        chosen = next((e for e in snapshot.values() if _covers(e, lovelace)), None)
        if chosen is None:
            largest = max((e.lovelace for e in snapshot.values()), default=0)
            raise InsufficientFundsError(lovelace, largest)

        change = chosen.lovelace - lovelace
        outputs: list[TxOut] = [(recipient, lovelace, {})]
        if change > 0:
            outputs.append((chosen.address, change, chosen.assets))

        head = self._head(participant)
        raw_file = self._work_file(participant, HEAD_TX_RAW_FILE)
        signed_file = self._work_file(participant, HEAD_TX_SIGNED_FILE)
        await self.cli.build_raw(chosen.key, outputs, raw_file, cwd=head.working_dir)
        await self.cli.sign(
            raw_file,
            self.cli.credential_path(participant, "funds", "sk"),
            signed_file,
            cwd=head.working_dir,
        )
        signed_text = await self.executor.read_file(signed_file)
        if signed_text is None:
            raise MalformedResponseError("", f"signed transaction missing: {signed_file}")
        try:
            signed = json.loads(signed_text)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(signed_text, "signed transaction is not JSON") from e
        tx_id = await self.cli.txid(signed_file, cwd=head.working_dir)

        await self.connections.get(participant).send_command(HeadCommand.new_tx(signed))
        logger.info(
            "NewTx %s sent for %s: %d lovelace to %s (change %d)",
            tx_id, participant, lovelace, recipient, change,
        )
        return SendResult(tx_id=tx_id, spent=chosen.key, change=change)

    # ── Keys / parameters ─────────────────────────────────────

    async def generate_keys(self, participant: str) -> list[str]:
        self._head(participant)
        return await self.cli.generate_keys(participant)

    async def check_keys(self) -> dict[str, Any]:
        """Report which credential files exist for each participant."""
        present = set(await self.cli.list_credentials())
        report: dict[str, Any] = {}
        for participant in self.config.heads:
            files = {name: name in present for name in key_files(participant)}
            report[participant] = {"files": files, "complete": all(files.values())}
        return report

    async def setup_protocol_parameters(self) -> list[str]:
        status = await self.supervisor.status(LEDGER_NODE_ID)
        if not status.running:
            raise NodeNotRunningError(LEDGER_NODE_ID)
        return await self.cli.setup_protocol_parameters()
