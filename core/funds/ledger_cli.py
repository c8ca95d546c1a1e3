# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

"""Thin wrapper around the cardano-cli and hydra-node key commands.

Nothing here interprets ledger rules; each method builds one command line,
runs it through the executor and returns text or parsed JSON.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from core.config import HydraConsoleConfig
from core.exceptions import MalformedResponseError
from core.executor import CommandExecutor, quote_path
from core.funds.utxo import UTxOEntry, parse_utxo_map

logger = logging.getLogger(__name__)

# Zero the fee parameters: transactions inside the head are built with fee 0.
ZERO_FEES_JQ = (
    ".txFeeFixed = 0 | .txFeePerByte = 0"
    " | .executionUnitPrices.priceMemory = 0"
    " | .executionUnitPrices.priceSteps = 0"
)

KEY_ROLES = ("node", "funds")


def key_files(participant: str) -> list[str]:
    """Credential file names expected for *participant*."""
    names = []
    for role in KEY_ROLES:
        names += [f"{participant}-{role}.vk", f"{participant}-{role}.sk", f"{participant}-{role}.addr"]
    names += [f"{participant}-hydra.vk", f"{participant}-hydra.sk"]
    return names


# (address, lovelace, native assets as {policy_id: {asset_name_hex: quantity}})
TxOut = tuple[str, int, dict[str, Any]]


def tx_out_value(address: str, lovelace: int, assets: dict[str, Any] | None = None) -> str:
    """Render one ``--tx-out`` value in cardano-cli multi-asset syntax."""
    value = f"{address}+{lovelace}"
    parts = []
    for policy, names in sorted((assets or {}).items()):
        if not isinstance(names, dict):
            raise MalformedResponseError(json.dumps(assets), f"bad asset bundle for policy {policy}")
        for name, quantity in sorted(names.items()):
            parts.append(f"{quantity} {policy}.{name}" if name else f"{quantity} {policy}")
    if parts:
        value = f"{value}+{' + '.join(parts)}"
    return value



class LedgerCli:
    def __init__(self, executor: CommandExecutor, config: HydraConsoleConfig) -> None:
        self.executor = executor
        self.config = config

    @property
    def cli(self) -> str:
        return self.config.ledger.cli_binary

    @property
    def credentials_dir(self) -> str:
        return self.config.credentials_dir.rstrip("/")

    def _network_args(self) -> str:
        return f"--testnet-magic {self.config.network.testnet_magic}"

    def _socket_args(self) -> str:
        return f"{self._network_args()} --socket-path {quote_path(self.config.ledger.socket_path)}"

    def credential_path(self, participant: str, role: str, ext: str) -> str:
        return f"{self.credentials_dir}/{participant}-{role}.{ext}"

    # ── Keys ──────────────────────────────────────────────────

    async def generate_keys(self, participant: str) -> list[str]:
        """Create missing node, funds and hydra keys for *participant*.

        Existing files are left untouched, so the call is safe to repeat.
        Returns the list of credential files present afterwards.
        """
        steps = [f"mkdir -p {quote_path(self.credentials_dir)}"]
        for role in KEY_ROLES:
            vk = quote_path(self.credential_path(participant, role, "vk"))
            sk = quote_path(self.credential_path(participant, role, "sk"))
            addr = quote_path(self.credential_path(participant, role, "addr"))
            steps.append(
                f"(test -f {sk} || {self.cli} address key-gen "
                f"--verification-key-file {vk} --signing-key-file {sk})"
            )
            steps.append(
                f"(test -f {addr} || {self.cli} address build "
                f"--payment-verification-key-file {vk} {self._network_args()} --out-file {addr})"
            )
        hydra_sk = quote_path(self.credential_path(participant, "hydra", "sk"))
        hydra_prefix = quote_path(f"{self.credentials_dir}/{participant}-hydra")
        binary = self.config.heads[participant].binary
        steps.append(f"(test -f {hydra_sk} || {binary} gen-hydra-key --output-file {hydra_prefix})")

        logger.info("Generating keys for %s", participant)
        (await self.executor.run(" && ".join(steps))).check()
        return await self.list_credentials()

    async def list_credentials(self) -> list[str]:
        result = await self.executor.run(f"ls -1 {quote_path(self.credentials_dir)} 2>/dev/null")
        return sorted(line.strip() for line in result.stdout.splitlines() if line.strip())

    async def read_address(self, participant: str, role: str = "funds") -> str | None:
        content = await self.executor.read_file(self.credential_path(participant, role, "addr"))
        if content is None or not content.strip():
            return None
        return content.strip()

    # ── Queries ───────────────────────────────────────────────

    async def query_utxo(self, address: str) -> dict[str, UTxOEntry]:
        result = await self.executor.run(
            f"{self.cli} query utxo --address {quote_path(address)} "
            f"{self._socket_args()} --output-json"
        )
        result.check()
        return parse_utxo_map(result.stdout)

    async def setup_protocol_parameters(self) -> list[str]:
        """Write fee-zeroed protocol parameters into each head working dir."""
        target = self.config.network.protocol_parameters
        dirs = sorted({h.working_dir for h in self.config.heads.values()})
        written = []
        for working_dir in dirs:
            result = await self.executor.run(
                f"{self.cli} query protocol-parameters {self._socket_args()} "
                f"| jq {quote_path(ZERO_FEES_JQ)} > {quote_path(target)}",
                cwd=working_dir,
            )
            result.check()
            written.append(f"{working_dir.rstrip('/')}/{target}")
        logger.info("Protocol parameters written: %s", written)
        return written

    # ── Transactions ──────────────────────────────────────────

    async def build_raw(
        self,
        tx_in: str,
        outputs: list[TxOut],
        out_file: str,
        *,
        cwd: str | None = None,
    ) -> None:
        tx_outs = " ".join(
            f"--tx-out {quote_path(tx_out_value(addr, amount, assets))}"
            for addr, amount, assets in outputs
        )
        result = await self.executor.run(
            f"{self.cli} latest transaction build-raw --tx-in {quote_path(tx_in)} "
            f"{tx_outs} --fee 0 --out-file {quote_path(out_file)}",
            cwd=cwd,
        )
        result.check()

    async def sign(
        self,
        tx_file: str,
        signing_key: str,
        out_file: str,
        *,
        body: bool = True,
        cwd: str | None = None,
    ) -> None:
        flag = "--tx-body-file" if body else "--tx-file"
        result = await self.executor.run(
            f"{self.cli} latest transaction sign {flag} {quote_path(tx_file)} "
            f"--signing-key-file {quote_path(signing_key)} {self._network_args()} "
            f"--out-file {quote_path(out_file)}",
            cwd=cwd,
        )
        result.check()

    async def submit(self, tx_file: str, *, cwd: str | None = None) -> None:
        result = await self.executor.run(
            f"{self.cli} latest transaction submit --tx-file {quote_path(tx_file)} "
            f"{self._socket_args()}",
            cwd=cwd,
        )
        result.check()

    async def txid(self, tx_file: str, *, cwd: str | None = None) -> str:
        result = await self.executor.run(
            f"{self.cli} latest transaction txid --tx-file {quote_path(tx_file)}",
            cwd=cwd,
        )
        result.check()
        out = result.stdout.strip()
        # Recent cardano-cli versions print {"txhash": ...} instead of bare hex.
        if out.startswith("{"):
            try:
                out = json.loads(out)["txhash"]
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                raise MalformedResponseError(result.stdout, "unexpected txid output") from exc
        if not out:
            raise MalformedResponseError(result.stdout, "empty txid output")
        return out
