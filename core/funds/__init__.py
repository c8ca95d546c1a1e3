# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
"""Fund-movement workflows: ledger CLI wrapper, UTxO parsing, orchestration."""

from __future__ import annotations

from core.funds.ledger_cli import LedgerCli
from core.funds.orchestrator import CommitResult, FundsOrchestrator, SendResult
from core.funds.utxo import UTxOEntry, parse_utxo_map, total_lovelace

__all__ = [
    "CommitResult",
    "FundsOrchestrator",
    "LedgerCli",
    "SendResult",
    "UTxOEntry",
    "parse_utxo_map",
    "total_lovelace",
]
