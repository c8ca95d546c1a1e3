# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, NoReturn

from core.config import HydraConsoleConfig, load_config
from core.exceptions import HydraConsoleError, StartFailedError
from core.executor import CommandExecutor
from core.funds import FundsOrchestrator
from core.head import HeadConnectionPool
from core.supervisor import NodeSupervisor

logger = logging.getLogger(__name__)


# ── Service wiring ────────────────────────────────────────


@dataclass
class Services:
    config: HydraConsoleConfig
    executor: CommandExecutor
    supervisor: NodeSupervisor
    connections: HeadConnectionPool
    funds: FundsOrchestrator


def build_services(config: HydraConsoleConfig | None = None) -> Services:
    """Wire the supervisor, head connections and orchestrator for one command."""
    config = config or load_config()
    executor = CommandExecutor(config.executor)
    supervisor = NodeSupervisor(config, executor)
    connections = HeadConnectionPool(config)
    funds = FundsOrchestrator(supervisor, executor, connections, config)
    return Services(config, executor, supervisor, connections, funds)


# ── Output ────────────────────────────────────────────────


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def fail(exc: HydraConsoleError | ValueError) -> NoReturn:
    """Report *exc* on stderr and exit with status 1."""
    print(f"Error: {exc}", file=sys.stderr)
    if isinstance(exc, StartFailedError) and exc.log_excerpt:
        print("--- log tail ---", file=sys.stderr)
        print(exc.log_excerpt.rstrip(), file=sys.stderr)
    sys.exit(1)
