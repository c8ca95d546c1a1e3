# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from core.config.models import (
    LEDGER_NODE_ID,
    ExecutorConfig,
    HeadClientConfig,
    HeadNodeConfig,
    HydraConsoleConfig,
    LedgerNodeConfig,
    NetworkConfig,
    ServerConfig,
    SupervisorConfig,
    SystemConfig,
    get_config_path,
    invalidate_cache,
    load_config,
    save_config,
)

__all__ = [
    "LEDGER_NODE_ID",
    "ExecutorConfig",
    "HeadClientConfig",
    "HeadNodeConfig",
    "HydraConsoleConfig",
    "LedgerNodeConfig",
    "NetworkConfig",
    "ServerConfig",
    "SupervisorConfig",
    "SystemConfig",
    "get_config_path",
    "invalidate_cache",
    "load_config",
    "save_config",
]
