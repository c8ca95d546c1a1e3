# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

"""Environment probes for the execution host.

Each probe is independent: one failing probe never hides the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from core.config import HydraConsoleConfig
from core.exceptions import CommandError
from core.executor import CommandExecutor, quote_path
from core.time_utils import now_iso

logger = logging.getLogger(__name__)


async def _probe_output(executor: CommandExecutor, command: str) -> dict[str, Any]:
    try:
        result = await executor.run(command, timeout=15.0)
    except CommandError as e:
        return {"success": False, "error": str(e)}
    if not result.ok:
        return {"success": False, "output": result.stdout.strip(), "error": result.stderr.strip()}
    return {"success": True, "output": result.stdout.strip()}


async def _probe_exists(executor: CommandExecutor, test_flag: str, path: str) -> dict[str, Any]:
    try:
        result = await executor.run(
            f"test {test_flag} {quote_path(path)} && echo EXISTS || echo NOT_FOUND",
            timeout=15.0,
        )
    except CommandError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "path": path, "exists": result.stdout.strip() == "EXISTS"}


async def run_diagnostics(executor: CommandExecutor, config: HydraConsoleConfig) -> dict[str, Any]:
    """Probe binaries, credentials, protocol parameters and the ledger socket."""
    hydra_binary = next(iter(config.heads.values())).binary
    first_dir = next(iter(config.heads.values())).working_dir.rstrip("/")
    params_path = f"{first_dir}/{config.network.protocol_parameters}"

    names = [
        "hydra_node_version",
        "ledger_cli_version",
        "credentials_folder",
        "protocol_parameters",
        "ledger_socket",
        "hydra_node_help",
    ]
    probes = await asyncio.gather(
        _probe_output(executor, f"{hydra_binary} --version 2>&1"),
        _probe_output(executor, f"{config.ledger.cli_binary} --version 2>&1"),
        _probe_output(executor, f"ls -la {quote_path(config.credentials_dir)} 2>&1"),
        _probe_exists(executor, "-f", params_path),
        _probe_exists(executor, "-S", config.ledger.socket_path),
        _probe_output(executor, f"timeout 2 {hydra_binary} --help 2>&1 | head -10"),
    )
    tests = dict(zip(names, probes))
    failed = [name for name, probe in tests.items() if not probe["success"]]
    if failed:
        logger.warning("Diagnostics failed probes: %s", failed)
    return {"timestamp": now_iso(), "tests": tests}
