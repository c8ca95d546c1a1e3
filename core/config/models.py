# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Central configuration module for HydraConsole.

Defines Pydantic models for the unified config.json and provides
load / save helpers with a module-level singleton cache.

Paths inside :class:`LedgerNodeConfig`, :class:`HeadNodeConfig` and
``credentials_dir`` are interpreted by the execution environment's shell
(``~`` expands there), not on the supervising host.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, model_validator

from core.exceptions import ConfigValidationError

logger = logging.getLogger("hydra_console.config")

LEDGER_NODE_ID = "cardano-node"

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SystemConfig(BaseModel):
    log_level: str = "INFO"


class ExecutorConfig(BaseModel):
    """How shell commands reach the execution environment."""

    prefix: list[str] = []  # e.g. ["wsl"] when driving WSL from Windows
    shell: list[str] = ["bash", "-lc"]
    timeout_sec: float = 120.0


class NetworkConfig(BaseModel):
    """Cardano network and Hydra script settings."""

    name: str = "preprod"
    testnet_magic: int = 1
    protocol_parameters: str = "protocol-parameters.json"
    hydra_version: str = "1.1.0"
    hydra_scripts_tx_id: str | None = None
    fetch_scripts_tx_id: bool = True
    networks_json_url: str = (
        "https://raw.githubusercontent.com/cardano-scaling/hydra/master/"
        "hydra-node/networks.json"
    )


class LedgerNodeConfig(BaseModel):
    binary: str = "cardano-node"
    cli_binary: str = "cardano-cli"
    working_dir: str = "~"
    config_file: str = "config.json"
    topology_file: str = "topology.json"
    database_path: str = "db"
    socket_path: str = "~/node.socket"
    lock_file: str = "lock"  # relative to database_path


class HeadNodeConfig(BaseModel):
    """One hydra-node participant."""

    peer: str
    api_port: int
    listen_port: int
    binary: str = "hydra-node"
    working_dir: str = "~"
    persistence_dir: str | None = None  # default: ~/persistence-<participant>


class SupervisorConfig(BaseModel):
    log_dir: str = "~/.hydra-console/node-logs"
    start_attempts: int = 10
    start_poll_interval: float = 1.0
    stop_grace_sec: float = 5.0
    stop_poll_interval: float = 0.5
    log_tail_lines: int = 40
    status_refresh_sec: float = 3.0
    clear_paths: list[str] = [
        "~/persistence-alice",
        "~/persistence-bob",
        "~/hydra/demo/devnet/persistence/",
        "~/hydra-demo/demo/devnet/persistence/",
        "/tmp/persistence-*",
        "/tmp/hydra-*",
    ]

    @model_validator(mode="after")
    def _log_dir_outside_clear_paths(self) -> SupervisorConfig:
        log_dir = self.log_dir.rstrip("/")
        for pattern in self.clear_paths:
            root = pattern.rstrip("/")
            if fnmatch.fnmatch(log_dir, root) or log_dir.startswith(root + "/"):
                raise ValueError(f"supervisor.log_dir {self.log_dir!r} is inside clear path {pattern!r}")
        return self


class HeadClientConfig(BaseModel):
    api_host: str = "127.0.0.1"
    reconnect_delay_sec: float = 3.0
    http_timeout_sec: float = 30.0
    history_size: int = 200


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 18600


def _default_heads() -> dict[str, HeadNodeConfig]:
    return {
        "alice": HeadNodeConfig(peer="bob", api_port=4001, listen_port=5001),
        "bob": HeadNodeConfig(peer="alice", api_port=4002, listen_port=5002),
    }


class HydraConsoleConfig(BaseModel):
    version: int = 1
    system: SystemConfig = SystemConfig()
    executor: ExecutorConfig = ExecutorConfig()
    network: NetworkConfig = NetworkConfig()
    credentials_dir: str = "~/credentials"
    ledger: LedgerNodeConfig = LedgerNodeConfig()
    heads: dict[str, HeadNodeConfig] = _default_heads()
    supervisor: SupervisorConfig = SupervisorConfig()
    head_client: HeadClientConfig = HeadClientConfig()
    server: ServerConfig = ServerConfig()

    @model_validator(mode="after")
    def _validate_heads(self) -> HydraConsoleConfig:
        # Both heads run the same binary; the api port is what tells them apart.
        ports = [h.api_port for h in self.heads.values()]
        if len(ports) != len(set(ports)):
            raise ValueError(f"head api ports must be distinct: {ports}")
        for name, head in self.heads.items():
            if head.peer not in self.heads or head.peer == name:
                raise ValueError(f"head {name!r} has invalid peer {head.peer!r}")
        return self

    def head_node_id(self, participant: str) -> str:
        return f"{participant}-node"

    def persistence_dir(self, participant: str) -> str:
        head = self.heads[participant]
        return head.persistence_dir or f"~/persistence-{participant}"


# ---------------------------------------------------------------------------
# Singleton cache
# ---------------------------------------------------------------------------

_config: HydraConsoleConfig | None = None
_config_path: Path | None = None
_config_mtime: float = 0.0


def invalidate_cache() -> None:
    """Reset the module-level singleton cache."""
    global _config, _config_path, _config_mtime
    _config = None
    _config_path = None
    _config_mtime = 0.0


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def get_config_path(data_dir: Path | None = None) -> Path:
    """Return the path to config.json inside *data_dir*.

    If *data_dir* is not given, it is resolved via ``core.paths.get_data_dir``
    (imported lazily to avoid circular imports).
    """
    if data_dir is None:
        from core.paths import get_data_dir

        data_dir = get_data_dir()
    return data_dir / "config.json"


# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


def load_config(path: Path | None = None) -> HydraConsoleConfig:
    """Load configuration from disk, returning cached instance when possible.

    If *path* is ``None``, :func:`get_config_path` determines the location.
    When the file does not exist the default configuration is returned.

    The cache is automatically invalidated when the file's mtime changes,
    so manual edits are picked up without requiring a server restart.
    """
    global _config, _config_path, _config_mtime

    if path is None:
        path = get_config_path()

    if _config is not None and _config_path == path:
        try:
            disk_mtime = path.stat().st_mtime
        except OSError:
            disk_mtime = 0.0
        if disk_mtime == _config_mtime:
            return _config
        logger.debug("Config file changed on disk (mtime %.3f → %.3f); reloading", _config_mtime, disk_mtime)

    if path.is_file():
        logger.debug("Loading config from %s", path)
        try:
            raw_text = path.read_text(encoding="utf-8")
            data: dict[str, Any] = json.loads(raw_text)
            config = HydraConsoleConfig.model_validate(data)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", path, exc)
            raise
        except ValidationError as exc:
            logger.error("Invalid config in %s: %s", path, exc)
            raise ConfigValidationError(f"Invalid config in {path}: {exc}") from exc
        except Exception as exc:
            logger.error("Failed to load config from %s: %s", path, exc)
            raise
    else:
        logger.info("Config file not found at %s; using defaults", path)
        config = HydraConsoleConfig()

    _config = config
    _config_path = path
    try:
        _config_mtime = path.stat().st_mtime
    except OSError:
        _config_mtime = 0.0
    return config


def save_config(config: HydraConsoleConfig, path: Path | None = None) -> None:
    """Persist *config* to disk as pretty-printed JSON (mode 0o600).

    Updates the module-level singleton cache so subsequent :func:`load_config`
    calls return the freshly saved config.
    """
    global _config, _config_path, _config_mtime

    if path is None:
        path = get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    payload = config.model_dump(mode="json")
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")
    os.chmod(path, 0o600)

    logger.debug("Config saved to %s", path)

    _config = config
    _config_path = path
    try:
        _config_mtime = path.stat().st_mtime
    except OSError:
        _config_mtime = 0.0
