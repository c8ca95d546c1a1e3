# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for HydraConsole tests.

Provides data-dir isolation, config cache management, a fresh node
registry per test and the simulated execution host.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from core.config import HydraConsoleConfig, invalidate_cache
from core.supervisor import NodeRegistry, NodeSupervisor, reset_registry
from tests.helpers.mocks import FakeHost

logger = logging.getLogger(__name__)


# ── Isolation ─────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point HYDRA_CONSOLE_DATA_DIR at a temp dir and drop singletons."""
    monkeypatch.setenv("HYDRA_CONSOLE_DATA_DIR", str(tmp_path / "data"))
    invalidate_cache()
    reset_registry()
    yield
    invalidate_cache()
    reset_registry()


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def config() -> HydraConsoleConfig:
    """Default config with zero wait times and a fixed scripts tx id."""
    cfg = HydraConsoleConfig()
    cfg.network.hydra_scripts_tx_id = "deadbeef"
    cfg.supervisor.log_dir = "/tmp/hc-test-logs"
    cfg.supervisor.start_attempts = 3
    cfg.supervisor.start_poll_interval = 0.0
    cfg.supervisor.stop_grace_sec = 0.0
    cfg.supervisor.stop_poll_interval = 0.0
    cfg.head_client.reconnect_delay_sec = 0.05
    return cfg


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def registry() -> NodeRegistry:
    return NodeRegistry()


@pytest.fixture
def supervisor(config: HydraConsoleConfig, host: FakeHost, registry: NodeRegistry) -> NodeSupervisor:
    return NodeSupervisor(config, host, registry)
