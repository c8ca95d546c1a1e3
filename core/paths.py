# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Centralized path resolution for HydraConsole.

All modules import local directory paths from here instead of computing them
ad-hoc.  Runtime data directory can be overridden via HYDRA_CONSOLE_DATA_DIR.

These are paths on the supervising host (config, logs, pid file).  Paths
inside the execution environment (node working dirs, credentials) live in
the configuration because they may point into WSL or a remote shell.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: where the code lives (immutable, git-tracked)
PROJECT_DIR = Path(__file__).resolve().parent.parent

# Default runtime data directory
_DEFAULT_DATA_DIR = Path.home() / ".hydra-console"


def get_data_dir() -> Path:
    """Return the runtime data directory, respecting HYDRA_CONSOLE_DATA_DIR env var."""
    env_val = os.environ.get("HYDRA_CONSOLE_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return _DEFAULT_DATA_DIR


def get_log_dir() -> Path:
    return get_data_dir() / "logs"


def get_run_dir() -> Path:
    return get_data_dir() / "run"
