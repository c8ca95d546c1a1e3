# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
"""
Node supervisor package.

Starts, stops and observes the ledger node and the two head nodes as
detached background processes identified through the process table.
"""

from __future__ import annotations

from core.supervisor.manager import NodeStatus, NodeSupervisor
from core.supervisor.nodes import NodeSpec, ProcessRow, ProcessSignature
from core.supervisor.registry import (
    NodeKind,
    NodePhase,
    NodeProcess,
    NodeRegistry,
    get_registry,
    reset_registry,
)

__all__ = [
    "NodeKind",
    "NodePhase",
    "NodeProcess",
    "NodeRegistry",
    "NodeSpec",
    "NodeStatus",
    "NodeSupervisor",
    "ProcessRow",
    "ProcessSignature",
    "get_registry",
    "reset_registry",
]
