# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
"""Head node control protocol: wire types, state tracking and connections."""

from __future__ import annotations

from core.head.connection import HeadConnection, HeadConnectionPool
from core.head.protocol import (
    CommandTag,
    ConnectionState,
    HeadCommand,
    HeadNotification,
    HeadState,
    HeadTracker,
    NotificationTag,
)

__all__ = [
    "CommandTag",
    "ConnectionState",
    "HeadCommand",
    "HeadConnection",
    "HeadConnectionPool",
    "HeadNotification",
    "HeadState",
    "HeadTracker",
    "NotificationTag",
]
