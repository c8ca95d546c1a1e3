from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Timezone-aware datetime helpers.

Provides ``now_utc()`` and ``now_iso()`` as drop-in replacements for
``datetime.now()`` throughout the codebase, ensuring all timestamps are
timezone-aware (UTC).
"""

from datetime import datetime, timedelta, timezone

_DEFAULT_TZ = timezone.utc


def now_utc() -> datetime:
    """Return current time as timezone-aware UTC datetime."""
    return datetime.now(tz=_DEFAULT_TZ)


def now_iso() -> str:
    """Return current time as ISO8601 string with UTC offset."""
    return now_utc().isoformat()


def ensure_aware(dt: datetime) -> datetime:
    """Ensure *dt* is timezone-aware.  Naive datetimes are assumed UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=_DEFAULT_TZ)
    return dt


def started_at(elapsed_seconds: int) -> datetime:
    """Return the start time of a process that has been up *elapsed_seconds*."""
    return now_utc() - timedelta(seconds=max(elapsed_seconds, 0))
