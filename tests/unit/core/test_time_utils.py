"""Unit tests for core/time_utils.py - timezone-aware helpers."""
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.time_utils import ensure_aware, now_iso, now_utc, started_at


class TestNowUtc:
    def test_timezone_aware_utc(self) -> None:
        dt = now_utc()
        assert dt.utcoffset() == timedelta(0)

    def test_iso_has_offset(self) -> None:
        assert now_iso().endswith("+00:00")


class TestEnsureAware:
    def test_naive_assumed_utc(self) -> None:
        naive = datetime(2026, 1, 1, 12, 0)
        assert ensure_aware(naive).tzinfo == timezone.utc

    def test_aware_unchanged(self) -> None:
        aware = datetime(2026, 1, 1, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_aware(aware) is aware


class TestStartedAt:
    def test_subtracts_elapsed(self) -> None:
        before = now_utc()
        start = started_at(60)
        assert before - timedelta(seconds=61) <= start <= before - timedelta(seconds=59)

    def test_negative_elapsed_clamped(self) -> None:
        before = now_utc()
        assert started_at(-5) >= before
