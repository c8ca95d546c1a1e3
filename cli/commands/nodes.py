# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import asyncio
import logging

from cli._context import build_services, fail, print_json
from core.diagnostics import run_diagnostics
from core.exceptions import HydraConsoleError

logger = logging.getLogger(__name__)


def cmd_node_start(args: argparse.Namespace) -> None:
    """Start a node and wait until it shows up in the process table."""
    services = build_services()
    try:
        process = asyncio.run(services.supervisor.start(args.node))
    except (HydraConsoleError, ValueError) as exc:
        fail(exc)
    print_json(process.to_dict())


def cmd_node_stop(args: argparse.Namespace) -> None:
    services = build_services()

    async def _stop() -> dict:
        await services.supervisor.stop(args.node)
        status = await services.supervisor.status(args.node)
        return status.to_dict()

    try:
        print_json(asyncio.run(_stop()))
    except HydraConsoleError as exc:
        fail(exc)


def cmd_node_status(args: argparse.Namespace) -> None:
    services = build_services()
    try:
        if args.node:
            status = asyncio.run(services.supervisor.status(args.node))
            print_json(status.to_dict())
        else:
            statuses = asyncio.run(services.supervisor.status_all())
            print_json({node_id: s.to_dict() for node_id, s in statuses.items()})
    except HydraConsoleError as exc:
        fail(exc)


def cmd_clear_data(args: argparse.Namespace) -> None:
    """Remove persistence data (default path set unless paths are given)."""
    services = build_services()
    if not args.yes:
        answer = input("Delete persistence data for all nodes? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted.")
            return
    try:
        cleared = asyncio.run(services.supervisor.clear_data(args.paths or None))
    except (HydraConsoleError, ValueError) as exc:
        fail(exc)
    print_json({"cleared": cleared})


def cmd_diagnose(args: argparse.Namespace) -> None:
    services = build_services()
    print_json(asyncio.run(run_diagnostics(services.executor, services.config)))
