# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import asyncio
import logging

from cli._context import build_services, fail, print_json
from core.exceptions import HydraConsoleError, NotConnectedError
from core.funds.utxo import total_lovelace, utxo_map_json

logger = logging.getLogger(__name__)

LOVELACE_PER_ADA = 1_000_000


def cmd_funds(args: argparse.Namespace) -> None:
    """Show UTxOs of a participant on the ledger or inside the head."""
    services = build_services()
    query = services.funds.query_head_funds if args.head else services.funds.query_funds
    try:
        entries = asyncio.run(query(args.participant))
    except HydraConsoleError as exc:
        fail(exc)
    print_json({
        "participant": args.participant,
        "where": "head" if args.head else "ledger",
        "utxos": utxo_map_json(entries),
        "total_lovelace": total_lovelace(entries),
    })


def cmd_commit(args: argparse.Namespace) -> None:
    services = build_services()
    try:
        result = asyncio.run(services.funds.commit(args.participant, args.utxos))
    except HydraConsoleError as exc:
        fail(exc)
    print_json(result.to_dict())


def cmd_send(args: argparse.Namespace) -> None:
    """Send funds inside the open head over a short-lived head connection."""
    if args.ada:
        lovelace = int(round(args.amount * LOVELACE_PER_ADA))
    else:
        lovelace = int(args.amount)
    services = build_services()

    async def _send():
        conn = services.connections.get(args.participant)
        conn.connect()
        try:
            if not await conn.wait_connected(timeout=args.connect_timeout):
                raise NotConnectedError(conn.node_id)
            return await services.funds.send_within_head(
                args.participant, args.recipient, lovelace,
            )
        finally:
            await conn.disconnect()

    try:
        result = asyncio.run(_send())
    except (HydraConsoleError, ValueError) as exc:
        fail(exc)
    print_json(result.to_dict())


def cmd_keys(args: argparse.Namespace) -> None:
    """Generate keys for a participant, or report key presence for all."""
    services = build_services()
    try:
        if args.generate:
            files = asyncio.run(services.funds.generate_keys(args.generate))
            print_json({"participant": args.generate, "files": files})
        else:
            print_json(asyncio.run(services.funds.check_keys()))
    except HydraConsoleError as exc:
        fail(exc)


def cmd_protocol_params(args: argparse.Namespace) -> None:
    services = build_services()
    try:
        written = asyncio.run(services.funds.setup_protocol_parameters())
    except HydraConsoleError as exc:
        fail(exc)
    print_json({"written": written})
