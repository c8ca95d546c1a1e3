# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import os

NODE_CHOICES = ("cardano-node", "alice-node", "bob-node")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hydra-console",
        description="HydraConsole - Two-party Hydra head demo supervisor",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override runtime data directory (default: ~/.hydra-console or HYDRA_CONSOLE_DATA_DIR)",
    )
    sub = parser.add_subparsers(dest="command")

    # ── Serve ─────────────────────────────────────────────
    p_serve = sub.add_parser("serve", help="Run the HTTP API server")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.set_defaults(func=_lazy_serve)

    # ── Shutdown ──────────────────────────────────────────
    p_shutdown = sub.add_parser("shutdown", help="Stop the running API server")
    p_shutdown.set_defaults(func=_lazy_shutdown)

    # ── Nodes ─────────────────────────────────────────────
    p_start = sub.add_parser("start", help="Start a node")
    p_start.add_argument("node", help=f"Node id ({', '.join(NODE_CHOICES)})")
    p_start.set_defaults(func=_lazy_node_start)

    p_stop = sub.add_parser("stop", help="Stop a node (TERM, then KILL)")
    p_stop.add_argument("node", help="Node id")
    p_stop.set_defaults(func=_lazy_node_stop)

    p_status = sub.add_parser("status", help="Show live node status")
    p_status.add_argument(
        "node", nargs="?", default=None,
        help="Node id (omit for all nodes)",
    )
    p_status.set_defaults(func=_lazy_node_status)

    p_clear = sub.add_parser("clear-data", help="Remove persistence data")
    p_clear.add_argument(
        "paths", nargs="*",
        help="Paths or globs to remove (default: configured clear paths)",
    )
    p_clear.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    p_clear.set_defaults(func=_lazy_clear_data)

    # ── Funds ─────────────────────────────────────────────
    p_funds = sub.add_parser("funds", help="Show a participant's UTxOs")
    p_funds.add_argument("participant", help="Participant name (alice, bob)")
    p_funds.add_argument("--head", action="store_true", help="Query the head snapshot instead of the ledger")
    p_funds.set_defaults(func=_lazy_funds)

    p_commit = sub.add_parser("commit", help="Commit funds into the head")
    p_commit.add_argument("participant", help="Participant name")
    p_commit.add_argument(
        "utxos", nargs="*",
        help="UTxO keys <txhash>#<index> (default: all funds)",
    )
    p_commit.set_defaults(func=_lazy_commit)

    p_send = sub.add_parser("send", help="Send funds inside the open head")
    p_send.add_argument("participant", help="Sending participant")
    p_send.add_argument("recipient", help="Recipient address")
    p_send.add_argument("amount", type=float, help="Amount (lovelace, or ADA with --ada)")
    p_send.add_argument("--ada", action="store_true", help="Interpret amount as ADA")
    p_send.add_argument(
        "--connect-timeout", type=float, default=10.0,
        help="Seconds to wait for the head connection (default: 10)",
    )
    p_send.set_defaults(func=_lazy_send)

    # ── Keys / parameters ─────────────────────────────────
    p_keys = sub.add_parser("keys", help="Check or generate credentials")
    p_keys.add_argument(
        "--generate", metavar="PARTICIPANT", default=None,
        help="Generate missing keys for a participant",
    )
    p_keys.set_defaults(func=_lazy_keys)

    p_params = sub.add_parser(
        "protocol-params", help="Write fee-zeroed protocol parameters for the heads",
    )
    p_params.set_defaults(func=_lazy_protocol_params)

    # ── Diagnose ──────────────────────────────────────────
    p_diag = sub.add_parser("diagnose", help="Probe binaries, credentials and the ledger socket")
    p_diag.set_defaults(func=_lazy_diagnose)

    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply --data-dir override before any command
    if args.data_dir:
        os.environ["HYDRA_CONSOLE_DATA_DIR"] = args.data_dir

    from core.logging_config import setup_logging
    from core.paths import get_log_dir

    setup_logging(
        level=os.environ.get("HYDRA_CONSOLE_LOG_LEVEL", "INFO"),
        log_dir=get_log_dir(),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


# ── Lazy import wrappers ──────────────────────────────────


def _lazy_serve(args: argparse.Namespace) -> None:
    from cli.commands.server import cmd_serve

    cmd_serve(args)


def _lazy_shutdown(args: argparse.Namespace) -> None:
    from cli.commands.server import cmd_shutdown

    cmd_shutdown(args)


def _lazy_node_start(args: argparse.Namespace) -> None:
    from cli.commands.nodes import cmd_node_start

    cmd_node_start(args)


def _lazy_node_stop(args: argparse.Namespace) -> None:
    from cli.commands.nodes import cmd_node_stop

    cmd_node_stop(args)


def _lazy_node_status(args: argparse.Namespace) -> None:
    from cli.commands.nodes import cmd_node_status

    cmd_node_status(args)


def _lazy_clear_data(args: argparse.Namespace) -> None:
    from cli.commands.nodes import cmd_clear_data

    cmd_clear_data(args)


def _lazy_diagnose(args: argparse.Namespace) -> None:
    from cli.commands.nodes import cmd_diagnose

    cmd_diagnose(args)


def _lazy_funds(args: argparse.Namespace) -> None:
    from cli.commands.funds import cmd_funds

    cmd_funds(args)


def _lazy_commit(args: argparse.Namespace) -> None:
    from cli.commands.funds import cmd_commit

    cmd_commit(args)


def _lazy_send(args: argparse.Namespace) -> None:
    from cli.commands.funds import cmd_send

    cmd_send(args)


def _lazy_keys(args: argparse.Namespace) -> None:
    from cli.commands.funds import cmd_keys

    cmd_keys(args)


def _lazy_protocol_params(args: argparse.Namespace) -> None:
    from cli.commands.funds import cmd_protocol_params

    cmd_protocol_params(args)
