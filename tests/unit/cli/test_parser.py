"""Unit tests for cli/parser.py - Argparse configuration and cli_main."""
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from cli import parser as parser_mod
from cli.parser import build_parser, cli_main


class TestParserCommands:
    """Test that argparse correctly parses all subcommands."""

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])
        assert args.command == "serve"
        assert args.host is None
        assert args.port is None
        assert args.func is parser_mod._lazy_serve

    def test_serve_overrides(self):
        args = build_parser().parse_args(["serve", "--host", "0.0.0.0", "--port", "9000"])
        assert args.host == "0.0.0.0"
        assert args.port == 9000

    @pytest.mark.parametrize(
        "argv,func",
        [
            (["start", "cardano-node"], "_lazy_node_start"),
            (["stop", "alice-node"], "_lazy_node_stop"),
            (["status"], "_lazy_node_status"),
            (["shutdown"], "_lazy_shutdown"),
            (["diagnose"], "_lazy_diagnose"),
            (["keys"], "_lazy_keys"),
            (["protocol-params"], "_lazy_protocol_params"),
        ],
    )
    def test_dispatch_targets(self, argv, func):
        args = build_parser().parse_args(argv)
        assert args.func is getattr(parser_mod, func)

    def test_status_optional_node(self):
        assert build_parser().parse_args(["status"]).node is None
        assert build_parser().parse_args(["status", "bob-node"]).node == "bob-node"

    def test_clear_data(self):
        args = build_parser().parse_args(["clear-data", "-y", "/tmp/hydra-x"])
        assert args.yes is True
        assert args.paths == ["/tmp/hydra-x"]

    def test_funds_head_flag(self):
        args = build_parser().parse_args(["funds", "alice", "--head"])
        assert args.participant == "alice"
        assert args.head is True

    def test_commit_keys(self):
        args = build_parser().parse_args(["commit", "bob", "aa#0", "bb#1"])
        assert args.utxos == ["aa#0", "bb#1"]

    def test_send(self):
        args = build_parser().parse_args(["send", "alice", "addr_test1bob", "2.5", "--ada"])
        assert args.amount == 2.5
        assert args.ada is True
        assert args.connect_timeout == 10.0

    def test_keys_generate(self):
        assert build_parser().parse_args(["keys", "--generate", "bob"]).generate == "bob"

    def test_start_requires_node(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["start"])


class TestCliMain:
    def test_no_command_prints_help(self, capsys):
        with (
            patch("dotenv.load_dotenv"),
            patch("core.logging_config.setup_logging"),
        ):
            cli_main([])
        assert "usage: hydra-console" in capsys.readouterr().out

    def test_data_dir_override_and_dispatch(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HYDRA_CONSOLE_DATA_DIR", raising=False)
        with (
            patch("dotenv.load_dotenv"),
            patch("core.logging_config.setup_logging") as mock_logging,
            patch("cli.commands.nodes.cmd_node_status") as mock_status,
        ):
            cli_main(["--data-dir", str(tmp_path), "status"])

        assert os.environ["HYDRA_CONSOLE_DATA_DIR"] == str(tmp_path)
        assert mock_logging.call_args.kwargs["log_dir"] == tmp_path.resolve() / "logs"
        mock_status.assert_called_once()
