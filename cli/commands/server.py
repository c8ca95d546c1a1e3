# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import atexit
import logging
import os
import signal
import sys
import time
from pathlib import Path

logger = logging.getLogger("hydra_console")


# ── PID helpers ───────────────────────────────────────────


def _get_pid_file() -> Path:
    """Return the path to the API server PID file."""
    from core.paths import get_run_dir

    return get_run_dir() / "server.pid"


def _write_pid_file() -> None:
    pid_file = _get_pid_file()
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()), encoding="utf-8")
    logger.info("PID file written: %s (pid=%d)", pid_file, os.getpid())


def _remove_pid_file() -> None:
    pid_file = _get_pid_file()
    try:
        pid_file.unlink(missing_ok=True)
        logger.debug("PID file removed: %s", pid_file)
    except OSError as exc:
        logger.warning("Failed to remove PID file %s: %s", pid_file, exc)


def _read_pid() -> int | None:
    """Return the PID recorded in the PID file, or None if absent/invalid."""
    pid_file = _get_pid_file()
    if not pid_file.exists():
        return None
    try:
        return int(pid_file.read_text(encoding="utf-8").strip())
    except (ValueError, OSError) as exc:
        logger.warning("Invalid PID file %s: %s", pid_file, exc)
        return None


def _is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True


def _stop_server(timeout: int = 10) -> bool:
    """Send SIGTERM to the running API server and wait for it to exit.

    Node processes are detached jobs and keep running; stop them with
    ``hydra-console stop <node>``.

    Returns:
        True if the server was stopped (or was not running).
    """
    pid = _read_pid()
    if pid is None:
        print("No PID file found. Server is not running.")
        return True
    if not _is_process_alive(pid):
        print(f"Stale PID file (pid={pid}). Server is not running. Cleaning up.")
        _remove_pid_file()
        return True

    print(f"Stopping server (pid={pid})...")
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        print("Server already exited.")
        _remove_pid_file()
        return True
    except PermissionError:
        print(f"Error: Permission denied sending signal to pid={pid}.")
        return False

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not _is_process_alive(pid):
            print("Server stopped.")
            _remove_pid_file()
            return True
        time.sleep(0.2)

    print(f"Error: Server (pid={pid}) did not stop within {timeout}s.")
    return False


# ── Server commands ───────────────────────────────────────


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP API in the foreground."""
    import uvicorn

    from core.config import load_config
    from server.app import create_app

    existing_pid = _read_pid()
    if existing_pid is not None and _is_process_alive(existing_pid):
        print(f"Error: Server is already running (pid={existing_pid}).")
        print("Use 'hydra-console shutdown' first.")
        sys.exit(1)
    elif existing_pid is not None:
        logger.info("Stale PID file found (pid=%d). Cleaning up.", existing_pid)
        _remove_pid_file()

    config = load_config()
    host = args.host or config.server.host
    port = args.port or config.server.port

    _write_pid_file()
    atexit.register(_remove_pid_file)

    display_host = "localhost" if host == "0.0.0.0" else host
    print(f"API ready at http://{display_host}:{port}/api/")

    try:
        app = create_app(config)
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="info",
            timeout_keep_alive=65,
        )
    finally:
        _remove_pid_file()


def cmd_shutdown(args: argparse.Namespace) -> None:
    """Stop the running API server."""
    if not _stop_server():
        sys.exit(1)
