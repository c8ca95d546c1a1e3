from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.


import logging
import time
import uuid
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse as StarletteJSONResponse

from core.config import HydraConsoleConfig, load_config
from core.exceptions import (
    AlreadyRunningError,
    CommitRejectedError,
    FundsError,
    HeadError,
    HydraConsoleError,
    InsufficientFundsError,
    InvalidCommandError,
    LockDetectedError,
    MalformedResponseError,
    NodeNotRunningError,
    NoFundsAvailableError,
    NotConnectedError,
    StartFailedError,
    UnknownNodeError,
)
from core.executor import CommandExecutor
from core.funds import FundsOrchestrator
from core.head import HeadConnectionPool
from core.supervisor import NodeRegistry, NodeSupervisor
from server.routes import create_router

logger = logging.getLogger("hydra_console.server")

# Paths to exclude from request logging (status polling)
_NOISY_PATHS = frozenset({
    "/api/system/status",
    "/api/nodes/status",
})

# Most specific first; the first isinstance match wins.
_ERROR_STATUS: list[tuple[type[HydraConsoleError], int]] = [
    (UnknownNodeError, 404),
    (AlreadyRunningError, 409),
    (NodeNotRunningError, 409),
    (StartFailedError, 500),
    (LockDetectedError, 500),
    (NotConnectedError, 503),
    (InvalidCommandError, 400),
    (CommitRejectedError, 502),
    (MalformedResponseError, 502),
    (NoFundsAvailableError, 422),
    (InsufficientFundsError, 422),
    (FundsError, 422),
    (HeadError, 409),
]


def error_status(exc: HydraConsoleError) -> int:
    for exc_type, status in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500


def error_body(exc: HydraConsoleError) -> dict[str, Any]:
    """JSON body for a domain error, with its diagnostic context."""
    body: dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    for attr in ("node_id", "pid", "log_excerpt", "reason", "raw", "lock_path",
                 "participant", "requested", "largest", "stderr"):
        value = getattr(exc, attr, None)
        if value is not None and value != "":
            body[attr] = value
    return body


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status, and duration.

    Automatically binds a ``request_id`` into structlog contextvars so that
    all log records emitted during request processing carry the ID.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        structlog.contextvars.clear_contextvars()
        request_id = request.headers.get(
            "X-Request-ID", uuid.uuid4().hex[:12],
        )
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        response.headers["X-Request-ID"] = request_id

        if request.url.path not in _NOISY_PATHS:
            req_logger = logging.getLogger("hydra_console.request")
            req_logger.info(
                "request %s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: HydraConsoleConfig = app.state.config

    if app.state.connect_heads:
        app.state.connections.connect_all()

    scheduler = AsyncIOScheduler(timezone="UTC")

    # ── Registry reconciliation ──────────────────────────
    async def _refresh_status() -> None:
        try:
            await app.state.supervisor.status_all()
        except HydraConsoleError as exc:
            logger.warning("Status refresh failed: %s", exc)
        except Exception:
            logger.exception("Status refresh failed")

    scheduler.add_job(
        _refresh_status,
        IntervalTrigger(seconds=config.supervisor.status_refresh_sec),
        id="node_status_refresh",
        name="System: Node Status Refresh",
        replace_existing=True,
    )
    scheduler.start()
    app.state.status_scheduler = scheduler

    logger.info("Server started")
    yield
    scheduler.shutdown(wait=False)
    await app.state.connections.disconnect_all()
    logger.info("Server stopped")


def create_app(
    config: HydraConsoleConfig | None = None,
    *,
    executor: CommandExecutor | None = None,
    registry: NodeRegistry | None = None,
    connect_heads: bool = True,
    connect_factory: Callable[..., Any] | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    config = config or load_config()
    app = FastAPI(title="HydraConsole", version="0.1.0", lifespan=lifespan)

    executor = executor or CommandExecutor(config.executor)
    supervisor = NodeSupervisor(config, executor, registry)
    connections = HeadConnectionPool(config, connect_factory=connect_factory)
    funds = FundsOrchestrator(
        supervisor, executor, connections, config, transport=http_transport,
    )

    app.state.config = config
    app.state.executor = executor
    app.state.supervisor = supervisor
    app.state.connections = connections
    app.state.funds = funds
    app.state.connect_heads = connect_heads

    # ── Domain exception handler ────────────────────────────
    @app.exception_handler(HydraConsoleError)
    async def domain_exception_handler(request: Request, exc: HydraConsoleError):
        status = error_status(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return StarletteJSONResponse(error_body(exc), status_code=status)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return StarletteJSONResponse({"error": "ValueError", "message": str(exc)}, status_code=400)

    # ── Global exception handler ────────────────────────────
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return StarletteJSONResponse(
            {"error": "Internal server error"}, status_code=500,
        )

    # ── Request logging middleware ─────────────────────────
    app.add_middleware(RequestLoggingMiddleware)

    # ── Route registration ─────────────────────────────────
    app.include_router(create_router())

    return app
