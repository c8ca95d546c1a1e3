from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from fastapi import APIRouter, Request

from core.diagnostics import run_diagnostics


def create_system_router() -> APIRouter:
    router = APIRouter()

    @router.get("/system/status")
    async def system_status(request: Request):
        """Cached view of nodes and head connections (no live lookups)."""
        supervisor = request.app.state.supervisor
        connections = request.app.state.connections
        return {
            "nodes": {
                node_id: supervisor.get_process_status(node_id)
                for node_id in supervisor.node_ids
            },
            "heads": {
                p: conn.to_dict() for p, conn in connections.connections.items()
            },
        }

    @router.get("/system/diagnostics")
    async def diagnostics(request: Request):
        return await run_diagnostics(request.app.state.executor, request.app.state.config)

    return router
