from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

logger = logging.getLogger("hydra_console.routes.nodes")


class ClearDataRequest(BaseModel):
    paths: list[str] | None = None


def create_nodes_router() -> APIRouter:
    router = APIRouter()

    @router.get("/nodes/status")
    async def all_status(request: Request):
        supervisor = request.app.state.supervisor
        statuses = await supervisor.status_all()
        return {"nodes": {node_id: s.to_dict() for node_id, s in statuses.items()}}

    @router.get("/nodes/{node_id}/status")
    async def node_status(node_id: str, request: Request):
        status = await request.app.state.supervisor.status(node_id)
        return status.to_dict()

    @router.post("/nodes/{node_id}/start")
    async def start_node(node_id: str, request: Request):
        process = await request.app.state.supervisor.start(node_id)
        return {**process.to_dict(), "log_tail": process.log_tail}

    @router.post("/nodes/{node_id}/stop")
    async def stop_node(node_id: str, request: Request):
        supervisor = request.app.state.supervisor
        await supervisor.stop(node_id)
        status = await supervisor.status(node_id)
        return {"node_id": node_id, "stopped": True, "status": status.to_dict()}

    @router.post("/data/clear")
    async def clear_data(request: Request, body: ClearDataRequest | None = None):
        """Remove persistence data.  Body: {"paths": [...]} (optional)."""
        paths = body.paths if body else None
        cleared = await request.app.state.supervisor.clear_data(paths)
        return {"cleared": cleared}

    return router
