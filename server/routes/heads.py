from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from core.exceptions import InvalidCommandError
from core.head.protocol import HeadCommand

logger = logging.getLogger("hydra_console.routes.heads")


def create_heads_router() -> APIRouter:
    router = APIRouter()

    @router.get("/heads")
    async def list_heads(request: Request):
        pool = request.app.state.connections
        return {"heads": {p: conn.to_dict() for p, conn in pool.connections.items()}}

    @router.get("/heads/{participant}")
    async def head_state(participant: str, request: Request):
        return request.app.state.connections.get(participant).to_dict()

    @router.get("/heads/{participant}/history")
    async def head_history(
        participant: str,
        request: Request,
        limit: int = Query(50, ge=1, le=1000),
    ):
        conn = request.app.state.connections.get(participant)
        entries = list(conn.tracker.history)[-limit:]
        return {"participant": participant, "entries": entries}

    @router.post("/heads/{participant}/commands")
    async def send_command(participant: str, request: Request):
        """Send a head command.  Body: {"tag": "Init"} or any command object."""
        conn = request.app.state.connections.get(participant)
        try:
            body = await request.json()
        except ValueError:
            raise InvalidCommandError("Invalid JSON") from None
        command = HeadCommand.from_dict(body)

        if not conn.tracker.allows(command.tag):
            return JSONResponse(
                {
                    "error": "CommandNotAllowed",
                    "message": f"{command.tag} is not allowed in state {conn.current_head_state().value}",
                    "head_state": conn.current_head_state().value,
                },
                status_code=409,
            )
        await conn.send_command(command)
        return {"participant": participant, "sent": command.tag}

    return router
