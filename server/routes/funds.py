from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, field_validator

from core.funds.utxo import total_lovelace, utxo_map_json

logger = logging.getLogger("hydra_console.routes.funds")


class CommitRequest(BaseModel):
    utxos: list[str] = []


class SendRequest(BaseModel):
    recipient: str
    lovelace: int

    @field_validator("lovelace")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("lovelace must be positive")
        return v


def _funds_response(participant: str, entries: dict) -> dict:
    return {
        "participant": participant,
        "utxos": utxo_map_json(entries),
        "total_lovelace": total_lovelace(entries),
    }


def create_funds_router() -> APIRouter:
    router = APIRouter()

    @router.get("/funds/{participant}")
    async def query_funds(participant: str, request: Request):
        entries = await request.app.state.funds.query_funds(participant)
        return _funds_response(participant, entries)

    @router.get("/funds/{participant}/head")
    async def query_head_funds(participant: str, request: Request):
        entries = await request.app.state.funds.query_head_funds(participant)
        return _funds_response(participant, entries)

    @router.post("/funds/{participant}/commit")
    async def commit(participant: str, request: Request, body: CommitRequest | None = None):
        """Commit UTxOs into the head.  Body: {"utxos": ["<txhash>#<ix>", ...]}."""
        selection = body.utxos if body else []
        result = await request.app.state.funds.commit(participant, selection)
        return result.to_dict()

    @router.post("/funds/{participant}/send")
    async def send(participant: str, body: SendRequest, request: Request):
        result = await request.app.state.funds.send_within_head(
            participant, body.recipient, body.lovelace,
        )
        return result.to_dict()

    # ── Keys / protocol parameters ──────────────────────────

    @router.get("/keys")
    async def check_keys(request: Request):
        return await request.app.state.funds.check_keys()

    @router.post("/keys/{participant}")
    async def generate_keys(participant: str, request: Request):
        files = await request.app.state.funds.generate_keys(participant)
        return {"participant": participant, "files": files}

    @router.post("/protocol-parameters")
    async def setup_protocol_parameters(request: Request):
        written = await request.app.state.funds.setup_protocol_parameters()
        return {"written": written}

    return router
