from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from fastapi import APIRouter

from server.routes.funds import create_funds_router
from server.routes.heads import create_heads_router
from server.routes.nodes import create_nodes_router
from server.routes.system import create_system_router


def create_router() -> APIRouter:
    router = APIRouter()
    api = APIRouter(prefix="/api")

    api.include_router(create_nodes_router())
    api.include_router(create_heads_router())
    api.include_router(create_funds_router())
    api.include_router(create_system_router())

    router.include_router(api)

    return router
