"""Unit tests for server/routes/nodes.py - node lifecycle endpoints."""
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from server.app import create_app


@pytest.fixture
async def client(config, host, registry):
    app = create_app(config, executor=host, registry=registry, connect_heads=False)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ── Status ────────────────────────────────────────────────


class TestStatus:
    async def test_all_nodes_stopped(self, client):
        resp = await client.get("/api/nodes/status")
        assert resp.status_code == 200
        nodes = resp.json()["nodes"]
        assert set(nodes) == {"cardano-node", "alice-node", "bob-node"}
        assert all(n["running"] is False for n in nodes.values())

    async def test_single_node_running(self, client, host):
        pid = host.spawn("hydra-node --api-port 4002 --listen 127.0.0.1:5002")
        resp = await client.get("/api/nodes/bob-node/status")
        data = resp.json()
        assert data["running"] is True
        assert data["pid"] == pid
        assert data["api_port"] == 4002

    async def test_unknown_node_is_404(self, client):
        resp = await client.get("/api/nodes/carol-node/status")
        assert resp.status_code == 404
        assert resp.json()["error"] == "UnknownNodeError"


# ── Start / stop ──────────────────────────────────────────


class TestStartStop:
    async def test_start_returns_process(self, client, host):
        resp = await client.post("/api/nodes/cardano-node/start")
        assert resp.status_code == 200
        data = resp.json()
        assert data["pid"] in host.processes
        assert data["kind"] == "ledger"
        assert "cardano-node started" in data["log_tail"]

    async def test_start_twice_is_409(self, client):
        await client.post("/api/nodes/alice-node/start")
        resp = await client.post("/api/nodes/alice-node/start")
        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "AlreadyRunningError"
        assert body["node_id"] == "alice-node"

    async def test_start_failure_carries_log(self, client, host):
        host.broken_binaries.add("cardano-node")
        host.crash_log = "Invalid argument: config.json does not exist\n"

        resp = await client.post("/api/nodes/cardano-node/start")

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "StartFailedError"
        assert "config.json does not exist" in body["log_excerpt"]

    async def test_stuck_lock_is_500(self, client, host):
        host.lock_present = True
        host.lock_stuck = True
        resp = await client.post("/api/nodes/cardano-node/start")
        assert resp.status_code == 500
        assert resp.json()["lock_path"] == "db/lock"

    async def test_stop_reports_stopped(self, client, host):
        await client.post("/api/nodes/alice-node/start")

        resp = await client.post("/api/nodes/alice-node/stop")

        assert resp.status_code == 200
        data = resp.json()
        assert data["stopped"] is True
        assert data["status"]["running"] is False
        assert host.processes == {}

    async def test_stop_when_not_running(self, client):
        resp = await client.post("/api/nodes/bob-node/stop")
        assert resp.status_code == 200
        assert resp.json()["status"] == {"node_id": "bob-node", "running": False}


# ── Clear data ────────────────────────────────────────────


class TestClearData:
    async def test_default_paths(self, client, config):
        resp = await client.post("/api/data/clear")
        assert resp.status_code == 200
        assert resp.json()["cleared"] == config.supervisor.clear_paths

    async def test_explicit_paths(self, client, host):
        resp = await client.post("/api/data/clear", json={"paths": ["/tmp/persistence-a"]})
        assert resp.json() == {"cleared": ["/tmp/persistence-a"]}
        assert host.calls[-1].command.startswith("rm -rf /tmp/persistence-a")

    async def test_unsafe_path_is_400(self, client, host):
        resp = await client.post("/api/data/clear", json={"paths": ["/"]})
        assert resp.status_code == 400
        assert host.calls == []
