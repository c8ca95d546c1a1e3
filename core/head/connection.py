from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Persistent websocket session to a head node's control endpoint.

One :class:`HeadConnection` per head node.  A single background task owns
the socket: it connects, feeds frames to the :class:`HeadTracker`, and on
session end sleeps ``reconnect_delay`` seconds before trying again.

Teardown uses a generation counter.  Every ``connect()`` cycle captures the
current generation; ``disconnect()`` increments it, so a loop that wakes up
from its retry sleep after teardown sees a stale generation and exits
without reconnecting.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from core.config import HydraConsoleConfig
from core.exceptions import NotConnectedError, UnknownNodeError
from core.head.protocol import (
    ConnectionState,
    HeadCommand,
    HeadNotification,
    HeadState,
    HeadTracker,
)

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[HeadNotification], Any]
ConnectionHandler = Callable[[ConnectionState], Any]


class HeadConnection:
    """Websocket client for one head node with automatic reconnection."""

    def __init__(
        self,
        node_id: str,
        url: str,
        *,
        reconnect_delay: float = 3.0,
        history_size: int = 200,
        connect_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.node_id = node_id
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.tracker = HeadTracker(history_size=history_size)
        self._connect_factory = connect_factory or websockets.connect
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._generation = 0
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0
        self._connected = asyncio.Event()
        self._notification_handlers: list[NotificationHandler] = []
        self._connection_handlers: list[ConnectionHandler] = []

    # ── Properties ────────────────────────────────────────────

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._ws is not None

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def generation(self) -> int:
        return self._generation

    def current_head_state(self) -> HeadState:
        return self.tracker.state

    # ── Subscriptions ─────────────────────────────────────────

    def on_notification(self, handler: NotificationHandler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unregisters it."""
        self._notification_handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._notification_handlers:
                self._notification_handlers.remove(handler)

        return _unsubscribe

    def on_connection_change(self, handler: ConnectionHandler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unregisters it."""
        self._connection_handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._connection_handlers:
                self._connection_handlers.remove(handler)

        return _unsubscribe

    # ── Lifecycle ─────────────────────────────────────────────

    def connect(self) -> None:
        """Start the session loop.  No-op while a loop is already running."""
        if self._task is not None and not self._task.done():
            return
        self._generation += 1
        generation = self._generation
        logger.info("Connecting to %s at %s", self.node_id, self.url)
        self._task = asyncio.create_task(
            self._run(generation), name=f"head-connection-{self.node_id}",
        )

    async def disconnect(self) -> None:
        """Tear down the session and suppress any pending reconnection."""
        self._generation += 1
        task, self._task = self._task, None
        ws, self._ws = self._ws, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as exc:
                logger.debug("Close of %s failed: %s", self.node_id, exc)
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Disconnected from %s", self.node_id)

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until the session is open; False on timeout."""
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def send_command(self, command: HeadCommand) -> None:
        """Send *command* on the open socket.

        Raises:
            NotConnectedError: The socket is not open.  Commands are never
                queued for later delivery.
        """
        ws = self._ws
        if ws is None or self._state != ConnectionState.CONNECTED:
            raise NotConnectedError(self.node_id)
        try:
            await ws.send(command.to_json())
        except ConnectionClosed as exc:
            raise NotConnectedError(self.node_id) from exc
        logger.info("Sent %s to %s", command.tag, self.node_id)

    # ── Session loop ──────────────────────────────────────────

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            try:
                async with self._connect_factory(self.url) as ws:
                    if generation != self._generation:
                        return
                    self._ws = ws
                    self._reconnect_attempts = 0
                    self._set_state(ConnectionState.CONNECTED)
                    async for raw in ws:
                        self._handle_frame(raw)
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                # Expected while the node is not up yet.
                logger.debug("Socket error on %s: %s", self.node_id, exc)
            finally:
                if generation == self._generation:
                    self._ws = None

            if generation != self._generation:
                return
            self._set_state(ConnectionState.DISCONNECTED)
            self._reconnect_attempts += 1
            logger.debug(
                "Reconnecting to %s in %.1fs (attempt %d)",
                self.node_id, self.reconnect_delay, self._reconnect_attempts,
            )
            await asyncio.sleep(self.reconnect_delay)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            notification = HeadNotification.from_json(raw)
        except ValueError as exc:
            logger.warning("Dropping unparseable frame from %s: %s", self.node_id, exc)
            return
        self.tracker.apply(notification)
        for handler in list(self._notification_handlers):
            try:
                handler(notification)
            except Exception:
                logger.exception("Notification handler failed on %s", self.node_id)

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self._state = state
        if state == ConnectionState.CONNECTED:
            self._connected.set()
            logger.info("Connected to %s", self.node_id)
        else:
            self._connected.clear()
        for handler in list(self._connection_handlers):
            try:
                handler(state)
            except Exception:
                logger.exception("Connection handler failed on %s", self.node_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "url": self.url,
            "connection_state": self._state.value,
            "reconnect_attempts": self._reconnect_attempts,
            **self.tracker.to_dict(),
        }


# ── Pool ──────────────────────────────────────────────────────


class HeadConnectionPool:
    """One :class:`HeadConnection` per head participant."""

    def __init__(
        self,
        config: HydraConsoleConfig,
        connect_factory: Callable[..., Any] | None = None,
    ) -> None:
        client = config.head_client
        self.connections: dict[str, HeadConnection] = {
            participant: HeadConnection(
                config.head_node_id(participant),
                f"ws://{client.api_host}:{head.api_port}",
                reconnect_delay=client.reconnect_delay_sec,
                history_size=client.history_size,
                connect_factory=connect_factory,
            )
            for participant, head in config.heads.items()
        }

    def get(self, participant: str) -> HeadConnection:
        conn = self.connections.get(participant)
        if conn is None:
            raise UnknownNodeError(participant)
        return conn

    def connect_all(self) -> None:
        for conn in self.connections.values():
            conn.connect()

    async def disconnect_all(self) -> None:
        await asyncio.gather(*(c.disconnect() for c in self.connections.values()))
