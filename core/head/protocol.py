from __future__ import annotations
# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of HydraConsole core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Head protocol wire types and head lifecycle tracking.

Frames on the head node's control endpoint are UTF-8 JSON objects with a
``tag`` discriminator.  Field names are those of the hydra-node API
(``headId``, ``snapshotNumber``, ``contestationDeadline``, ...), so payloads
are kept as plain dicts rather than remodelled.

:class:`HeadTracker` derives :class:`HeadState` from inbound notifications
only; outbound commands never change it.
"""

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.exceptions import InvalidCommandError
from core.time_utils import now_iso

logger = logging.getLogger(__name__)


# ── States ────────────────────────────────────────────────────


class HeadState(str, Enum):
    IDLE = "Idle"
    INITIALIZING = "Initializing"
    OPEN = "Open"
    CLOSED = "Closed"
    READY_TO_FANOUT = "ReadyToFanout"
    FINALIZED = "Finalized"
    ABORTED = "Aborted"


class ConnectionState(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTED = "Connected"


class NotificationTag:
    GREETINGS = "Greetings"
    PEER_CONNECTED = "PeerConnected"
    PEER_DISCONNECTED = "PeerDisconnected"
    HEAD_IS_INITIALIZING = "HeadIsInitializing"
    COMMITTED = "Committed"
    HEAD_IS_OPEN = "HeadIsOpen"
    HEAD_IS_CLOSED = "HeadIsClosed"
    READY_TO_FANOUT = "ReadyToFanout"
    HEAD_IS_FINALIZED = "HeadIsFinalized"
    HEAD_IS_ABORTED = "HeadIsAborted"
    TX_VALID = "TxValid"
    TX_INVALID = "TxInvalid"
    SNAPSHOT_CONFIRMED = "SnapshotConfirmed"
    DECOMMIT_REQUESTED = "DecommitRequested"
    DECOMMIT_APPROVED = "DecommitApproved"
    DECOMMIT_FINALIZED = "DecommitFinalized"
    INVALID_INPUT = "InvalidInput"
    COMMAND_FAILED = "CommandFailed"


class CommandTag:
    INIT = "Init"
    ABORT = "Abort"
    NEW_TX = "NewTx"
    CLOSE = "Close"
    CONTEST = "Contest"
    FANOUT = "Fanout"
    DECOMMIT = "Decommit"
    RECOVER = "Recover"
    SIDE_LOAD_SNAPSHOT = "SideLoadSnapshot"


COMMAND_TAGS = frozenset({
    CommandTag.INIT,
    CommandTag.ABORT,
    CommandTag.NEW_TX,
    CommandTag.CLOSE,
    CommandTag.CONTEST,
    CommandTag.FANOUT,
    CommandTag.DECOMMIT,
    CommandTag.RECOVER,
    CommandTag.SIDE_LOAD_SNAPSHOT,
})

# Greetings.headStatus values reported by hydra-node.
_STATUS_HINTS: dict[str, HeadState] = {
    "Idle": HeadState.IDLE,
    "Initializing": HeadState.INITIALIZING,
    "Open": HeadState.OPEN,
    "Closed": HeadState.CLOSED,
    "FanoutPossible": HeadState.READY_TO_FANOUT,
    "Final": HeadState.FINALIZED,
}


# ── Wire types ────────────────────────────────────────────────


@dataclass(frozen=True)
class HeadNotification:
    """One inbound frame.  Unknown tags are kept as-is."""

    tag: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: str | bytes) -> HeadNotification:
        """Parse a frame.

        Raises:
            ValueError: The frame is not a JSON object with a string ``tag``.
        """
        data = json.loads(raw)  # JSONDecodeError is a ValueError
        if not isinstance(data, dict) or not isinstance(data.get("tag"), str):
            raise ValueError("frame is not an object with a string 'tag'")
        return cls(tag=data["tag"], payload=data)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.payload, tag=self.tag)


@dataclass(frozen=True)
class HeadCommand:
    """One outbound frame."""

    tag: str
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, **self.fields}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> HeadCommand:
        """Validate a caller-supplied command object."""
        if not isinstance(data, dict):
            raise InvalidCommandError("command must be a JSON object")
        tag = data.get("tag")
        if tag not in COMMAND_TAGS:
            raise InvalidCommandError(f"unknown command tag: {tag!r}")
        fields = {k: v for k, v in data.items() if k != "tag"}
        return cls(tag=tag, fields=fields)

    @classmethod
    def init(cls) -> HeadCommand:
        return cls(CommandTag.INIT)

    @classmethod
    def abort(cls) -> HeadCommand:
        return cls(CommandTag.ABORT)

    @classmethod
    def new_tx(cls, transaction: dict[str, Any]) -> HeadCommand:
        return cls(CommandTag.NEW_TX, {"transaction": transaction})

    @classmethod
    def close(cls) -> HeadCommand:
        return cls(CommandTag.CLOSE)

    @classmethod
    def contest(cls) -> HeadCommand:
        return cls(CommandTag.CONTEST)

    @classmethod
    def fanout(cls) -> HeadCommand:
        return cls(CommandTag.FANOUT)

    @classmethod
    def decommit(cls, decommit_tx: dict[str, Any]) -> HeadCommand:
        return cls(CommandTag.DECOMMIT, {"decommitTx": decommit_tx})

    @classmethod
    def recover(cls, tx_id: str) -> HeadCommand:
        return cls(CommandTag.RECOVER, {"recoverTxId": tx_id})

    @classmethod
    def side_load_snapshot(cls, snapshot: dict[str, Any]) -> HeadCommand:
        return cls(CommandTag.SIDE_LOAD_SNAPSHOT, {"snapshot": snapshot})


# ── Tracker ───────────────────────────────────────────────────


class HeadTracker:
    """Head lifecycle derived from notifications.

    The latches record that a lifecycle step has been observed (the head
    was initialized, funds were committed, the head was closed).  They gate
    commands that would otherwise be re-sent, and are cleared when the head
    is aborted and returns to a pre-initialization condition.
    """

    def __init__(self, history_size: int = 200) -> None:
        self.state: HeadState = HeadState.IDLE
        self.has_initialized = False
        self.has_committed = False
        self.has_closed = False
        self.head_id: str | None = None
        self.history: deque[dict[str, Any]] = deque(maxlen=history_size)

    def apply(self, notification: HeadNotification) -> HeadState:
        """Fold *notification* into the tracked state and return the new state."""
        self.history.append({"received_at": now_iso(), **notification.to_dict()})
        tag = notification.tag
        previous = self.state

        if tag == NotificationTag.GREETINGS:
            self._apply_hint(notification.payload.get("headStatus"))
        elif tag == NotificationTag.HEAD_IS_INITIALIZING:
            self.state = HeadState.INITIALIZING
            self.has_initialized = True
        elif tag == NotificationTag.COMMITTED:
            self.has_committed = True
        elif tag == NotificationTag.HEAD_IS_OPEN:
            self.state = HeadState.OPEN
            self.has_initialized = True
            self.has_committed = True
        elif tag == NotificationTag.HEAD_IS_CLOSED:
            self.state = HeadState.CLOSED
            self.has_closed = True
        elif tag == NotificationTag.READY_TO_FANOUT:
            self.state = HeadState.READY_TO_FANOUT
        elif tag == NotificationTag.HEAD_IS_FINALIZED:
            self.state = HeadState.FINALIZED
        elif tag == NotificationTag.HEAD_IS_ABORTED:
            self.state = HeadState.ABORTED
            self.has_initialized = False
            self.has_committed = False
            self.has_closed = False

        head_id = notification.payload.get("headId")
        if isinstance(head_id, str):
            self.head_id = head_id

        if self.state != previous:
            logger.info("Head state %s -> %s (%s)", previous.value, self.state.value, tag)
        return self.state

    def _apply_hint(self, status: Any) -> None:
        hint = _STATUS_HINTS.get(status) if isinstance(status, str) else None
        if hint is None:
            return
        self.state = hint
        if hint == HeadState.IDLE:
            return
        self.has_initialized = True
        if hint in (HeadState.OPEN, HeadState.CLOSED, HeadState.READY_TO_FANOUT, HeadState.FINALIZED):
            self.has_committed = True
        if hint in (HeadState.CLOSED, HeadState.READY_TO_FANOUT, HeadState.FINALIZED):
            self.has_closed = True

    def allows(self, tag: str) -> bool:
        """Whether a command with *tag* makes sense in the current state."""
        if tag == CommandTag.INIT:
            return not self.has_initialized
        if tag in (CommandTag.CLOSE, CommandTag.NEW_TX, CommandTag.DECOMMIT):
            return self.state == HeadState.OPEN
        if tag == CommandTag.CONTEST:
            return self.state == HeadState.CLOSED
        if tag == CommandTag.FANOUT:
            return self.state == HeadState.READY_TO_FANOUT
        if tag == CommandTag.ABORT:
            return self.state not in (HeadState.OPEN, HeadState.CLOSED, HeadState.FINALIZED)
        # Recover and SideLoadSnapshot are left to the node to judge.
        return tag in COMMAND_TAGS

    def reset(self) -> None:
        self.state = HeadState.IDLE
        self.has_initialized = False
        self.has_committed = False
        self.has_closed = False
        self.head_id = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "head_state": self.state.value,
            "head_id": self.head_id,
            "has_initialized": self.has_initialized,
            "has_committed": self.has_committed,
            "has_closed": self.has_closed,
        }
