# HydraConsole - Two-party Hydra head demo supervisor
# Copyright (C) 2026 HydraConsole Authors
# SPDX-License-Identifier: Apache-2.0

"""UTxO map parsing.

Both ``cardano-cli query utxo --output-json`` and the head node's
``/snapshot/utxo`` endpoint return a map keyed by ``"<txhash>#<index>"``
with ``{"address": ..., "value": {"lovelace": N, <policy>: {...}}}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from core.exceptions import MalformedResponseError


@dataclass(frozen=True)
class UTxOEntry:
    tx_hash: str
    index: int
    address: str
    lovelace: int
    assets: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.tx_hash}#{self.index}"

    def to_json(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "value": {"lovelace": self.lovelace, **self.assets},
        }


def _parse_entry(key: str, body: Any) -> UTxOEntry:
    tx_hash, sep, index = key.partition("#")
    if not sep or not tx_hash or not index.isdigit():
        raise ValueError(f"bad utxo key {key!r}")
    if not isinstance(body, dict) or not isinstance(body.get("value"), dict):
        raise ValueError(f"bad utxo body for {key}")
    value = dict(body["value"])
    lovelace = value.pop("lovelace", 0)
    if not isinstance(lovelace, int):
        raise ValueError(f"bad lovelace for {key}")
    return UTxOEntry(
        tx_hash=tx_hash,
        index=int(index),
        address=str(body.get("address", "")),
        lovelace=lovelace,
        assets=value,
    )


def parse_utxo_map(raw: str | dict[str, Any]) -> dict[str, UTxOEntry]:
    """Parse a UTxO map (JSON text or decoded dict).

    Raises:
        MalformedResponseError: Input is not a well-formed UTxO map.
    """
    text = raw if isinstance(raw, str) else json.dumps(raw)
    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(text, f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError(text, "expected a UTxO map")
    try:
        entries = [_parse_entry(k, v) for k, v in data.items()]
    except ValueError as exc:
        raise MalformedResponseError(text, str(exc)) from exc
    return {e.key: e for e in entries}


def utxo_map_json(entries: dict[str, UTxOEntry] | list[UTxOEntry]) -> dict[str, Any]:
    values = entries.values() if isinstance(entries, dict) else entries
    return {e.key: e.to_json() for e in values}


def total_lovelace(entries: dict[str, UTxOEntry]) -> int:
    return sum(e.lovelace for e in entries.values())
