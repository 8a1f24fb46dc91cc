"""Serializable projections of the game state and sqlite-backed save slots."""
from __future__ import annotations

import json
import logging
import types
from dataclasses import asdict, fields, is_dataclass
from typing import Any, Union, get_args, get_origin, get_type_hints

from foundermode.common import db

from .models import GameState

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
SAVES_SCHEMA_VERSION = 1

SAVES_SCHEMA = """
CREATE TABLE IF NOT EXISTS game_saves (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slot TEXT NOT NULL UNIQUE,
    tick INTEGER NOT NULL,
    money INTEGER NOT NULL,
    payload TEXT NOT NULL,
    saved_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


def snapshot(state: GameState) -> dict[str, Any]:
    """Project the state to plain JSON-able data. Credentials are never included."""
    data = asdict(state)
    data["ai_settings"].pop("api_key", None)
    # in-flight generator calls do not survive a reload
    for item in data["ai_work_queue"]:
        if item["status"] == "running":
            item["status"] = "queued"
    data["version"] = SNAPSHOT_VERSION
    return data


def _coerce(tp: Any, value: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(tp)
    if origin in (Union, types.UnionType):
        candidates = [arg for arg in get_args(tp) if arg is not type(None)]
        for arg in candidates:
            if is_dataclass(arg) and isinstance(value, dict):
                return _build(arg, value)
        return value
    if origin is list:
        (item_type,) = get_args(tp) or (Any,)
        return [_coerce(item_type, item) for item in value]
    if origin is dict:
        args = get_args(tp)
        value_type = args[1] if len(args) == 2 else Any
        return {key: _coerce(value_type, item) for key, item in value.items()}
    if isinstance(tp, type) and is_dataclass(tp) and isinstance(value, dict):
        return _build(tp, value)
    return value


def _build(cls: type, data: dict[str, Any]) -> Any:
    hints = get_type_hints(cls)
    kwargs = {f.name: _coerce(hints[f.name], data[f.name]) for f in fields(cls) if f.name in data}
    return cls(**kwargs)


def restore(data: dict[str, Any]) -> GameState:
    version = data.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version {version}")
    return _build(GameState, data)


# ------------------------------------------------------------------
# Save slots
# ------------------------------------------------------------------

def ensure_schema() -> None:
    db.ensure_schema(SAVES_SCHEMA, SAVES_SCHEMA_VERSION)


def save_game(slot: str, state: GameState) -> dict[str, Any]:
    payload = json.dumps(snapshot(state))
    with db.get_connection() as conn:
        conn.execute(
            """
            INSERT INTO game_saves (slot, tick, money, payload) VALUES (?, ?, ?, ?)
            ON CONFLICT(slot) DO UPDATE SET
                tick = excluded.tick,
                money = excluded.money,
                payload = excluded.payload,
                saved_at = CURRENT_TIMESTAMP
            """,
            (slot, state.tick, state.money, payload),
        )
        row = conn.execute("SELECT slot, tick, money, saved_at FROM game_saves WHERE slot = ?", (slot,)).fetchone()
    logger.info("Saved game to slot %s at tick %s", slot, state.tick)
    return dict(row)


def load_game(slot: str) -> GameState | None:
    with db.get_connection() as conn:
        row = conn.execute("SELECT payload FROM game_saves WHERE slot = ?", (slot,)).fetchone()
    if row is None:
        return None
    return restore(json.loads(row["payload"]))


def list_saves() -> list[dict[str, Any]]:
    with db.get_connection() as conn:
        rows = conn.execute("SELECT slot, tick, money, saved_at FROM game_saves ORDER BY saved_at DESC, id DESC").fetchall()
    return [dict(row) for row in rows]


def delete_save(slot: str) -> bool:
    with db.get_connection() as conn:
        cursor = conn.execute("DELETE FROM game_saves WHERE slot = ?", (slot,))
    return cursor.rowcount > 0
