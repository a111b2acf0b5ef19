"""Async database helpers for mcp-studio."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite


async def init_db(db_path: str | Path) -> None:
    """Initialize the SQLite database schema.

    Args:
        db_path: File path to the SQLite database.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS server_configs (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        await db.commit()


async def save_server_configs(db_path: str | Path, configs: list[dict[str, Any]]) -> None:
    """Replace all stored server configurations.

    The rows are rewritten in a single transaction, so readers see either the
    old or the new set, never a mix.

    Args:
        db_path: File path to the SQLite database.
        configs: Serialised configurations in display order. Each needs an 'id' key.
    """
    rows = [(config["id"], position, json.dumps(config)) for position, config in enumerate(configs)]
    async with aiosqlite.connect(db_path) as db:
        await db.execute("DELETE FROM server_configs")
        await db.executemany(
            "INSERT INTO server_configs (id, position, data) VALUES (?, ?, ?)",
            rows,
        )
        await db.commit()


async def load_server_configs(db_path: str | Path) -> list[dict[str, Any]]:
    """Fetch all stored server configurations.

    Args:
        db_path: File path to the SQLite database.

    Returns:
        Serialised configurations in the order they were saved.
    """
    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute("SELECT data FROM server_configs ORDER BY position ASC")
        rows = await cursor.fetchall()
        await cursor.close()
    return [json.loads(row[0]) for row in rows]
