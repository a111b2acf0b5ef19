"""Tests for the SQLite configuration store."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import make_http_config, make_stdio_config
from mcp_studio.db import save_server_configs
from mcp_studio.mcp.servers import HTTPConfig, StdioConfig
from mcp_studio.store import SQLiteConfigStore


@pytest.mark.asyncio
async def test_store_roundtrip(test_db: Path) -> None:
    """Saved configurations load back with their transport payloads intact."""
    store = SQLiteConfigStore(test_db)
    configs = [make_stdio_config("fs"), make_http_config("web")]

    await store.save_all(configs)
    loaded = await store.load_all()

    assert loaded == configs
    assert isinstance(loaded[0].config, StdioConfig)
    assert isinstance(loaded[1].config, HTTPConfig)


@pytest.mark.asyncio
async def test_store_rejects_invalid_rows(test_db: Path) -> None:
    """A corrupted row surfaces as a validation error on load."""
    await save_server_configs(
        test_db,
        [{"id": "bad", "name": "Bad", "transport": "sse", "config": {"type": "stdio", "command": "x"}}],
    )

    with pytest.raises(ValidationError):
        await SQLiteConfigStore(test_db).load_all()


@pytest.mark.asyncio
async def test_store_missing_schema_fails(tmp_path: Path) -> None:
    """Loading from a database without the schema raises."""
    with pytest.raises(sqlite3.OperationalError):
        await SQLiteConfigStore(tmp_path / "empty.db").load_all()
