from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from mcp_studio.db import init_db
from mcp_studio.mcp.events import EventLog
from mcp_studio.mcp.lifecycle import LifecycleCoordinator
from mcp_studio.mcp.registry import ConnectionRegistry
from mcp_studio.mcp.servers import HTTPConfig, ServerCapabilities, ServerConfig, StdioConfig


def make_stdio_config(
    server_id: str = "fs",
    *,
    name: str | None = None,
    command: str = "node",
    args: list[str] | None = None,
) -> ServerConfig:
    """Create a stdio ServerConfig for tests."""
    return ServerConfig(
        id=server_id,
        name=name or server_id,
        transport="stdio",
        config=StdioConfig(command=command, args=args if args is not None else ["server.js"]),
    )


def make_http_config(server_id: str = "web", url: str = "http://localhost:8000/mcp") -> ServerConfig:
    """Create a streamable HTTP ServerConfig for tests."""
    return ServerConfig(id=server_id, name=server_id, transport="http", config=HTTPConfig(url=url))


class FakeConnection:
    """In-memory LiveConnection with AsyncMock protocol operations."""

    def __init__(
        self,
        server_id: str,
        *,
        close_error: Exception | None = None,
        close_delay: float = 0.0,
    ) -> None:
        self.server_id = server_id
        self.capabilities = ServerCapabilities(resources=True, prompts=True, tools=True)
        self.close_error = close_error
        self.close_delay = close_delay
        self.close_calls = 0
        self.closed = False
        self.list_resources = AsyncMock(return_value=[])
        self.list_prompts = AsyncMock(return_value=[])
        self.list_tools = AsyncMock(return_value=[])
        self.call_tool = AsyncMock(return_value={"content": []})
        self.get_prompt = AsyncMock(return_value={"messages": []})
        self.read_resource = AsyncMock(return_value=[])

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeBinding:
    """TransportBinding whose opens can be delayed, failed or customised per server.

    Attributes:
        open_calls: Server ids in the order ``open`` was called.
        opened: Every connection returned by ``open``.
        failures: Exception to raise on the next open of a server id.
        gates: Events an open waits on before completing, per server id.
        connection_kwargs: Extra FakeConnection arguments per server id.
    """

    def __init__(self) -> None:
        self.open_calls: list[str] = []
        self.opened: list[FakeConnection] = []
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.connection_kwargs: dict[str, dict[str, Any]] = {}

    async def open(self, config: ServerConfig) -> FakeConnection:
        self.open_calls.append(config.id)
        gate = self.gates.get(config.id)
        if gate is not None:
            await gate.wait()
        failure = self.failures.pop(config.id, None)
        if failure is not None:
            raise failure
        connection = FakeConnection(config.id, **self.connection_kwargs.get(config.id, {}))
        self.opened.append(connection)
        return connection

    def live(self, server_id: str | None = None) -> list[FakeConnection]:
        """Connections that were opened and not yet closed."""
        return [
            c for c in self.opened
            if not c.closed and (server_id is None or c.server_id == server_id)
        ]


@pytest.fixture
def mock_env():
    env = {
        "MCP_STUDIO_DB_PATH": "data/test.db",
        "MCP_STUDIO_LOG_LEVEL": "INFO",
        "MCP_STUDIO_CLOSE_TIMEOUT": "2.5",
    }
    with patch.dict(os.environ, env, clear=True):
        yield env


@pytest.fixture
def binding() -> FakeBinding:
    return FakeBinding()


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def coordinator(
    registry: ConnectionRegistry, binding: FakeBinding, events: EventLog
) -> LifecycleCoordinator:
    return LifecycleCoordinator(registry, binding, events, close_timeout=0.5)


@pytest.fixture
async def test_db(tmp_path: Path) -> Path:
    """Create a temporary SQLite database for tests."""
    db_path = tmp_path / "test.db"
    await init_db(db_path)
    return db_path
