"""MCP server registry.

Owns the configured servers, their connection state and at most one live
connection per server, plus the per-server token that serializes lifecycle
operations.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TypeVar

from mcp_studio.mcp.errors import AlreadyInProgress, DuplicateServer, ServerBusy, ServerNotFound
from mcp_studio.mcp.servers import ConnectionState, ServerCapabilities, ServerConfig, ServerStatus
from mcp_studio.mcp.transports import LiveConnection

T = TypeVar("T")


@dataclass
class _Entry:
    """Mutable registry record for one server."""

    config: ServerConfig
    state: ConnectionState = ConnectionState.DISCONNECTED
    error: str | None = None
    connection: LiveConnection | None = None
    capabilities: ServerCapabilities | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ConnectionRegistry:
    """Registry for MCP servers and their live connections.

    Lookups and mutators are synchronous. Only ``exclusive`` and
    ``with_exclusive_access`` are coroutines, and they never wait for a held
    token: a second lifecycle operation on a busy server is rejected.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._entries: dict[str, _Entry] = {}

    def _entry(self, server_id: str) -> _Entry:
        try:
            return self._entries[server_id]
        except KeyError:
            raise ServerNotFound(server_id) from None

    def register(self, config: ServerConfig) -> None:
        """Register a server configuration in the disconnected state.

        Args:
            config: Server configuration to register.

        Raises:
            DuplicateServer: If the id is already registered.
        """
        if config.id in self._entries:
            raise DuplicateServer(config.id)
        self._entries[config.id] = _Entry(config=config)

    def unregister(self, server_id: str) -> ServerConfig:
        """Remove a server configuration.

        Args:
            server_id: Server to remove.

        Returns:
            The removed configuration.

        Raises:
            ServerNotFound: If the id is not registered.
            ServerBusy: If the server still has a live connection.
        """
        entry = self._entry(server_id)
        if entry.connection is not None:
            raise ServerBusy(server_id)
        del self._entries[server_id]
        return entry.config

    def update(self, config: ServerConfig) -> ServerConfig:
        """Replace the stored configuration; connection state is untouched.

        Args:
            config: New configuration, keyed by its id.

        Returns:
            The previous configuration.

        Raises:
            ServerNotFound: If the id is not registered.
        """
        entry = self._entry(config.id)
        previous = entry.config
        entry.config = config
        return previous

    def get(self, server_id: str) -> LiveConnection | None:
        """Return the live connection for a server, if any.

        Args:
            server_id: Server to look up.

        Returns:
            The live connection, or None when the server is unknown or not connected.
        """
        entry = self._entries.get(server_id)
        return entry.connection if entry is not None else None

    def config(self, server_id: str) -> ServerConfig:
        """Return the stored configuration of a server."""
        return self._entry(server_id).config

    def state(self, server_id: str) -> ConnectionState:
        """Return the connection state of a server."""
        return self._entry(server_id).state

    def status(self, server_id: str) -> ServerStatus:
        """Return a status snapshot of a server.

        Raises:
            ServerNotFound: If the id is not registered.
        """
        entry = self._entry(server_id)
        return ServerStatus(
            id=server_id,
            config=entry.config,
            state=entry.state,
            error=entry.error,
            capabilities=entry.capabilities,
        )

    def statuses(self) -> list[ServerStatus]:
        """Return status snapshots for all servers in registration order."""
        return [self.status(server_id) for server_id in self._entries]

    def configs(self) -> list[ServerConfig]:
        """Return all configurations in registration order."""
        return [entry.config for entry in self._entries.values()]

    def ids(self) -> list[str]:
        """Return all registered server ids in registration order."""
        return list(self._entries)

    def is_busy(self, server_id: str) -> bool:
        """Whether a lifecycle operation currently holds the server's token."""
        return self._entry(server_id).lock.locked()

    def set_state(
        self, server_id: str, state: ConnectionState, error: str | None = None
    ) -> None:
        """Record a state transition.

        The error message is kept only for the error state.

        Args:
            server_id: Server whose state changes.
            state: New connection state.
            error: Failure message, used when ``state`` is ``ERROR``.
        """
        entry = self._entry(server_id)
        entry.state = state
        entry.error = error if state is ConnectionState.ERROR else None

    def attach(
        self,
        server_id: str,
        connection: LiveConnection,
        capabilities: ServerCapabilities | None = None,
    ) -> None:
        """Store the live connection of a server.

        Args:
            server_id: Server the connection belongs to.
            connection: Newly opened connection.
            capabilities: Capabilities advertised by the server.

        Raises:
            ServerBusy: If a connection is already stored for the server.
        """
        entry = self._entry(server_id)
        if entry.connection is not None:
            raise ServerBusy(server_id)
        entry.connection = connection
        entry.capabilities = capabilities

    def detach(self, server_id: str) -> LiveConnection | None:
        """Remove and return the live connection of a server, if any."""
        entry = self._entry(server_id)
        connection, entry.connection = entry.connection, None
        entry.capabilities = None
        return connection

    @asynccontextmanager
    async def exclusive(self, server_id: str) -> AsyncIterator[None]:
        """Hold the server's lifecycle token for the duration of the block.

        Args:
            server_id: Server to lock.

        Raises:
            ServerNotFound: If the id is not registered.
            AlreadyInProgress: If another operation holds the token.
        """
        entry = self._entry(server_id)
        if entry.lock.locked():
            raise AlreadyInProgress(server_id)
        await entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()

    async def wait_idle(self, server_id: str) -> None:
        """Wait until no lifecycle operation holds the server's token.

        Raises:
            ServerNotFound: If the id is not registered.
        """
        async with self._entry(server_id).lock:
            pass

    async def with_exclusive_access(
        self, server_id: str, fn: Callable[[], Awaitable[T]]
    ) -> T:
        """Run ``fn`` while holding the server's lifecycle token.

        The token is released on every exit path, including failure.

        Args:
            server_id: Server to lock.
            fn: Coroutine function to run.

        Returns:
            Whatever ``fn`` returns.
        """
        async with self.exclusive(server_id):
            return await fn()

    def __contains__(self, server_id: object) -> bool:
        return server_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
