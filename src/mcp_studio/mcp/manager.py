"""Server manager: the surface a presentation layer drives.

Wires the registry, lifecycle coordinator, call router and event log together
around an injected transport binding and configuration store. There is no
module-level instance; the composition root constructs one and tears it down
with ``cleanup()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mcp_studio.mcp.errors import ConfigPersistenceError, DuplicateServer
from mcp_studio.mcp.events import SYSTEM_SERVER_ID, EventLog, LogLevel
from mcp_studio.mcp.lifecycle import LifecycleCoordinator
from mcp_studio.mcp.registry import ConnectionRegistry
from mcp_studio.mcp.router import CallRouter
from mcp_studio.mcp.servers import ServerConfig, ServerStatus
from mcp_studio.mcp.transports import TransportBinding
from mcp_studio.store import ConfigStore

logger = logging.getLogger(__name__)


class ServerManager:
    """Registers, connects and exercises multiple MCP servers.

    Configuration changes are saved to the store after every add, update and
    remove. Store failures are logged and never fail the triggering action;
    in-memory state stays authoritative for the session.

    Attributes:
        registry: Configured servers and their live connections.
        events: Event log of lifecycle and call events.
        lifecycle: Connect/disconnect state machine.
        router: Routes protocol calls to live connections.
        store: Optional configuration store.
    """

    def __init__(
        self,
        binding: TransportBinding,
        store: ConfigStore | None = None,
        *,
        events: EventLog | None = None,
        close_timeout: float = 5.0,
    ) -> None:
        """Initialize the manager.

        Args:
            binding: Transport binding used to open connections.
            store: Configuration store. None disables persistence.
            events: Event log to append to. A new one is created when omitted.
            close_timeout: Seconds to wait for a connection to close.
        """
        self.registry = ConnectionRegistry()
        self.events = events if events is not None else EventLog()
        self.lifecycle = LifecycleCoordinator(
            self.registry, binding, self.events, close_timeout=close_timeout
        )
        self.router = CallRouter(self.registry, self.events)
        self.store = store
        self._persist_lock = asyncio.Lock()

    @property
    def servers(self) -> list[ServerStatus]:
        """Status snapshots of all servers in registration order."""
        return self.registry.statuses()

    @property
    def logs(self) -> EventLog:
        """The event log."""
        return self.events

    def get_server(self, server_id: str) -> ServerStatus:
        """Return the status snapshot of one server.

        Raises:
            ServerNotFound: If the server is not registered.
        """
        return self.registry.status(server_id)

    async def load(self) -> int:
        """Register the configurations held by the store.

        A failing store leaves the registry empty and logs an error; startup
        continues either way.

        Returns:
            Number of configurations registered.
        """
        if self.store is None:
            return 0
        try:
            configs = await self.store.load_all()
        except Exception as exc:
            self.events.append(
                SYSTEM_SERVER_ID,
                LogLevel.ERROR,
                "Failed to load server configurations from storage",
                data={"error": type(exc).__name__, "message": str(exc)},
            )
            return 0

        loaded = 0
        for config in configs:
            try:
                self.registry.register(config)
            except DuplicateServer:
                self.events.append(
                    SYSTEM_SERVER_ID,
                    LogLevel.WARNING,
                    f"Skipping duplicate stored configuration: {config.id}",
                )
                continue
            loaded += 1
        if loaded:
            self.events.append(
                SYSTEM_SERVER_ID,
                LogLevel.INFO,
                f"Loaded {loaded} server configuration(s) from storage",
            )
        return loaded

    async def _persist(self) -> None:
        if self.store is None:
            return
        # One save at a time; the snapshot is taken under the lock
        async with self._persist_lock:
            try:
                await self.store.save_all(self.registry.configs())
            except Exception as exc:
                error = ConfigPersistenceError(f"Failed to save server configurations: {exc}")
                self.events.append(
                    SYSTEM_SERVER_ID,
                    LogLevel.ERROR,
                    str(error),
                    data={"error": type(exc).__name__, "message": str(exc)},
                )

    async def add_server(self, config: ServerConfig) -> ServerStatus:
        """Register a new server in the disconnected state.

        Raises:
            DuplicateServer: If the id is already registered.
        """
        try:
            self.registry.register(config)
        except DuplicateServer as exc:
            self.events.append(config.id, LogLevel.WARNING, str(exc), data={"error": type(exc).__name__})
            raise
        self.events.append(config.id, LogLevel.DEBUG, f"Server configuration added: {config.name}")
        await self._persist()
        return self.registry.status(config.id)

    async def update_server(self, config: ServerConfig) -> ServerStatus:
        """Replace a server's configuration.

        Never reconnects: to apply the new settings to a live connection,
        call ``connect(server_id, reconnect=True)``.

        Raises:
            ServerNotFound: If the server is not registered.
        """
        self.lifecycle.update_config(config.id, config)
        self.events.append(config.id, LogLevel.DEBUG, f"Server configuration updated: {config.name}")
        await self._persist()
        return self.registry.status(config.id)

    async def remove_server(self, server_id: str) -> ServerConfig:
        """Close any live connection and remove the server.

        Raises:
            ServerNotFound: If the server is not registered.
            AlreadyInProgress: If a lifecycle operation is running.
        """
        config = await self.lifecycle.remove(server_id)
        self.events.append(server_id, LogLevel.DEBUG, f"Server removed: {config.name}")
        await self._persist()
        return config

    async def connect(self, server_id: str, *, reconnect: bool = False) -> ServerStatus:
        """Connect to a server. See ``LifecycleCoordinator.connect``."""
        return await self.lifecycle.connect(server_id, reconnect=reconnect)

    async def disconnect(self, server_id: str) -> ServerStatus:
        """Disconnect from a server. See ``LifecycleCoordinator.disconnect``."""
        return await self.lifecycle.disconnect(server_id)

    async def list_resources(self, server_id: str) -> list[Any]:
        return await self.router.list_resources(server_id)

    async def list_prompts(self, server_id: str) -> list[Any]:
        return await self.router.list_prompts(server_id)

    async def list_tools(self, server_id: str) -> list[Any]:
        return await self.router.list_tools(server_id)

    async def call_tool(
        self, server_id: str, name: str, arguments: dict[str, Any] | None = None
    ) -> Any:
        return await self.router.call_tool(server_id, name, arguments)

    async def get_prompt(
        self, server_id: str, name: str, arguments: dict[str, Any] | None = None
    ) -> Any:
        return await self.router.get_prompt(server_id, name, arguments)

    async def read_resource(self, server_id: str, uri: str) -> Any:
        return await self.router.read_resource(server_id, uri)

    async def cleanup(self) -> None:
        """Disconnect all servers; failures are logged, not raised."""
        await self.lifecycle.cleanup()

    async def __aenter__(self) -> ServerManager:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.cleanup()
