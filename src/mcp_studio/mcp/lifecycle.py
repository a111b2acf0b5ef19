"""Per-server connect/disconnect state machine.

Every transition runs under the registry's exclusive token for the server, so
lifecycle operations on one server are totally ordered while different
servers proceed concurrently. Reconnects are always caller-triggered; there is
no automatic retry.
"""

from __future__ import annotations

import asyncio
import logging

from mcp_studio.mcp.errors import (
    AlreadyConnected,
    PreconditionError,
    ServerNotFound,
    TransportError,
)
from mcp_studio.mcp.events import SYSTEM_SERVER_ID, EventLog, LogLevel
from mcp_studio.mcp.registry import ConnectionRegistry
from mcp_studio.mcp.servers import ConnectionState, ServerConfig, ServerStatus
from mcp_studio.mcp.transports import TransportBinding

logger = logging.getLogger(__name__)


class LifecycleCoordinator:
    """Drives servers through disconnected, connecting, connected and error.

    Attributes:
        registry: Registry holding configurations and live connections.
        binding: Transport binding used to open connections.
        events: Event log receiving lifecycle entries.
        close_timeout: Seconds to wait for a connection to close.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        binding: TransportBinding,
        events: EventLog,
        *,
        close_timeout: float = 5.0,
    ) -> None:
        self.registry = registry
        self.binding = binding
        self.events = events
        self.close_timeout = close_timeout

    def _reject(self, server_id: str, exc: PreconditionError) -> None:
        # Unknown ids have no log of their own
        if isinstance(exc, ServerNotFound):
            server_id = SYSTEM_SERVER_ID
        self.events.append(server_id, LogLevel.WARNING, str(exc), data={"error": type(exc).__name__})

    async def connect(self, server_id: str, *, reconnect: bool = False) -> ServerStatus:
        """Open a connection to a registered server.

        A stale connection left from an earlier attempt is closed before the
        new one is opened. From the error state a plain connect is allowed.

        Args:
            server_id: Server to connect.
            reconnect: Close and reopen if the server is already connected.

        Returns:
            Status snapshot after the transition to connected.

        Raises:
            ServerNotFound: If the server is not registered.
            AlreadyInProgress: If another lifecycle operation is running.
            AlreadyConnected: If connected and ``reconnect`` is False.
            TransportError: If the transport failed to open; state becomes error.
        """
        try:
            async with self.registry.exclusive(server_id):
                return await self._connect_locked(server_id, reconnect)
        except PreconditionError as exc:
            self._reject(server_id, exc)
            raise

    async def _connect_locked(self, server_id: str, reconnect: bool) -> ServerStatus:
        if self.registry.state(server_id) is ConnectionState.CONNECTED and not reconnect:
            raise AlreadyConnected(server_id)

        config = self.registry.config(server_id)
        if self.registry.get(server_id) is not None:
            await self._close_connection(server_id)

        self.registry.set_state(server_id, ConnectionState.CONNECTING)
        self.events.append(server_id, LogLevel.DEBUG, f"Connecting to server: {config.name}")

        try:
            connection = await self.binding.open(config)
        except asyncio.CancelledError:
            self.registry.set_state(server_id, ConnectionState.ERROR, "Connect was cancelled")
            self.events.append(server_id, LogLevel.ERROR, "Failed to connect: connect was cancelled")
            raise
        except Exception as exc:
            if isinstance(exc, TransportError):
                error = exc
            else:
                error = TransportError(server_id, str(exc) or type(exc).__name__)
            self.registry.set_state(server_id, ConnectionState.ERROR, error.reason)
            self.events.append(
                server_id,
                LogLevel.ERROR,
                f"Failed to connect: {error.reason}",
                data={"error": type(exc).__name__, "message": str(exc)},
            )
            if error is exc:
                raise
            raise error from exc

        capabilities = connection.capabilities
        self.registry.attach(server_id, connection, capabilities)
        self.registry.set_state(server_id, ConnectionState.CONNECTED)
        self.events.append(
            server_id,
            LogLevel.INFO,
            f"Connected to server: {config.name}",
            data={"transport": config.transport, "capabilities": capabilities.model_dump()},
        )
        return self.registry.status(server_id)

    async def disconnect(self, server_id: str) -> ServerStatus:
        """Close a server's connection and mark it disconnected.

        Disconnecting an already disconnected server is a no-op. Close
        failures are logged and never block the transition.

        Args:
            server_id: Server to disconnect.

        Returns:
            Status snapshot after the transition.

        Raises:
            ServerNotFound: If the server is not registered.
            AlreadyInProgress: If another lifecycle operation is running.
        """
        try:
            async with self.registry.exclusive(server_id):
                return await self._disconnect_locked(server_id)
        except PreconditionError as exc:
            self._reject(server_id, exc)
            raise

    async def _disconnect_locked(self, server_id: str) -> ServerStatus:
        if (
            self.registry.state(server_id) is ConnectionState.DISCONNECTED
            and self.registry.get(server_id) is None
        ):
            return self.registry.status(server_id)

        config = self.registry.config(server_id)
        await self._close_connection(server_id)
        self.registry.set_state(server_id, ConnectionState.DISCONNECTED)
        self.events.append(server_id, LogLevel.INFO, f"Disconnected from server: {config.name}")
        return self.registry.status(server_id)

    async def _close_connection(self, server_id: str) -> None:
        """Detach and close the server's connection, logging any failure."""
        connection = self.registry.detach(server_id)
        if connection is None:
            return
        try:
            await asyncio.wait_for(connection.close(), timeout=self.close_timeout)
        except asyncio.TimeoutError:
            self.events.append(
                server_id,
                LogLevel.WARNING,
                f"Timed out after {self.close_timeout}s closing connection",
            )
        except Exception as exc:
            self.events.append(
                server_id,
                LogLevel.WARNING,
                f"Error while closing connection: {exc}",
                data={"error": type(exc).__name__, "message": str(exc)},
            )

    def update_config(self, server_id: str, config: ServerConfig) -> ServerConfig:
        """Replace a server's configuration without touching its connection.

        A live connection keeps the settings it was opened with until the
        caller disconnects and connects again.

        Args:
            server_id: Server to update.
            config: New configuration; its id must equal ``server_id``.

        Returns:
            The previous configuration.

        Raises:
            ValueError: If the configuration id differs from ``server_id``.
            ServerNotFound: If the server is not registered.
        """
        if config.id != server_id:
            raise ValueError(f"Configuration id '{config.id}' does not match server '{server_id}'")
        try:
            return self.registry.update(config)
        except PreconditionError as exc:
            self._reject(server_id, exc)
            raise

    async def remove(self, server_id: str) -> ServerConfig:
        """Close any live connection, then unregister the server.

        Args:
            server_id: Server to remove.

        Returns:
            The removed configuration.

        Raises:
            ServerNotFound: If the server is not registered.
            AlreadyInProgress: If another lifecycle operation is running.
        """
        try:
            async with self.registry.exclusive(server_id):
                if self.registry.get(server_id) is not None:
                    await self._disconnect_locked(server_id)
                return self.registry.unregister(server_id)
        except PreconditionError as exc:
            self._reject(server_id, exc)
            raise

    async def _shutdown(self, server_id: str) -> None:
        """Disconnect one server, first waiting out a running lifecycle operation.

        The wait is bounded by the close timeout. A server still busy after it
        fails with ``AlreadyInProgress``.
        """
        if server_id not in self.registry:
            return
        if self.registry.is_busy(server_id):
            try:
                await asyncio.wait_for(self.registry.wait_idle(server_id), timeout=self.close_timeout)
            except asyncio.TimeoutError:
                logger.debug("Server %s still busy after %ss", server_id, self.close_timeout)
            if server_id not in self.registry:
                return
        async with self.registry.exclusive(server_id):
            await self._disconnect_locked(server_id)

    async def cleanup(self) -> None:
        """Disconnect every registered server concurrently.

        An operation still running on a server, such as a pending connect, is
        given up to the close timeout to finish so its connection is closed
        too. Individual failures are logged once, never raised, so one stuck
        server cannot keep the others from shutting down.
        """
        server_ids = self.registry.ids()
        if not server_ids:
            return
        logger.info("Disconnecting %d server(s)", len(server_ids))
        results = await asyncio.gather(
            *(self._shutdown(server_id) for server_id in server_ids),
            return_exceptions=True,
        )
        for server_id, result in zip(server_ids, results):
            if isinstance(result, BaseException):
                self.events.append(
                    server_id,
                    LogLevel.ERROR,
                    f"Failed to disconnect during cleanup: {result}",
                    data={"error": type(result).__name__, "message": str(result)},
                )
