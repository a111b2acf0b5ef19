"""Routes protocol calls to the live connection of a server.

Failures are re-raised untranslated and also written to the event log, so the
caller sees them synchronously and the log stream sees them too.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from mcp_studio.mcp.errors import ServerNotConnected
from mcp_studio.mcp.events import EventLog, LogLevel
from mcp_studio.mcp.registry import ConnectionRegistry
from mcp_studio.mcp.transports import LiveConnection

T = TypeVar("T")


class CallRouter:
    """Forwards list/call/get/read operations to connected servers.

    Attributes:
        registry: Registry used to resolve live connections.
        events: Event log receiving call entries.
    """

    def __init__(self, registry: ConnectionRegistry, events: EventLog) -> None:
        self.registry = registry
        self.events = events

    def _resolve(self, server_id: str) -> LiveConnection:
        """Return the live connection or raise ServerNotConnected."""
        connection = self.registry.get(server_id)
        if connection is None:
            exc = ServerNotConnected(server_id)
            self.events.append(server_id, LogLevel.WARNING, str(exc), data={"error": type(exc).__name__})
            raise exc
        return connection

    async def _invoke(
        self,
        server_id: str,
        connection: LiveConnection,
        action: str,
        call: Callable[[LiveConnection], Awaitable[T]],
    ) -> T:
        try:
            return await call(connection)
        except Exception as exc:
            self.events.append(
                server_id,
                LogLevel.ERROR,
                f"Failed to {action}: {exc}",
                data={"error": type(exc).__name__, "message": str(exc)},
            )
            raise

    async def list_resources(self, server_id: str) -> list[Any]:
        """List the resources a server exposes.

        Raises:
            ServerNotConnected: If the server has no live connection.
        """
        connection = self._resolve(server_id)
        resources = await self._invoke(
            server_id, connection, "fetch resources", lambda c: c.list_resources()
        )
        self.events.append(server_id, LogLevel.DEBUG, f"Fetched {len(resources)} resource(s)")
        return resources

    async def list_prompts(self, server_id: str) -> list[Any]:
        """List the prompt templates a server exposes.

        Raises:
            ServerNotConnected: If the server has no live connection.
        """
        connection = self._resolve(server_id)
        prompts = await self._invoke(
            server_id, connection, "fetch prompts", lambda c: c.list_prompts()
        )
        self.events.append(server_id, LogLevel.DEBUG, f"Fetched {len(prompts)} prompt(s)")
        return prompts

    async def list_tools(self, server_id: str) -> list[Any]:
        """List the tools a server exposes.

        Raises:
            ServerNotConnected: If the server has no live connection.
        """
        connection = self._resolve(server_id)
        tools = await self._invoke(server_id, connection, "fetch tools", lambda c: c.list_tools())
        self.events.append(server_id, LogLevel.DEBUG, f"Fetched {len(tools)} tool(s)")
        return tools

    async def call_tool(
        self, server_id: str, name: str, arguments: dict[str, Any] | None = None
    ) -> Any:
        """Invoke a tool on a server.

        The outbound arguments are logged before the call so failed calls can
        be replayed from the log.

        Args:
            server_id: Server hosting the tool.
            name: Tool name.
            arguments: Tool arguments.

        Returns:
            The tool result exactly as returned by the connection.

        Raises:
            ServerNotConnected: If the server has no live connection.
        """
        arguments = arguments or {}
        connection = self._resolve(server_id)
        self.events.append(server_id, LogLevel.INFO, f"Calling tool: {name}", data=arguments)
        result = await self._invoke(
            server_id, connection, f"call tool {name}", lambda c: c.call_tool(name, arguments)
        )
        self.events.append(server_id, LogLevel.INFO, f"Tool {name} executed successfully", data=result)
        return result

    async def get_prompt(
        self, server_id: str, name: str, arguments: dict[str, Any] | None = None
    ) -> Any:
        """Render a prompt template on a server.

        Args:
            server_id: Server hosting the prompt.
            name: Prompt name.
            arguments: Template arguments.

        Returns:
            The rendered prompt exactly as returned by the connection.

        Raises:
            ServerNotConnected: If the server has no live connection.
        """
        arguments = arguments or {}
        connection = self._resolve(server_id)
        self.events.append(server_id, LogLevel.INFO, f"Getting prompt: {name}", data=arguments)
        result = await self._invoke(
            server_id, connection, f"get prompt {name}", lambda c: c.get_prompt(name, arguments)
        )
        self.events.append(server_id, LogLevel.INFO, f"Prompt {name} retrieved successfully", data=result)
        return result

    async def read_resource(self, server_id: str, uri: str) -> Any:
        """Read a resource from a server.

        Args:
            server_id: Server hosting the resource.
            uri: Resource URI.

        Returns:
            The resource contents exactly as returned by the connection.

        Raises:
            ServerNotConnected: If the server has no live connection.
        """
        connection = self._resolve(server_id)
        self.events.append(server_id, LogLevel.DEBUG, f"Reading resource: {uri}")
        result = await self._invoke(
            server_id, connection, f"read resource {uri}", lambda c: c.read_resource(uri)
        )
        self.events.append(server_id, LogLevel.INFO, f"Resource {uri} read successfully")
        return result
