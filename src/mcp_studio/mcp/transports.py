"""Transport bindings that open and close channels to MCP servers.

The default binding uses the fastmcp client, which speaks the wire protocol
over stdio, SSE and streamable HTTP. The connection core only depends on the
``TransportBinding`` and ``LiveConnection`` protocols so other clients can be
plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from fastmcp import Client
from fastmcp.client.transports import (
    ClientTransport,
    SSETransport,
    StdioTransport,
    StreamableHttpTransport,
)
from mcp.types import Implementation

from mcp_studio.mcp.errors import TransportError
from mcp_studio.mcp.servers import (
    HTTPConfig,
    ServerCapabilities,
    ServerConfig,
    SSEConfig,
    StdioConfig,
)

logger = logging.getLogger(__name__)


class LiveConnection(Protocol):
    """An established channel to one server.

    Attributes:
        server_id: Identifier of the server this connection belongs to.
        capabilities: Capabilities the server advertised on connect.
    """

    server_id: str

    @property
    def capabilities(self) -> ServerCapabilities: ...

    async def list_resources(self) -> list[Any]: ...

    async def list_prompts(self) -> list[Any]: ...

    async def list_tools(self) -> list[Any]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any: ...

    async def get_prompt(self, name: str, arguments: dict[str, Any]) -> Any: ...

    async def read_resource(self, uri: str) -> Any: ...

    async def close(self) -> None: ...


class TransportBinding(Protocol):
    """Opens live connections for server configurations."""

    async def open(self, config: ServerConfig) -> LiveConnection: ...


def create_transport(config: ServerConfig) -> ClientTransport:
    """Build the fastmcp transport matching a server's transport payload.

    Args:
        config: Server configuration to build the transport for.

    Returns:
        A stdio, SSE or streamable HTTP client transport.

    Raises:
        ValueError: If the payload type is not a known transport.
    """
    payload = config.config
    if isinstance(payload, StdioConfig):
        logger.debug("Creating StdioTransport for %s: %s %s", config.id, payload.command, payload.args)
        return StdioTransport(
            command=payload.command,
            args=list(payload.args),
            env=dict(payload.env) or None,
        )
    if isinstance(payload, SSEConfig):
        logger.debug("Creating SSETransport for %s: %s", config.id, payload.url)
        return SSETransport(payload.url)
    if isinstance(payload, HTTPConfig):
        logger.debug("Creating StreamableHttpTransport for %s: %s", config.id, payload.url)
        return StreamableHttpTransport(payload.url)
    raise ValueError(f"Unsupported transport for server {config.id}: {config.transport}")


class FastMCPConnection:
    """LiveConnection backed by a connected ``fastmcp.Client``.

    Attributes:
        server_id: Identifier of the server this connection belongs to.
        session_timeout: Seconds to wait for the protocol session to close.
    """

    def __init__(self, server_id: str, client: Client, *, session_timeout: float = 5.0) -> None:
        """Wrap an already-connected client.

        Args:
            server_id: Identifier of the server.
            client: A fastmcp client whose session is open.
            session_timeout: Seconds to wait for the protocol session to close.
        """
        self.server_id = server_id
        self.session_timeout = session_timeout
        self._client = client

    @property
    def capabilities(self) -> ServerCapabilities:
        """Capabilities from the server's initialize result."""
        result = self._client.initialize_result
        if result is None:
            return ServerCapabilities()
        caps = result.capabilities
        return ServerCapabilities(
            resources=caps.resources is not None,
            prompts=caps.prompts is not None,
            tools=caps.tools is not None,
        )

    async def list_resources(self) -> list[Any]:
        return await self._client.list_resources()

    async def list_prompts(self) -> list[Any]:
        return await self._client.list_prompts()

    async def list_tools(self) -> list[Any]:
        return await self._client.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        return await self._client.call_tool(name, arguments)

    async def get_prompt(self, name: str, arguments: dict[str, Any]) -> Any:
        return await self._client.get_prompt(name, arguments)

    async def read_resource(self, uri: str) -> Any:
        return await self._client.read_resource(uri)

    async def close(self) -> None:
        """Close the protocol session, then the underlying transport.

        Only the session step is bounded by ``session_timeout``. The transport
        close runs even when the session close fails, hangs or is cancelled,
        so a subprocess or socket is never left behind.

        Raises:
            TransportError: If either step failed, after both were attempted.
        """
        failures: list[str] = []
        try:
            await asyncio.wait_for(
                self._client.__aexit__(None, None, None), timeout=self.session_timeout
            )
        except asyncio.TimeoutError:
            failures.append(f"session close timed out after {self.session_timeout}s")
        except Exception as exc:
            failures.append(f"session close failed: {exc}")
        finally:
            try:
                await self._client.transport.close()
            except Exception as exc:
                failures.append(f"transport close failed: {exc}")
        if failures:
            raise TransportError(self.server_id, "; ".join(failures))


class FastMCPBinding:
    """TransportBinding that connects through the fastmcp client.

    Attributes:
        client_name: Name reported to servers during initialization.
        client_version: Version reported to servers during initialization.
        timeout: Per-request timeout in seconds.
        init_timeout: Timeout in seconds for the initialize handshake.
        close_timeout: Timeout in seconds for closing a connection's session.
    """

    def __init__(
        self,
        *,
        client_name: str = "mcp-studio",
        client_version: str = "0.1.0",
        timeout: float = 30.0,
        init_timeout: float = 30.0,
        close_timeout: float = 5.0,
    ) -> None:
        self.client_name = client_name
        self.client_version = client_version
        self.timeout = timeout
        self.init_timeout = init_timeout
        self.close_timeout = close_timeout

    async def open(self, config: ServerConfig) -> FastMCPConnection:
        """Connect to a server and complete the initialize handshake.

        Args:
            config: Configuration of the server to connect to.

        Returns:
            The live connection.

        Raises:
            TransportError: If the transport could not be created or the
                handshake failed. A half-open transport is closed first.
        """
        try:
            transport = create_transport(config)
        except ValueError as exc:
            raise TransportError(config.id, str(exc)) from exc

        client = Client(
            transport,
            timeout=self.timeout,
            init_timeout=self.init_timeout,
            client_info=Implementation(name=self.client_name, version=self.client_version),
        )
        try:
            await client.__aenter__()
        except Exception as exc:
            try:
                await transport.close()
            except Exception:
                logger.warning("Error closing transport for %s after failed connect", config.id, exc_info=True)
            raise TransportError(config.id, str(exc) or type(exc).__name__) from exc

        logger.debug("Opened %s connection to %s", config.transport, config.id)
        return FastMCPConnection(config.id, client, session_timeout=self.close_timeout)
