"""Exception hierarchy for the MCP connection core.

Precondition errors are raised before any transport I/O happens. Transport
errors wrap failures reported by a transport binding.
"""

from __future__ import annotations


class MCPStudioError(Exception):
    """Base exception for all mcp-studio errors."""


class PreconditionError(MCPStudioError):
    """A local precondition was violated; no I/O was attempted.

    Attributes:
        server_id: Identifier of the server the operation targeted.
    """

    def __init__(self, server_id: str, message: str) -> None:
        self.server_id = server_id
        super().__init__(message)


class DuplicateServer(PreconditionError):
    """A configuration with this id is already registered."""

    def __init__(self, server_id: str) -> None:
        super().__init__(server_id, f"Server '{server_id}' is already registered")


class ServerNotFound(PreconditionError):
    """No configuration is registered under this id."""

    def __init__(self, server_id: str) -> None:
        super().__init__(server_id, f"Server '{server_id}' not found")


class ServerBusy(PreconditionError):
    """The server still holds a live connection."""

    def __init__(self, server_id: str) -> None:
        super().__init__(server_id, f"Server '{server_id}' still has a live connection")


class AlreadyInProgress(PreconditionError):
    """Another lifecycle operation is running for this server."""

    def __init__(self, server_id: str) -> None:
        super().__init__(
            server_id, f"A lifecycle operation is already in progress for server '{server_id}'"
        )


class AlreadyConnected(PreconditionError):
    """The server is connected and reconnect was not requested."""

    def __init__(self, server_id: str) -> None:
        super().__init__(server_id, f"Server '{server_id}' is already connected")


class ServerNotConnected(PreconditionError):
    """A call was routed to a server without a live connection."""

    def __init__(self, server_id: str) -> None:
        super().__init__(server_id, f"Server '{server_id}' is not connected")


class TransportError(MCPStudioError):
    """Opening, closing or calling through a transport failed.

    Attributes:
        server_id: Identifier of the server the transport belongs to.
        reason: The underlying failure message.
    """

    def __init__(self, server_id: str, reason: str) -> None:
        self.server_id = server_id
        self.reason = reason
        super().__init__(f"Transport error for server '{server_id}': {reason}")


class ConfigPersistenceError(MCPStudioError):
    """Loading or saving server configurations failed."""
