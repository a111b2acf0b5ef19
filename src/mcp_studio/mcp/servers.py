"""MCP server configurations and connection status models.

Defines the transport-tagged server configuration (stdio, SSE, streamable
HTTP) and the per-server status snapshot exposed to callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TransportType = Literal["stdio", "sse", "http"]


class StdioConfig(BaseModel):
    """Launch settings for a server spoken to over a local subprocess.

    Attributes:
        type: Payload tag, always 'stdio'.
        command: Executable to launch.
        args: Ordered command-line arguments.
        env: Environment variable overrides for the subprocess.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["stdio"] = "stdio"
    command: str = Field(min_length=1)
    args: list[str] = []
    env: dict[str, str] = {}


class _NetworkConfig(BaseModel):
    """Shared fields for the URL-addressed transports."""

    model_config = ConfigDict(frozen=True)

    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Check that the endpoint URL uses http or https.

        Args:
            v: URL to validate.

        Returns:
            The URL with surrounding whitespace removed.

        Raises:
            ValueError: If the URL does not start with http:// or https://.
        """
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class SSEConfig(_NetworkConfig):
    """Endpoint of a server reached over Server-Sent Events.

    Attributes:
        type: Payload tag, always 'sse'.
        url: SSE endpoint URL.
    """

    type: Literal["sse"] = "sse"


class HTTPConfig(_NetworkConfig):
    """Endpoint of a server reached over streamable HTTP.

    Attributes:
        type: Payload tag, always 'http'.
        url: HTTP endpoint URL.
    """

    type: Literal["http"] = "http"


TransportConfig = Annotated[
    Union[StdioConfig, SSEConfig, HTTPConfig], Field(discriminator="type")
]


class ServerConfig(BaseModel):
    """Configuration for an MCP server.

    Edits produce a new instance with the same id (see ``model_copy``);
    instances themselves are immutable.

    Attributes:
        id: Stable, unique server identifier.
        name: Human-readable server name.
        description: Optional free-form description.
        transport: Transport kind used to reach the server.
        config: Transport-specific payload; its ``type`` must equal ``transport``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    transport: TransportType
    config: TransportConfig

    @model_validator(mode="after")
    def check_transport_matches_payload(self) -> ServerConfig:
        """Reject configurations whose payload tag disagrees with ``transport``.

        Returns:
            The validated configuration.

        Raises:
            ValueError: If ``config.type`` differs from ``transport``.
        """
        if self.config.type != self.transport:
            raise ValueError(
                f"transport '{self.transport}' does not match payload type '{self.config.type}'"
            )
        return self


class ConnectionState(str, Enum):
    """Connection state of a registered server."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ServerCapabilities(BaseModel):
    """Capabilities a connected server advertised during initialization.

    Attributes:
        resources: Server exposes resources.
        prompts: Server exposes prompt templates.
        tools: Server exposes tools.
    """

    model_config = ConfigDict(frozen=True)

    resources: bool = False
    prompts: bool = False
    tools: bool = False


class ServerStatus(BaseModel):
    """Read-only snapshot of one registered server.

    Attributes:
        id: Server identifier.
        config: Current configuration.
        state: Current connection state.
        error: Last error message, set only in the error state.
        capabilities: Advertised capabilities while connected.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    config: ServerConfig
    state: ConnectionState = ConnectionState.DISCONNECTED
    error: str | None = None
    capabilities: ServerCapabilities | None = None
