"""Application configuration management."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration loaded from environment variables.

    Every field can be set through an ``MCP_STUDIO_``-prefixed variable,
    e.g. ``MCP_STUDIO_LOG_LEVEL=DEBUG``.

    Attributes:
        db_path: Path to the SQLite database holding server configurations.
        log_level: Logging level.
        client_name: Client name reported to servers during initialization.
        client_version: Client version reported to servers during initialization.
        request_timeout: Timeout in seconds for each protocol request.
        init_timeout: Timeout in seconds for the initialize handshake.
        close_timeout: Timeout in seconds for closing a connection.
    """

    db_path: Path = Field(default=Path("data/mcp_studio.db"))
    log_level: str = "INFO"
    client_name: str = "mcp-studio"
    client_version: str = "0.1.0"
    request_timeout: float = 30.0
    init_timeout: float = 30.0
    close_timeout: float = 5.0

    model_config = SettingsConfigDict(
        env_prefix="MCP_STUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("request_timeout", "init_timeout", "close_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate that timeouts are positive.

        Args:
            v: The timeout value to validate.

        Returns:
            The validated timeout.

        Raises:
            ValueError: If the timeout is zero or negative.
        """
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v


@lru_cache
def get_config() -> AppConfig:
    """Return cached application configuration."""

    return AppConfig()
