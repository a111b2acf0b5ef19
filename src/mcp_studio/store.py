"""Persistence of server configurations across restarts.

Provides the ConfigStore protocol the server manager depends on, and
SQLiteConfigStore, which keeps configurations in the database via db.py.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from mcp_studio.db import load_server_configs, save_server_configs
from mcp_studio.mcp.servers import ServerConfig

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Loads and saves the full ordered set of server configurations."""

    async def load_all(self) -> list[ServerConfig]: ...

    async def save_all(self, configs: Sequence[ServerConfig]) -> None: ...


class SQLiteConfigStore:
    """Stores server configurations in the SQLite database.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store with the database path.

        Args:
            db_path: Path to the SQLite database file. The schema must already
                exist (see ``init_db``).
        """
        self.db_path = Path(db_path)

    async def load_all(self) -> list[ServerConfig]:
        """Load every stored configuration in saved order.

        Returns:
            The stored configurations.

        Raises:
            pydantic.ValidationError: If a stored row is not a valid configuration.
        """
        rows = await load_server_configs(self.db_path)
        return [ServerConfig.model_validate(row) for row in rows]

    async def save_all(self, configs: Sequence[ServerConfig]) -> None:
        """Replace the stored configurations with ``configs``.

        Args:
            configs: Configurations to store, in display order.
        """
        # mode="json" keeps the payload tag and nested models as plain JSON
        await save_server_configs(self.db_path, [c.model_dump(mode="json") for c in configs])
        logger.debug("Saved %d server configuration(s)", len(configs))
