"""mcp-studio main entry point.

Wires together config, database, configuration store, transport binding and
server manager. This is the composition root — the only place where all
components are assembled.
"""

from __future__ import annotations

import asyncio
import logging

from mcp_studio.config import get_config
from mcp_studio.db import init_db
from mcp_studio.mcp.manager import ServerManager
from mcp_studio.mcp.servers import ConnectionState
from mcp_studio.mcp.transports import FastMCPBinding
from mcp_studio.store import SQLiteConfigStore

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure root logger with the given level.

    Args:
        log_level: Logging level string (e.g. 'INFO', 'DEBUG').
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    # basicConfig is a no-op once handlers exist, so set the level explicitly.
    logging.getLogger().setLevel(numeric_level)


async def inspect_server(manager: ServerManager, server_id: str) -> dict[str, int]:
    """Count the tools, resources and prompts of a connected server.

    Only capabilities the server advertised are queried. A failing listing is
    logged and counted as zero; the failure is already in the event log.

    Args:
        manager: Manager holding the connected server.
        server_id: Server to inspect.

    Returns:
        Mapping of capability name to number of items.
    """
    status = manager.get_server(server_id)
    capabilities = status.capabilities
    listings = {
        "tools": manager.list_tools,
        "resources": manager.list_resources,
        "prompts": manager.list_prompts,
    }
    counts: dict[str, int] = {}
    for name, list_items in listings.items():
        if capabilities is not None and not getattr(capabilities, name):
            continue
        try:
            counts[name] = len(await list_items(server_id))
        except Exception as exc:
            logger.warning("Could not list %s for %s: %s", name, server_id, exc)
            counts[name] = 0
    return counts


async def _async_main() -> None:
    """Async entry point: loads stored servers, connects and inspects them.

    Lifecycle:
    1. Load configuration from environment
    2. Set up logging
    3. Initialize SQLite database (creates tables if needed)
    4. Create the configuration store, transport binding and server manager
    5. Load stored server configurations
    6. Connect every server concurrently and log its inventory
    7. On exit: manager cleanup closes all connections
    """
    config = get_config()
    setup_logging(config.log_level)
    logger.info("Starting mcp-studio...")

    logger.info("Initializing database at %s", config.db_path)
    await init_db(config.db_path)

    store = SQLiteConfigStore(config.db_path)
    binding = FastMCPBinding(
        client_name=config.client_name,
        client_version=config.client_version,
        timeout=config.request_timeout,
        init_timeout=config.init_timeout,
        close_timeout=config.close_timeout,
    )

    async with ServerManager(binding, store, close_timeout=config.close_timeout) as manager:
        await manager.load()
        server_ids = [status.id for status in manager.servers]
        if not server_ids:
            logger.info("No servers configured in %s", config.db_path)
            return

        # Failures are recorded on each server's status and in the event log
        await asyncio.gather(
            *(manager.connect(server_id) for server_id in server_ids),
            return_exceptions=True,
        )
        for status in manager.servers:
            if status.state is not ConnectionState.CONNECTED:
                logger.warning("%s: %s (%s)", status.config.name, status.state.value, status.error)
                continue
            counts = await inspect_server(manager, status.id)
            logger.info(
                "%s: %s",
                status.config.name,
                ", ".join(f"{count} {name}" for name, count in counts.items()) or "no capabilities",
            )


def main() -> None:
    """Synchronous entry point — runs the async main loop.

    Raises:
        KeyboardInterrupt: Caught and handled for graceful shutdown.
    """
    try:
        asyncio.run(_async_main())
    except KeyboardInterrupt:
        logger.info("Shutting down mcp-studio...")


if __name__ == "__main__":
    main()
