"""MCP connection core for mcp-studio.

This package manages MCP server configurations, connection lifecycles, call
routing and the event log.
"""

from mcp_studio.mcp.events import EventLog, LogEntry, LogLevel
from mcp_studio.mcp.manager import ServerManager
from mcp_studio.mcp.registry import ConnectionRegistry
from mcp_studio.mcp.servers import ConnectionState, ServerConfig, ServerStatus
from mcp_studio.mcp.transports import FastMCPBinding

__all__ = [
    "ConnectionRegistry",
    "ConnectionState",
    "EventLog",
    "FastMCPBinding",
    "LogEntry",
    "LogLevel",
    "ServerConfig",
    "ServerManager",
    "ServerStatus",
]
