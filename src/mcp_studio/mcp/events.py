"""Append-only event log for lifecycle and call events.

Every entry is also mirrored to the stdlib logger ``mcp_studio.mcp.events`` so
that console output and the queryable log tell the same story.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

SYSTEM_SERVER_ID = "system"


class LogLevel(str, Enum):
    """Severity of a log entry, ordered from least to most severe."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Position of this level in severity order."""
        return _LEVEL_RANK[self]


_LEVEL_RANK: dict[LogLevel, int] = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
}

_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

Subscriber = Callable[["LogEntry"], None]


class LogEntry(BaseModel):
    """A single immutable event record.

    Attributes:
        timestamp: UTC time the entry was appended.
        server_id: Server the event concerns, or ``SYSTEM_SERVER_ID``.
        level: Severity of the event.
        message: Human-readable description.
        data: Optional structured payload (call arguments, results, errors).
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    server_id: str
    level: LogLevel
    message: str
    data: Any = None


class LogQuery:
    """Lazy, restartable view over matching log entries in append order.

    Each iteration walks the entries that existed when that iteration began,
    so iterating again later also yields entries appended in the meantime.
    """

    def __init__(
        self,
        entries: list[LogEntry],
        *,
        server_id: str | None = None,
        min_level: LogLevel | None = None,
    ) -> None:
        self._entries = entries
        self.server_id = server_id
        self.min_level = min_level

    def _matches(self, entry: LogEntry) -> bool:
        if self.server_id is not None and entry.server_id != self.server_id:
            return False
        if self.min_level is not None and entry.level.rank < self.min_level.rank:
            return False
        return True

    def __iter__(self) -> Iterator[LogEntry]:
        end = len(self._entries)
        for index in range(end):
            entry = self._entries[index]
            if self._matches(entry):
                yield entry


class EventLog:
    """Append-only, time-ordered record of lifecycle and call events.

    Entries are never removed. Timestamps are non-decreasing in append order
    even if the wall clock steps backwards.
    """

    def __init__(self) -> None:
        """Initialize an empty event log."""
        self._entries: list[LogEntry] = []
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()
        self._last_timestamp: datetime | None = None

    def append(
        self,
        server_id: str,
        level: LogLevel | str,
        message: str,
        data: Any = None,
    ) -> LogEntry:
        """Timestamp a new entry and add it to the tail of the log.

        Args:
            server_id: Server the event concerns, or ``SYSTEM_SERVER_ID``.
            level: Severity of the event.
            message: Human-readable description.
            data: Optional structured payload kept for diagnostics.

        Returns:
            The appended entry.
        """
        level = LogLevel(level)
        with self._lock:
            timestamp = datetime.now(tz=timezone.utc)
            if self._last_timestamp is not None and timestamp < self._last_timestamp:
                timestamp = self._last_timestamp
            self._last_timestamp = timestamp
            entry = LogEntry(
                timestamp=timestamp,
                server_id=server_id,
                level=level,
                message=message,
                data=data,
            )
            self._entries.append(entry)
            subscribers = list(self._subscribers)

        logger.log(_STDLIB_LEVELS[level], "[%s] %s", server_id, message)
        for callback in subscribers:
            try:
                callback(entry)
            except Exception:
                logger.exception("Event log subscriber %r failed", callback)
        return entry

    def query(
        self,
        server_id: str | None = None,
        min_level: LogLevel | str | None = None,
    ) -> LogQuery:
        """Select entries by server and minimum severity.

        Args:
            server_id: Only return entries for this server. None means all.
            min_level: Only return entries at or above this severity.

        Returns:
            A restartable iterable of matching entries in append order.
        """
        level = LogLevel(min_level) if min_level is not None else None
        return LogQuery(self._entries, server_id=server_id, min_level=level)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked with every newly appended entry.

        Args:
            callback: Called synchronously after each append.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.query())
