"""SQLite implementation of the raw record repository."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from ohmydashboard.db.query import QueryError, quote_literal
from ohmydashboard.normalizers import (
    message_from_row,
    part_from_row,
    project_from_row,
    session_from_row,
)
from ohmydashboard.observability import record_read
from ohmydashboard.records import RawMessage, RawPart, RawProject, RawSession

logger = logging.getLogger("ohmydashboard.db")

T = TypeVar("T")

# Foreign-key spellings used by successive OpenCode schemas.
SESSION_FK_COLUMNS = ("sessionID", "session_id", "sessionId")
MESSAGE_FK_COLUMNS = ("messageID", "message_id", "messageId")


class SqliteRepository:
    """Reads the ``project``, ``session``, ``message`` and ``part`` tables.

    ``query`` is any object with an async ``query(sql) -> list[dict]`` method
    raising ``QueryError``; failures end here as empty results.
    """

    kind = "sqlite"

    def __init__(self, query: Any):
        self.query = query
        self._columns: dict[str, list[str]] = {}

    async def _table_columns(self, table: str) -> list[str]:
        cached = self._columns.get(table)
        if cached is not None:
            return cached
        rows = await self.query.query(f"PRAGMA table_info({table})")
        columns = [str(row.get("name")) for row in rows if row.get("name")]
        if columns:
            self._columns[table] = columns
        return columns

    async def _select(self, table: str, fk_columns: tuple[str, ...] = (), value: Optional[str] = None) -> list[dict[str, Any]]:
        columns = await self._table_columns(table)
        if not columns:
            logger.debug(f"Table {table} not found, treating as empty")
            return []

        sql = f"SELECT * FROM {table}"
        if value is None:
            return await self.query.query(sql)

        known = [c for c in fk_columns if c in columns]
        if not known:
            logger.warning(f"Table {table} has none of the columns {', '.join(fk_columns)}, treating as empty")
            return []

        last_error: Optional[QueryError] = None
        for column in known:
            try:
                return await self.query.query(f"{sql} WHERE {column} = {quote_literal(value)}")
            except QueryError as e:
                last_error = e
        raise last_error

    async def _load(
        self,
        record: str,
        table: str,
        convert: Callable[[dict[str, Any]], T],
        fk_columns: tuple[str, ...] = (),
        value: Optional[str] = None,
    ) -> list[T]:
        started = time.perf_counter()
        try:
            rows = await self._select(table, fk_columns, value)
        except QueryError as e:
            logger.warning(f"Failed to read {table} rows: {e}")
            record_read(record, self.kind, "error", (time.perf_counter() - started) * 1000)
            return []

        records = []
        for row in rows:
            try:
                records.append(convert(row))
            except Exception as e:
                logger.debug(f"Skipping malformed {record} row: {e}")
        record_read(record, self.kind, "ok", (time.perf_counter() - started) * 1000)
        return records

    async def list_projects(self) -> list[RawProject]:
        return await self._load("project", "project", project_from_row)

    async def list_sessions(self) -> list[RawSession]:
        return await self._load("session", "session", session_from_row)

    async def list_messages(self, session_id: str | None = None) -> list[RawMessage]:
        if session_id:
            return await self._load("message", "message", message_from_row, SESSION_FK_COLUMNS, session_id)
        return await self._load("message", "message", message_from_row)

    async def list_parts(self, message_id: str) -> list[RawPart]:
        return await self._load("part", "part", part_from_row, MESSAGE_FK_COLUMNS, message_id)
