"""SQL query strategies for the OpenCode database.

``DriverQuery`` runs statements in-process through aiosqlite, ``CliQuery``
shells out to the ``sqlite3`` command-line tool, and ``FallbackQuery`` tries
the first and falls back to the second. All of them return rows as plain
``dict`` objects so callers cannot tell which one ran.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from ohmydashboard import config
from ohmydashboard.db import connection
from ohmydashboard.observability import record_query_fallback

logger = logging.getLogger("ohmydashboard.db")

Row = dict[str, Any]


class QueryError(Exception):
    """A query could not be executed by any available path."""


def quote_literal(value: str) -> str:
    """Quote ``value`` as an SQL string literal, doubling single quotes.

    Only for values. Table and column names must never come from callers.
    """
    return "'" + str(value).replace("'", "''") + "'"


class DriverQuery:
    """In-process query path.

    After ``max_failures`` consecutive errors the path disables itself for
    the rest of the process.
    """

    def __init__(self, db_path: Path, max_failures: int = config.DRIVER_MAX_FAILURES):
        self.db_path = db_path
        self.max_failures = max(1, max_failures)
        self.failures = 0
        self.disabled = False

    async def query(self, sql: str) -> list[Row]:
        if self.disabled:
            raise QueryError("In-process SQLite driver is disabled")
        conn = None
        try:
            conn = await connection.get_connection(self.db_path)
            async with conn.execute(sql) as cur:
                rows = await cur.fetchall()
        except sqlite3.OperationalError as e:
            # Statement-level error; the shared connection is still usable.
            self._record_failure(e)
            raise QueryError(str(e)) from e
        except Exception as e:
            self._record_failure(e)
            if conn is not None:
                await connection.discard_connection(self.db_path, conn)
            raise QueryError(str(e)) from e
        self.failures = 0
        return [dict(row) for row in rows]

    def _record_failure(self, error: Exception) -> None:
        self.failures += 1
        if self.failures >= self.max_failures and not self.disabled:
            self.disabled = True
            logger.warning(
                f"Disabling in-process SQLite driver after {self.failures} failures (last: {error})"
            )


class CliQuery:
    """Query path through ``sqlite3 -readonly -json``."""

    def __init__(self, db_path: Path, binary: str = config.SQLITE_BIN):
        self.db_path = db_path
        self.binary = binary

    async def query(self, sql: str) -> list[Row]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, "-readonly", "-json", str(self.db_path), sql,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            raise QueryError(f"Cannot run {self.binary}: {e}") from e

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise QueryError(f"{self.binary} exited with {proc.returncode}: {message}")
        return parse_json_rows(stdout)


def parse_json_rows(output: bytes) -> list[Row]:
    """Parse ``sqlite3 -json`` output; no rows prints nothing at all."""
    text = output.decode("utf-8", errors="replace").strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise QueryError(f"Unreadable sqlite3 output: {e}") from e
    if not isinstance(parsed, list):
        raise QueryError("Unexpected sqlite3 output shape")
    return [row for row in parsed if isinstance(row, dict)]


class FallbackQuery:
    """Prefer the in-process driver; use the CLI when it is unavailable or errors."""

    def __init__(self, primary: DriverQuery, fallback: CliQuery):
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def for_database(cls, db_path: Path) -> "FallbackQuery":
        return cls(DriverQuery(db_path), CliQuery(db_path))

    @property
    def driver_disabled(self) -> bool:
        return self.primary.disabled

    async def query(self, sql: str) -> list[Row]:
        primary_error: Optional[QueryError] = None
        if not self.primary.disabled:
            try:
                return await self.primary.query(sql)
            except QueryError as e:
                primary_error = e
                logger.warning(f"In-process SQLite query failed, using sqlite3 CLI: {e}")
                record_query_fallback("driver_error")
        else:
            record_query_fallback("driver_disabled")

        try:
            return await self.fallback.query(sql)
        except QueryError as e:
            if primary_error is not None:
                raise QueryError(f"{primary_error}; {e}") from e
            raise
