"""Read-only connections to the OpenCode SQLite file.

Connections are opened lazily on first use, one per database path, and
reused for the rest of the process. The dashboard never writes, so every
connection is opened with ``mode=ro``.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import aiosqlite

logger = logging.getLogger("ohmydashboard.db")

_connections: dict[str, aiosqlite.Connection] = {}
# Serializes opening so concurrent first queries share one connection.
_open_locks: dict[str, asyncio.Lock] = {}


def _readonly_uri(db_path: Path) -> str:
    return f"{db_path.resolve().as_uri()}?mode=ro"


async def get_connection(db_path: Path) -> aiosqlite.Connection:
    """Return the shared connection for ``db_path``, creating it if needed."""
    key = str(db_path)
    conn = _connections.get(key)
    if conn is not None:
        return conn

    lock = _open_locks.setdefault(key, asyncio.Lock())
    async with lock:
        conn = _connections.get(key)
        if conn is not None:
            return conn

        conn = await aiosqlite.connect(_readonly_uri(db_path), uri=True)
        conn.row_factory = aiosqlite.Row
        try:
            await conn.execute("PRAGMA busy_timeout=5000")
        except Exception:
            await conn.close()
            raise
        logger.info(f"Database connection established: {db_path}")
        _connections[key] = conn
        return conn


async def discard_connection(db_path: Path, conn: Optional[Any] = None) -> None:
    """Close and forget the connection for ``db_path`` after a failure.

    With ``conn`` given, nothing happens unless it is still the tracked
    connection, so a stale failure never closes a replacement.
    """
    key = str(db_path)
    tracked = _connections.get(key)
    if tracked is None or (conn is not None and tracked is not conn):
        return
    _connections.pop(key, None)
    try:
        await tracked.close()
    except Exception as e:
        logger.debug(f"Ignoring error while closing {db_path}: {e}")


async def close_connection() -> None:
    """Close every open database connection."""
    while _connections:
        key, conn = _connections.popitem()
        try:
            await conn.close()
        except Exception as e:
            logger.warning(f"Failed to close database connection {key}: {e}")
    # Locks bind to the running loop; start fresh for the next one.
    _open_locks.clear()
    logger.info("Database connections closed")
