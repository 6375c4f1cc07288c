"""JSON-tree implementation of the raw record repository."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, TypeVar

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


def read_json_file(path: Path) -> dict[str, Any] | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"Skipping unreadable record {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def read_json_dir(dir_path: Path) -> list[dict[str, Any]]:
    """Parse every ``*.json`` file directly inside ``dir_path``."""
    try:
        entries = sorted(dir_path.iterdir())
    except OSError:
        return []
    rows = []
    for entry in entries:
        if entry.suffix != ".json" or not entry.is_file():
            continue
        data = read_json_file(entry)
        if data is not None:
            rows.append(data)
    return rows


def read_nested_json_dir(dir_path: Path) -> list[dict[str, Any]]:
    """Parse JSON files one level down (``<dir>/<group>/*.json``).

    Files sitting directly in ``dir_path`` are included too; older layouts
    stored sessions flat.
    """
    try:
        entries = sorted(dir_path.iterdir())
    except OSError:
        return []
    rows = read_json_dir(dir_path)
    for entry in entries:
        if entry.is_dir():
            rows.extend(read_json_dir(entry))
    return rows


def _is_safe_component(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\\" not in name


class JsonTreeRepository:
    """Reads OpenCode's ``storage/`` tree.

    Layout::

        project/<projectId>.json
        session/<projectId>/<sessionId>.json
        message/<sessionId>/<messageId>.json
        part/<messageId>/<partId>.json
    """

    kind = "json"

    def __init__(self, base_path: Path):
        self.base_path = base_path

    async def _load(
        self,
        record: str,
        reader: Callable[[Path], list[dict[str, Any]]],
        path: Path,
        convert: Callable[[dict[str, Any]], T],
    ) -> list[T]:
        started = time.perf_counter()
        rows = await asyncio.to_thread(reader, path)
        records = []
        for row in rows:
            try:
                records.append(convert(row))
            except Exception as e:
                logger.debug(f"Skipping malformed {record} record in {path}: {e}")
        record_read(record, self.kind, "ok", (time.perf_counter() - started) * 1000)
        return records

    async def list_projects(self) -> list[RawProject]:
        return await self._load("project", read_json_dir, self.base_path / "project", project_from_row)

    async def list_sessions(self) -> list[RawSession]:
        return await self._load("session", read_nested_json_dir, self.base_path / "session", session_from_row)

    async def list_messages(self, session_id: str | None = None) -> list[RawMessage]:
        if session_id:
            if not _is_safe_component(session_id):
                return []
            return await self._load(
                "message", read_json_dir, self.base_path / "message" / session_id, message_from_row
            )
        return await self._load("message", read_nested_json_dir, self.base_path / "message", message_from_row)

    async def list_parts(self, message_id: str) -> list[RawPart]:
        if not _is_safe_component(message_id):
            return []
        return await self._load("part", read_json_dir, self.base_path / "part" / message_id, part_from_row)
