"""Repository factory to abstract the storage backend (JSON tree vs SQLite)."""
from __future__ import annotations

from typing import Any, Union

from ohmydashboard.db.query import FallbackQuery
from ohmydashboard.db.repositories import JsonTreeRepository, SqliteRepository
from ohmydashboard.db.resolver import Backend, SqliteBackend

RecordRepository = Union[JsonTreeRepository, SqliteRepository]


def get_query_runner(backend: Backend) -> FallbackQuery | None:
    if isinstance(backend, SqliteBackend):
        return FallbackQuery.for_database(backend.db_path)
    return None


def get_record_repository(backend: Backend, query: Any = None) -> RecordRepository:
    if isinstance(backend, SqliteBackend):
        return SqliteRepository(query or FallbackQuery.for_database(backend.db_path))
    return JsonTreeRepository(backend.base_path)
