"""Dashboard reader: storage backend + cache + aggregation behind one API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from ohmydashboard import aggregation, config
from ohmydashboard.cache import TTLCache
from ohmydashboard.db.factory import RecordRepository, get_query_runner, get_record_repository
from ohmydashboard.db.resolver import Backend, SqliteBackend, resolve_backend
from ohmydashboard.models import (
    AgentActivity,
    AgentUsage,
    CostHistoryEntry,
    DashboardStats,
    HourlyActivity,
    ModelUsage,
    Session,
    SessionMessage,
)
from ohmydashboard.normalizers import now_ms
from ohmydashboard.observability import record_cache_lookup, start_span
from ohmydashboard.records import RawMessage, RawPart, RawProject, RawSession

logger = logging.getLogger("ohmydashboard.reader")

T = TypeVar("T")


class DashboardReader:
    """One async method per dashboard view.

    The storage backend is resolved on first use and kept for the lifetime
    of the reader. Raw record listings are cached for ``cache.ttl`` seconds;
    message parts are always read fresh.
    """

    def __init__(
        self,
        backend: Optional[Backend] = None,
        cache: Optional[TTLCache] = None,
        query: Any = None,
        repository: Optional[RecordRepository] = None,
        env: Optional[Mapping[str, str]] = None,
        clock: Callable[[], int] = now_ms,
        active_window_ms: int = config.ACTIVE_WINDOW_SECONDS * 1000,
    ):
        self._backend = backend
        self._query = query
        self._repository = repository
        self._env = env
        self._clock = clock
        self.active_window_ms = active_window_ms
        self.cache = cache or TTLCache()

    # ── Backend resolution ──────────────────────────────────────────

    @property
    def backend(self) -> Backend:
        if self._backend is None:
            self._backend = resolve_backend(self._env)
        return self._backend

    @property
    def repository(self) -> RecordRepository:
        if self._repository is None:
            backend = self.backend
            if self._query is None:
                self._query = get_query_runner(backend)
            self._repository = get_record_repository(backend, self._query)
        return self._repository

    async def _cached_fetch(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        cached = self.cache.get(key)
        record_cache_lookup(key, cached is not None)
        if cached is not None:
            return cached
        with start_span("reader.fetch", {"cache.key": key, "backend": getattr(self.repository, "kind", "")}):
            data = await fetcher()
        self.cache.set(key, data)
        return data

    # ── Raw data readers ────────────────────────────────────────────

    async def get_projects(self) -> list[RawProject]:
        return await self._cached_fetch("projects", self.repository.list_projects)

    async def get_all_sessions(self) -> list[RawSession]:
        return await self._cached_fetch("sessions", self.repository.list_sessions)

    async def get_all_messages(self) -> list[RawMessage]:
        return await self._cached_fetch("messages", self.repository.list_messages)

    async def get_session_messages(self, session_id: str) -> list[RawMessage]:
        return await self._cached_fetch(
            f"messages:{session_id}",
            lambda: self.repository.list_messages(session_id),
        )

    async def get_message_parts(self, message_id: str) -> list[RawPart]:
        return await self.repository.list_parts(message_id)

    async def _sessions_and_messages(self) -> tuple[list[RawSession], list[RawMessage]]:
        sessions, messages = await asyncio.gather(self.get_all_sessions(), self.get_all_messages())
        return sessions, messages

    # ── Dashboard views ─────────────────────────────────────────────

    async def get_sessions(self, date_range: str = "all") -> list[Session]:
        sessions, messages = await self._sessions_and_messages()
        return aggregation.build_sessions(sessions, messages, date_range, self._clock())

    async def get_stats(self, date_range: str = "all") -> DashboardStats:
        sessions, messages = await self._sessions_and_messages()
        return aggregation.build_stats(
            sessions, messages, date_range, self._clock(), active_window_ms=self.active_window_ms
        )

    async def get_active_agents(self) -> list[AgentActivity]:
        sessions, messages = await self._sessions_and_messages()
        return aggregation.build_active_agents(
            sessions, messages, self._clock(), active_window_ms=self.active_window_ms
        )

    async def get_agent_usage(self, date_range: str = "all") -> list[AgentUsage]:
        messages = await self.get_all_messages()
        return aggregation.build_agent_usage(messages, date_range, self._clock())

    async def get_cost_history(self) -> list[CostHistoryEntry]:
        messages = await self.get_all_messages()
        return aggregation.build_cost_history(messages, self._clock())

    async def get_model_usage(self) -> list[ModelUsage]:
        messages = await self.get_all_messages()
        return aggregation.build_model_usage(messages)

    async def get_hourly_activity(self) -> list[HourlyActivity]:
        messages = await self.get_all_messages()
        return aggregation.build_hourly_activity(messages)

    async def get_session_detail(self, session_id: str) -> list[SessionMessage]:
        messages = await self.get_session_messages(session_id)
        part_lists = await asyncio.gather(*(self.get_message_parts(m.id) for m in messages))
        parts_by_message = {m.id: parts for m, parts in zip(messages, part_lists)}
        return aggregation.build_session_detail(messages, parts_by_message)

    # ── Maintenance ─────────────────────────────────────────────────

    def invalidate_cache(self, key: str | None = None) -> None:
        self.cache.invalidate(key)
        logger.info(f"Reader cache invalidated ({key or 'all keys'})")

    def describe(self) -> dict[str, Any]:
        """Backend and cache state for the status endpoint."""
        backend = self.backend
        payload: dict[str, Any] = {
            "backend": backend.kind,
            "basePath": str(backend.base_path),
            "dbPath": str(backend.db_path) if isinstance(backend, SqliteBackend) else "",
            "driverDisabled": False,
            "cacheTtlSeconds": self.cache.ttl,
            "cacheKeys": sorted(self.cache.keys()),
        }
        driver_disabled = getattr(self._query, "driver_disabled", None)
        if driver_disabled is not None:
            payload["driverDisabled"] = bool(driver_disabled)
        return payload


# Process-wide reader shared by the API routers
dashboard_reader = DashboardReader()
