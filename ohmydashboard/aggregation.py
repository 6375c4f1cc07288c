"""Dashboard views computed from normalized OpenCode records.

Everything here is a pure function of its inputs: the reader loads the raw
records and passes the current time in explicitly, which keeps the
windowed views reproducible in tests.
"""
from __future__ import annotations

import math
from collections import defaultdict
from typing import Iterable, Optional

from ohmydashboard.date_utils import (
    local_datetime,
    local_day_bounds,
    range_cutoff,
    short_label,
    sunday_based_weekday,
    trailing_days,
)
from ohmydashboard.model_identity import model_color
from ohmydashboard.models import (
    AgentActivity,
    AgentUsage,
    CostHistoryEntry,
    DashboardStats,
    HourlyActivity,
    MessageTokens,
    ModelUsage,
    Session,
    SessionMessage,
    TimeRange,
)
from ohmydashboard.records import RawMessage, RawPart, RawSession

ACTIVE_WINDOW_MS = 5 * 60 * 1000
COST_HISTORY_DAYS = 14
CONTENT_PREVIEW_CHARS = 500
NO_TEXT_PLACEHOLDER = "(no text content)"


def _percentage(part: int, total: int) -> int:
    # Half-up rounding, so 2/3 -> 67 and 1/2 -> 50.
    if total <= 0:
        return 0
    return int(math.floor(part * 100 / total + 0.5))


def _cost(message: RawMessage) -> float:
    return message.cost or 0.0


def group_by_session(messages: Iterable[RawMessage]) -> dict[str, list[RawMessage]]:
    grouped: dict[str, list[RawMessage]] = defaultdict(list)
    for message in messages:
        grouped[message.session_id].append(message)
    return grouped


def _unique_agents(messages: Iterable[RawMessage]) -> list[str]:
    seen: dict[str, None] = {}
    for message in messages:
        if message.agent:
            seen.setdefault(message.agent, None)
    return list(seen)


def build_sessions(
    sessions: list[RawSession],
    messages: list[RawMessage],
    date_range: str,
    now: int,
) -> list[Session]:
    cutoff = range_cutoff(date_range, now)
    by_session = group_by_session(messages)

    results = []
    for raw in sessions:
        if raw.time.created < cutoff:
            continue
        session_messages = by_session.get(raw.id, [])
        results.append(
            Session(
                id=raw.id,
                title=raw.title or raw.slug or "Untitled",
                directory=raw.directory,
                projectId=raw.project_id,
                messageCount=len(session_messages),
                cost=sum(_cost(m) for m in session_messages),
                agents=_unique_agents(session_messages),
                time=TimeRange(created=raw.time.created, updated=raw.time.updated),
            )
        )
    results.sort(key=lambda s: s.time.updated, reverse=True)
    return results


def build_stats(
    sessions: list[RawSession],
    messages: list[RawMessage],
    date_range: str,
    now: int,
    active_window_ms: int = ACTIVE_WINDOW_MS,
) -> DashboardStats:
    views = build_sessions(sessions, messages, date_range, now)
    cutoff = range_cutoff(date_range, now)
    active_since = now - active_window_ms
    total_tokens = sum(
        m.tokens.total
        for m in messages
        if m.tokens is not None and m.time.created >= cutoff
    )
    return DashboardStats(
        totalSessions=len(views),
        totalMessages=sum(s.messageCount for s in views),
        totalCost=sum(s.cost for s in views),
        totalTokens=total_tokens,
        activeAgents=sum(1 for s in views if s.time.updated >= active_since),
    )


def build_active_agents(
    sessions: list[RawSession],
    messages: list[RawMessage],
    now: int,
    active_window_ms: int = ACTIVE_WINDOW_MS,
) -> list[AgentActivity]:
    active_since = now - active_window_ms
    by_session = group_by_session(messages)

    results = []
    for raw in sessions:
        if raw.time.updated < active_since:
            continue
        ordered = sorted(by_session.get(raw.id, []), key=lambda m: m.time.created)
        latest = ordered[-1] if ordered else None
        agents = [m.agent for m in ordered if m.agent]
        results.append(
            AgentActivity(
                agent=agents[-1] if agents else "unknown",
                directory=raw.directory,
                status="running",
                sessionId=raw.id,
                elapsedMs=now - raw.time.created,
                model=(latest.model_id if latest else None) or "unknown",
                messageCount=len(ordered),
            )
        )
    return results


def build_agent_usage(messages: list[RawMessage], date_range: str, now: int) -> list[AgentUsage]:
    cutoff = range_cutoff(date_range, now)
    filtered = [m for m in messages if m.time.created >= cutoff and m.agent]

    message_counts: dict[str, int] = {}
    session_ids: dict[str, set[str]] = defaultdict(set)
    for message in filtered:
        message_counts[message.agent] = message_counts.get(message.agent, 0) + 1
        session_ids[message.agent].add(message.session_id)

    total = len(filtered)
    usage = [
        AgentUsage(
            agent=agent,
            count=len(session_ids[agent]),
            percentage=_percentage(count, total),
            totalMessages=count,
        )
        for agent, count in message_counts.items()
    ]
    usage.sort(key=lambda u: u.totalMessages, reverse=True)
    return usage


def build_cost_history(messages: list[RawMessage], now: int, days: int = COST_HISTORY_DAYS) -> list[CostHistoryEntry]:
    history = []
    for day in trailing_days(now, days):
        start, end = local_day_bounds(day)
        day_messages = [m for m in messages if start <= m.time.created < end]
        history.append(
            CostHistoryEntry(
                date=day.isoformat(),
                label=short_label(day),
                cost=sum(_cost(m) for m in day_messages),
                sessions=len({m.session_id for m in day_messages}),
                messages=len(day_messages),
            )
        )
    return history


def build_model_usage(messages: list[RawMessage]) -> list[ModelUsage]:
    assistant = [m for m in messages if m.role == "assistant" and m.model_id]

    totals: dict[str, dict[str, float]] = {}
    for message in assistant:
        entry = totals.setdefault(message.model_id, {"messages": 0, "cost": 0.0})
        entry["messages"] += 1
        entry["cost"] += _cost(message)

    total = len(assistant)
    usage = [
        ModelUsage(
            model=model,
            messages=int(data["messages"]),
            cost=data["cost"],
            percentage=_percentage(int(data["messages"]), total),
            color=model_color(model, index),
        )
        for index, (model, data) in enumerate(totals.items())
    ]
    usage.sort(key=lambda u: u.messages, reverse=True)
    return usage


def build_hourly_activity(messages: list[RawMessage]) -> list[HourlyActivity]:
    grid: dict[tuple[int, int], int] = defaultdict(int)
    for message in messages:
        created = local_datetime(message.time.created)
        grid[(sunday_based_weekday(created), created.hour)] += 1

    return [
        HourlyActivity(day=day, hour=hour, count=grid.get((day, hour), 0))
        for day in range(7)
        for hour in range(24)
    ]


def message_content(parts: list[RawPart]) -> str:
    texts = [p.text for p in parts if p.type == "text" and p.text]
    content = "\n".join(texts) or NO_TEXT_PLACEHOLDER
    return content[:CONTENT_PREVIEW_CHARS]


def build_session_message(message: RawMessage, parts: list[RawPart]) -> SessionMessage:
    tokens: Optional[MessageTokens] = None
    if message.tokens is not None:
        tokens = MessageTokens(
            input=message.tokens.input,
            output=message.tokens.output,
            reasoning=message.tokens.reasoning,
        )
    return SessionMessage(
        id=message.id,
        role=message.role,
        content=message_content(parts),
        timestamp=message.time.created,
        agent=message.agent,
        model=message.model_id,
        cost=message.cost,
        tokens=tokens,
    )


def build_session_detail(
    messages: list[RawMessage],
    parts_by_message: dict[str, list[RawPart]],
) -> list[SessionMessage]:
    ordered = sorted(messages, key=lambda m: m.time.created)
    return [build_session_message(m, parts_by_message.get(m.id, [])) for m in ordered]
