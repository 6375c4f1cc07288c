"""API router for the dashboard views."""
from __future__ import annotations

from fastapi import APIRouter, Query

from ohmydashboard.date_utils import DateRange
from ohmydashboard.models import (
    AgentActivity,
    AgentUsage,
    CostHistoryEntry,
    DashboardStats,
    HourlyActivity,
    ModelUsage,
    Project,
    Session,
    SessionMessage,
    TimeRange,
)
from ohmydashboard.reader import dashboard_reader

dashboard_router = APIRouter(prefix="/api", tags=["dashboard"])


@dashboard_router.get("/stats", response_model=DashboardStats)
async def get_stats(date_range: DateRange = Query("all", alias="range")):
    """Headline counters for the selected window."""
    return await dashboard_reader.get_stats(date_range)


@dashboard_router.get("/agents/active", response_model=list[AgentActivity])
async def get_active_agents():
    return await dashboard_reader.get_active_agents()


@dashboard_router.get("/agents/usage", response_model=list[AgentUsage])
async def get_agent_usage(date_range: DateRange = Query("all", alias="range")):
    return await dashboard_reader.get_agent_usage(date_range)


@dashboard_router.get("/sessions", response_model=list[Session])
async def list_sessions(date_range: DateRange = Query("all", alias="range")):
    """Sessions created within the window, most recently updated first."""
    return await dashboard_reader.get_sessions(date_range)


@dashboard_router.get(
    "/sessions/{session_id}/messages",
    response_model=list[SessionMessage],
    response_model_exclude_none=True,
)
async def get_session_messages(session_id: str):
    """Message transcript preview for one session (empty for unknown ids)."""
    return await dashboard_reader.get_session_detail(session_id)


@dashboard_router.get("/cost-history", response_model=list[CostHistoryEntry])
async def get_cost_history():
    return await dashboard_reader.get_cost_history()


@dashboard_router.get("/models", response_model=list[ModelUsage])
async def get_model_usage():
    return await dashboard_reader.get_model_usage()


@dashboard_router.get("/activity", response_model=list[HourlyActivity])
async def get_hourly_activity():
    """7x24 message heatmap; day 0 is Sunday."""
    return await dashboard_reader.get_hourly_activity()


@dashboard_router.get("/projects", response_model=list[Project])
async def list_projects():
    projects = await dashboard_reader.get_projects()
    return [
        Project(
            id=p.id,
            worktree=p.worktree,
            vcs=p.vcs,
            time=TimeRange(created=p.time.created, updated=p.time.updated),
        )
        for p in projects
    ]
