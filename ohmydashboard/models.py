"""Pydantic models matching the frontend TypeScript types."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal, Optional


class TimeRange(BaseModel):
    created: int
    updated: int

# ── Session-related models ──────────────────────────────────────────

class Session(BaseModel):
    id: str
    title: str
    directory: str = ""
    projectId: str = ""
    messageCount: int = 0
    cost: float = 0.0
    agents: list[str] = Field(default_factory=list)
    time: TimeRange


class MessageTokens(BaseModel):
    input: int = 0
    output: int = 0
    reasoning: int = 0


class SessionMessage(BaseModel):
    id: str
    role: str  # "user" | "assistant" | "system"
    content: str
    timestamp: int
    agent: Optional[str] = None
    model: Optional[str] = None
    cost: Optional[float] = None
    tokens: Optional[MessageTokens] = None

# ── Agent models ────────────────────────────────────────────────────

class AgentActivity(BaseModel):
    agent: str
    directory: str = ""
    # Only "running" is derived from stored data today.
    status: Literal["running", "idle", "completed"] = "running"
    sessionId: str
    elapsedMs: int = 0
    model: str = "unknown"
    messageCount: int = 0


class AgentUsage(BaseModel):
    agent: str
    count: int = 0
    percentage: int = 0
    totalMessages: int = 0

# ── Analytics models ────────────────────────────────────────────────

class DashboardStats(BaseModel):
    totalSessions: int = 0
    totalMessages: int = 0
    totalCost: float = 0.0
    totalTokens: int = 0
    activeAgents: int = 0


class CostHistoryEntry(BaseModel):
    date: str
    label: str
    cost: float = 0.0
    sessions: int = 0
    messages: int = 0


class ModelUsage(BaseModel):
    model: str
    messages: int = 0
    cost: float = 0.0
    percentage: int = 0
    color: str


class HourlyActivity(BaseModel):
    day: int  # 0 = Sunday
    hour: int
    count: int = 0

# ── Project models ──────────────────────────────────────────────────

class Project(BaseModel):
    id: str
    worktree: str = ""
    vcs: str = ""
    time: TimeRange
