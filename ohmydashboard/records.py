"""Canonical raw records read from OpenCode storage.

Both storage backends produce these shapes after normalization, so the
aggregation layer never sees backend-specific field names. All timestamps
are integer milliseconds since the epoch.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class RecordTime:
    created: int
    updated: int


@dataclass
class TokenUsage:
    input: int = 0
    output: int = 0
    reasoning: int = 0
    cache_read: int = 0
    cache_write: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output + self.reasoning


@dataclass
class RawProject:
    id: str
    worktree: str
    vcs: str
    time: RecordTime


@dataclass
class RawSession:
    id: str
    slug: str
    version: str
    project_id: str
    directory: str
    title: str
    time: RecordTime
    parent_id: Optional[str] = None


@dataclass
class RawMessage:
    id: str
    session_id: str
    role: str
    time: RecordTime
    completed: Optional[int] = None
    parent_id: Optional[str] = None
    model_id: Optional[str] = None
    provider_id: Optional[str] = None
    mode: Optional[str] = None
    agent: Optional[str] = None
    cost: Optional[float] = None
    tokens: Optional[TokenUsage] = None
    finish: Optional[str] = None


@dataclass
class RawPart:
    id: str
    session_id: str
    message_id: str
    type: str
    text: Optional[str] = None
    cost: Optional[float] = None
    tokens: Optional[TokenUsage] = None
