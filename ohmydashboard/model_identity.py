"""Model naming and chart color helpers."""
from __future__ import annotations

import re

_DATE_SUFFIX_PATTERN = re.compile(r"(?:-\d{8}|-\d{4}-\d{2}-\d{2})+$")

MODEL_COLORS: dict[str, str] = {
    "claude-sonnet-4.5": "#3b82f6",
    "claude-sonnet-4-5": "#3b82f6",
    "claude-opus-4.5": "#8b5cf6",
    "claude-opus-4-5-thinking": "#7c3aed",
    "claude-haiku-4.5": "#93c5fd",
    "gpt-5.2": "#10b981",
    "gpt-5-mini": "#6ee7b7",
    "gemini-3-pro": "#f59e0b",
    "gemini-3-flash": "#fbbf24",
    "gemini-3-flash-preview": "#f59e0b",
}

FALLBACK_COLORS = [
    "#ef4444", "#ec4899", "#a855f7", "#6366f1", "#14b8a6",
    "#84cc16", "#f97316", "#06b6d4", "#d946ef", "#0ea5e9",
]


def canonical_model_name(raw_model: str | None) -> str:
    """Return a canonical model identifier with build/date suffixes removed.

    Example:
      claude-opus-4-5-20251101 -> claude-opus-4-5
    """
    raw = (raw_model or "").strip().lower()
    if not raw:
        return ""
    normalized = re.sub(r"[\s_]+", "-", raw)
    normalized = re.sub(r"-{2,}", "-", normalized).strip("-")
    stripped = _DATE_SUFFIX_PATTERN.sub("", normalized).strip("-")
    return stripped or normalized


def model_color(model: str, index: int) -> str:
    """Known models get their brand color; others cycle through the palette by ``index``."""
    color = MODEL_COLORS.get(model) or MODEL_COLORS.get(canonical_model_name(model))
    if color:
        return color
    return FALLBACK_COLORS[index % len(FALLBACK_COLORS)]
