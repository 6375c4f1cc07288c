"""Tolerant field extraction for OpenCode records.

Rows come from JSON files or from SQLite tables written by several
generations of the runtime, so the same field may be spelled ``sessionID``,
``session_id`` or ``sessionId``, timestamps may be seconds or milliseconds,
and nested objects may arrive JSON-encoded. The helpers here accept all of
those and return canonical records.
"""
from __future__ import annotations

import json
import math
import time
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from ohmydashboard.records import (
    RawMessage,
    RawPart,
    RawProject,
    RawSession,
    RecordTime,
    TokenUsage,
)

# Anything below this is a seconds value (10**12 ms is September 2001).
MILLISECONDS_THRESHOLD = 10**12
# Latest instant every local timezone can still turn into a datetime.
MAX_TIMESTAMP_MS = int(datetime(9999, 12, 30, tzinfo=timezone.utc).timestamp() * 1000)

CREATED_KEYS = ("created", "createdAt", "created_at", "time_created", "timeCreated")
UPDATED_KEYS = ("updated", "updatedAt", "updated_at", "time_updated", "timeUpdated")
COMPLETED_KEYS = ("completed", "completedAt", "completed_at", "time_completed", "timeCompleted")


def _id_keys(name: str) -> tuple[str, str, str]:
    """``session`` -> (``sessionID``, ``session_id``, ``sessionId``)."""
    return (f"{name}ID", f"{name}_id", f"{name}Id")


def now_ms() -> int:
    return int(time.time() * 1000)


def safe_json(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if not value:
        return {}
    if isinstance(value, (str, bytes)):
        try:
            parsed = json.loads(value)
            return parsed if isinstance(parsed, dict) else {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
    return {}


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return None
        try:
            parsed = float(token)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def pick_str(row: dict[str, Any], keys: Sequence[str]) -> str:
    """Return the first non-empty string value among ``keys``, else ``""``."""
    for key in keys:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def pick_number(row: dict[str, Any], keys: Sequence[str]) -> Optional[float]:
    """Return the first numeric value among ``keys``.

    Numeric strings count. ``None`` means nothing usable was found, which
    callers must keep distinct from an explicit zero.
    """
    for key in keys:
        parsed = _to_number(row.get(key))
        if parsed is not None:
            return parsed
    return None


def _parse_iso_ms(token: str) -> Optional[int]:
    try:
        parsed = datetime.fromisoformat(token.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def normalize_timestamp(value: Any, now: int | None = None) -> int:
    """Convert a seconds/milliseconds/ISO value to epoch milliseconds.

    Missing, unparseable or out-of-range input (before 1970, past year
    9999, microsecond values) falls back to ``now`` (the current time when
    not given), so the result for malformed records depends on when they
    are read.
    """
    number = _to_number(value)
    if number is not None and number > 0:
        millis = int(round(number * 1000)) if number < MILLISECONDS_THRESHOLD else int(round(number))
        if millis <= MAX_TIMESTAMP_MS:
            return millis
        return now if now is not None else now_ms()
    if isinstance(value, str) and value.strip():
        parsed = _parse_iso_ms(value.strip())
        if parsed is not None and 0 < parsed <= MAX_TIMESTAMP_MS:
            return parsed
    return now if now is not None else now_ms()


def _first_present(source: dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_time(
    row: dict[str, Any],
    updated_keys: Sequence[str] = UPDATED_KEYS,
    now: int | None = None,
) -> RecordTime:
    """Read ``time`` as a JSON string, a dict, or flat sibling fields."""
    nested = safe_json(row.get("time"))
    raw_created = _first_present(nested, CREATED_KEYS)
    if raw_created is None:
        raw_created = _first_present(row, CREATED_KEYS)
    raw_updated = _first_present(nested, updated_keys)
    if raw_updated is None:
        raw_updated = _first_present(row, updated_keys)

    created = normalize_timestamp(raw_created, now)
    updated = normalize_timestamp(raw_updated, now) if raw_updated is not None else created
    return RecordTime(created=created, updated=updated)


def _token_count(source: dict[str, Any], keys: Sequence[str]) -> int:
    parsed = pick_number(source, keys)
    return int(parsed) if parsed is not None else 0


def normalize_tokens(value: Any) -> Optional[TokenUsage]:
    """Decode token usage; missing sub-fields count as zero."""
    if isinstance(value, dict):
        data = value
    elif isinstance(value, (str, bytes)) and value:
        try:
            data = json.loads(value)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        if not isinstance(data, dict):
            return None
    else:
        return None
    cache = safe_json(data.get("cache"))
    return TokenUsage(
        input=_token_count(data, ("input", "input_tokens", "inputTokens")),
        output=_token_count(data, ("output", "output_tokens", "outputTokens")),
        reasoning=_token_count(data, ("reasoning", "reasoning_tokens", "reasoningTokens")),
        cache_read=_token_count(cache, ("read",)) or _token_count(data, ("cache_read", "cacheRead")),
        cache_write=_token_count(cache, ("write",)) or _token_count(data, ("cache_write", "cacheWrite")),
    )


def _optional_str(row: dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    return pick_str(row, keys) or None


def expand_row(row: dict[str, Any]) -> dict[str, Any]:
    """Merge a JSON ``data`` column into its row.

    Current OpenCode databases keep most message and part fields inside a
    ``data`` blob next to a few indexed columns; the columns win on conflict.
    """
    if "data" not in row:
        return row
    data = safe_json(row.get("data"))
    if not data:
        return row
    merged = dict(data)
    for key, value in row.items():
        if key == "data" or value is None:
            continue
        merged[key] = value
    return merged


def project_from_row(row: dict[str, Any], now: int | None = None) -> RawProject:
    row = expand_row(row)
    return RawProject(
        id=pick_str(row, ("id", "projectID", "project_id")),
        worktree=pick_str(row, ("worktree", "work_tree")),
        vcs=pick_str(row, ("vcs",)),
        time=normalize_time(row, now=now),
    )


def session_from_row(row: dict[str, Any], now: int | None = None) -> RawSession:
    row = expand_row(row)
    return RawSession(
        id=pick_str(row, ("id",) + _id_keys("session")),
        slug=pick_str(row, ("slug",)),
        version=pick_str(row, ("version",)),
        project_id=pick_str(row, _id_keys("project")),
        directory=pick_str(row, ("directory", "cwd")),
        title=pick_str(row, ("title",)),
        time=normalize_time(row, now=now),
        parent_id=_optional_str(row, _id_keys("parent")),
    )


def message_from_row(row: dict[str, Any], now: int | None = None) -> RawMessage:
    row = expand_row(row)
    # User messages nest the requested model as {"providerID", "modelID"}.
    model = safe_json(row.get("model"))
    created_and_completed = normalize_time(row, updated_keys=COMPLETED_KEYS, now=now)
    has_completed = (
        _first_present(safe_json(row.get("time")), COMPLETED_KEYS) is not None
        or _first_present(row, COMPLETED_KEYS) is not None
    )
    return RawMessage(
        id=pick_str(row, ("id",) + _id_keys("message")),
        session_id=pick_str(row, _id_keys("session")),
        role=pick_str(row, ("role",)),
        time=created_and_completed,
        completed=created_and_completed.updated if has_completed else None,
        parent_id=_optional_str(row, _id_keys("parent")),
        model_id=_optional_str(row, _id_keys("model")) or _optional_str(model, _id_keys("model")),
        provider_id=_optional_str(row, _id_keys("provider")) or _optional_str(model, _id_keys("provider")),
        mode=_optional_str(row, ("mode",)),
        agent=_optional_str(row, ("agent",)),
        cost=pick_number(row, ("cost",)),
        tokens=normalize_tokens(row.get("tokens")),
        finish=_optional_str(row, ("finish",)),
    )


def part_from_row(row: dict[str, Any]) -> RawPart:
    row = expand_row(row)
    text = row.get("text")
    return RawPart(
        id=pick_str(row, ("id",) + _id_keys("part")),
        session_id=pick_str(row, _id_keys("session")),
        message_id=pick_str(row, _id_keys("message")),
        type=pick_str(row, ("type",)),
        text=text if isinstance(text, str) else None,
        cost=pick_number(row, ("cost",)),
        tokens=normalize_tokens(row.get("tokens")),
    )
