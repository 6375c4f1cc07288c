"""Storage backend discovery.

OpenCode has persisted its state in two layouts over time: a tree of JSON
files under ``<data>/storage`` and a single SQLite file ``<data>/opencode.db``.
The resolver looks for the JSON layout first and only falls back to the
database when no session files exist.
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

logger = logging.getLogger("ohmydashboard.db")

STORAGE_ENV_VARS = ("OMD_STORAGE_DIR", "OPENCODE_STORAGE_DIR")
DATABASE_ENV_VARS = ("OMD_DB_PATH", "OPENCODE_DB_PATH")
DATABASE_FILENAME = "opencode.db"


@dataclass(frozen=True)
class JsonBackend:
    base_path: Path
    kind: str = "json"


@dataclass(frozen=True)
class SqliteBackend:
    base_path: Path
    db_path: Path
    kind: str = "sqlite"


Backend = Union[JsonBackend, SqliteBackend]


def _default_data_dir(home: Path) -> Path:
    return home / ".local" / "share" / "opencode"


def _is_windows(platform: str) -> bool:
    return platform.startswith("win") or platform == "cygwin"


def _data_dirs(env: Mapping[str, str], platform: str, home: Path) -> list[Path]:
    """Platform-convention OpenCode data directories, most specific first."""
    dirs: list[Path] = []
    xdg = (env.get("XDG_DATA_HOME") or "").strip()
    if xdg:
        dirs.append(Path(xdg) / "opencode")
    if _is_windows(platform):
        for name in ("LOCALAPPDATA", "APPDATA"):
            value = (env.get(name) or "").strip()
            if value:
                dirs.append(Path(value) / "opencode")
    return dirs


def _env_paths(env: Mapping[str, str], names: tuple[str, ...]) -> list[Path]:
    paths = []
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            paths.append(Path(value).expanduser())
    return paths


def storage_candidates(env: Mapping[str, str], platform: str, home: Path) -> list[Path]:
    candidates = _env_paths(env, STORAGE_ENV_VARS)
    candidates.extend(d / "storage" for d in _data_dirs(env, platform, home))
    candidates.append(_default_data_dir(home) / "storage")
    return candidates


def database_candidates(env: Mapping[str, str], platform: str, home: Path, base_path: Path) -> list[Path]:
    candidates = _env_paths(env, DATABASE_ENV_VARS)
    candidates.extend(d / DATABASE_FILENAME for d in _data_dirs(env, platform, home))
    candidates.append(base_path.parent / DATABASE_FILENAME)
    candidates.append(base_path / DATABASE_FILENAME)
    candidates.append(_default_data_dir(home) / DATABASE_FILENAME)
    return candidates


def _first_existing(candidates: list[Path], want_dir: bool) -> Optional[Path]:
    for candidate in candidates:
        try:
            if want_dir and candidate.is_dir():
                return candidate
            if not want_dir and candidate.is_file():
                return candidate
        except OSError:
            continue
    return None


def has_json_sessions(base_path: Path) -> bool:
    """True when ``<base>/session`` holds at least one directory or JSON file."""
    session_dir = base_path / "session"
    try:
        for entry in session_dir.iterdir():
            if entry.is_dir() or (entry.is_file() and entry.suffix == ".json"):
                return True
    except OSError:
        return False
    return False


def resolve_backend(
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
    home: Path | None = None,
) -> Backend:
    """Pick the storage backend for this process.

    Never fails: when nothing is found the JSON backend at the default
    location is returned and every read comes back empty.
    """
    env = os.environ if env is None else env
    platform = sys.platform if platform is None else platform
    home = Path.home() if home is None else home

    candidates = storage_candidates(env, platform, home)
    base_path = _first_existing(candidates, want_dir=True) or candidates[-1]

    if has_json_sessions(base_path):
        backend: Backend = JsonBackend(base_path=base_path)
    else:
        db_path = _first_existing(database_candidates(env, platform, home, base_path), want_dir=False)
        if db_path is not None:
            backend = SqliteBackend(base_path=base_path, db_path=db_path)
        else:
            backend = JsonBackend(base_path=base_path)

    logger.info(f"Resolved {backend.kind} storage backend at {base_path}")
    return backend
