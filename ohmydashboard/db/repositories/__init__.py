"""Repository package for raw OpenCode records."""

from .json_tree import JsonTreeRepository
from .sqlite import SqliteRepository

__all__ = [
    "JsonTreeRepository",
    "SqliteRepository",
]
