"""Storage layer for the Forest relevance engine."""

from forest_core.storage.base import GraphStore
from forest_core.storage.memory_store import InMemoryGraphStore
from forest_core.storage.sqlite_store import SQLGraphStore

__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "SQLGraphStore",
]
