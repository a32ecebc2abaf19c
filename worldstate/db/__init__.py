"""
Database layer for World State.

Provides the repository interface and two implementations:
- InMemoryWorldRepository: For testing (no external dependencies)
- SqlWorldRepository: For production (requires a MySQL-compatible server)
"""

from __future__ import annotations

from worldstate.db.interfaces import StorageError, WorldRepository
from worldstate.db.memory import InMemoryWorldRepository
from worldstate.db.sql import SqlConnection, SqlWorldRepository, init_schema

__all__ = [
    # Protocol interface
    "WorldRepository",
    "StorageError",
    # In-memory implementation (for testing)
    "InMemoryWorldRepository",
    # Real database implementation
    "SqlConnection",
    "SqlWorldRepository",
    "init_schema",
]
