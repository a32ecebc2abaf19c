"""
Engine for World State.

The GameEngine facade composes every service over one repository and is the
only object external callers need.
"""

from __future__ import annotations

from worldstate.engine.game import GameEngine, build_repository
from worldstate.engine.models import EngineConfig, StorageBackend

__all__ = [
    "GameEngine",
    "build_repository",
    "EngineConfig",
    "StorageBackend",
]
