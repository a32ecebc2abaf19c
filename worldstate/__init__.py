"""
World State: persistent, mutable world-state engine for multiplayer text RPGs.

Tracks worlds, locations, exits, characters, containers, items and quests,
and records every change in an append-only event log.
"""

from __future__ import annotations

from worldstate.engine import EngineConfig, GameEngine

__all__ = ["EngineConfig", "GameEngine"]
