"""
Engine configuration for World State.
"""

from __future__ import annotations

import os
from enum import Enum

from pydantic import BaseModel, Field


class StorageBackend(str, Enum):
    """Where the engine keeps world state."""

    MEMORY = "memory"  # In-process, lost on exit
    SQL = "sql"  # MySQL-compatible server


# Environment variable for each configurable field
ENV_VARS: dict[str, str] = {
    "backend": "WORLDSTATE_BACKEND",
    "db_host": "WORLDSTATE_DB_HOST",
    "db_port": "WORLDSTATE_DB_PORT",
    "db_user": "WORLDSTATE_DB_USER",
    "db_password": "WORLDSTATE_DB_PASSWORD",
    "db_name": "WORLDSTATE_DB_NAME",
    "recent_events_limit": "WORLDSTATE_RECENT_EVENTS_LIMIT",
}


class EngineConfig(BaseModel):
    """Engine configuration."""

    # Storage
    backend: StorageBackend = StorageBackend.MEMORY
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "worldstate"

    # Rules
    recent_events_limit: int = Field(default=50, ge=1)
    kill_damage: int = Field(default=9999, ge=1, description="Damage dealt by kill_character")
    max_location_depth: int = Field(default=10, ge=1)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from WORLDSTATE_* environment variables; unset ones keep defaults."""
        values = {}
        for field_name, env_var in ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw:
                values[field_name] = raw
        return cls.model_validate(values)
