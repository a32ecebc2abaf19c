"""
World and Location models.

A World is the top-level namespace; every other entity belongs to exactly one.
Locations may nest under a parent location, forming a tree per world.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from worldstate.models.fields import JsonMap


class TimeOfDay(str, Enum):
    """Coarse in-game time of day."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class WorldSummary(BaseModel):
    """Public view of a world."""

    id: int
    name: str
    description: str | None = None
    is_template: bool = False
    time_of_day: TimeOfDay
    days_elapsed: int


class World(BaseModel):
    """
    A world (or world template).

    Templates are instantiated by deep-copying them into a fresh world.
    """

    table: ClassVar[str] = "worlds"

    id: int | None = None
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    created_by: int | None = Field(default=None, description="User who created the world")
    is_template: bool = False
    time_of_day: TimeOfDay = TimeOfDay.MORNING
    days_elapsed: int = Field(default=0, ge=0)
    world_state: JsonMap = Field(
        default_factory=dict, description="Free-form world flags (e.g. dragon_slain)"
    )

    def summary(self) -> WorldSummary:
        return WorldSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            is_template=self.is_template,
            time_of_day=self.time_of_day,
            days_elapsed=self.days_elapsed,
        )


class LocationSummary(BaseModel):
    """Public view of a location."""

    id: int
    name: str
    description: str | None = None
    location_type: str | None = None
    parent_location_id: int | None = None


class Location(BaseModel):
    """
    A place in a world.

    `state` holds dynamic flags read by the description rules:
    `is_dark`, `is_on_fire` and `water_level` (0-3).
    """

    table: ClassVar[str] = "locations"

    id: int | None = None
    world_id: int
    parent_location_id: int | None = None
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location_type: str | None = Field(default=None, description="indoor, outdoor, dungeon, ...")
    state: JsonMap = Field(default_factory=dict)

    def summary(self) -> LocationSummary:
        return LocationSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            location_type=self.location_type,
            parent_location_id=self.parent_location_id,
        )
