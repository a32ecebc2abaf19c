"""
World Service for World State.

World-level time of day, day counter and free-form world flags.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from worldstate.db.interfaces import WorldRepository
from worldstate.models import EntityKind, EntityRef, TimeOfDay, World, WorldSummary
from worldstate.services.base import ServiceResult, is_json_value
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)


class WorldResult(ServiceResult):
    """Result of looking up a world."""

    world: WorldSummary | None = None


class WorldTimeResult(ServiceResult):
    """Current (or newly set) world time."""

    time_of_day: TimeOfDay | None = None
    days_elapsed: int | None = None


class StateValueResult(ServiceResult):
    """One key of a free-form state map."""

    key: str | None = None
    value: Any = None
    cleared: bool = False


def _world_ref(world_id: int) -> EntityRef:
    return EntityRef(kind=EntityKind.WORLD, id=world_id)


@dataclass
class WorldService:
    """Time and world-state flags."""

    repo: WorldRepository
    events: EventLog

    def get_world(self, world_id: int) -> WorldResult:
        world = self.repo.get(World, world_id)
        if world is None:
            return WorldResult.not_found("World")
        return WorldResult(world=world.summary())

    def get_world_time(self, world_id: int) -> WorldTimeResult:
        world = self.repo.get(World, world_id)
        if world is None:
            return WorldTimeResult.not_found("World")
        return WorldTimeResult(time_of_day=world.time_of_day, days_elapsed=world.days_elapsed)

    def advance_time(self, world_id: int, to_time_of_day: str) -> WorldTimeResult:
        """Jump to a time of day. Any value outside TimeOfDay is rejected."""
        with self.repo.transaction():
            world = self.repo.get(World, world_id)
            if world is None:
                return WorldTimeResult.not_found("World")
            try:
                new_time = TimeOfDay(to_time_of_day)
            except ValueError:
                return WorldTimeResult.invalid("Invalid time of day")

            old_time = world.time_of_day
            world.time_of_day = new_time
            self.repo.update(world)
            self.events.log(
                world_id,
                "time_advanced",
                actor=EntityRef.system(),
                target=_world_ref(world_id),
                data={"from": old_time.value, "to": new_time.value},
            )

        return WorldTimeResult(time_of_day=new_time, days_elapsed=world.days_elapsed)

    def advance_day(self, world_id: int) -> WorldTimeResult:
        """Start the next day. Time of day always resets to morning."""
        with self.repo.transaction():
            world = self.repo.get(World, world_id)
            if world is None:
                return WorldTimeResult.not_found("World")

            old_days = world.days_elapsed
            old_time = world.time_of_day
            world.days_elapsed = old_days + 1
            world.time_of_day = TimeOfDay.MORNING
            self.repo.update(world)
            self.events.log(
                world_id,
                "day_advanced",
                actor=EntityRef.system(),
                target=_world_ref(world_id),
                data={
                    "old_days_elapsed": old_days,
                    "days_elapsed": world.days_elapsed,
                    "old_time_of_day": old_time.value,
                    "time_of_day": world.time_of_day.value,
                },
            )

        return WorldTimeResult(time_of_day=world.time_of_day, days_elapsed=world.days_elapsed)

    def set_world_state(self, world_id: int, key: str, value: Any) -> StateValueResult:
        if not is_json_value(value):
            return StateValueResult.invalid("State values must be JSON-serialisable")
        with self.repo.transaction():
            world = self.repo.get(World, world_id)
            if world is None:
                return StateValueResult.not_found("World")

            old_value = world.world_state.get(key)
            world.world_state[key] = value
            self.repo.update(world)
            self.events.log(
                world_id,
                "world_state_changed",
                target=_world_ref(world_id),
                data={"key": key, "old_value": old_value, "new_value": value},
            )

        return StateValueResult(key=key, value=value)

    def get_world_state(self, world_id: int, key: str) -> StateValueResult:
        """Read one flag. A missing key reads as None, not an error."""
        world = self.repo.get(World, world_id)
        if world is None:
            return StateValueResult.not_found("World")
        return StateValueResult(key=key, value=world.world_state.get(key))
