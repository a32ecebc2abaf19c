"""
Location Service for World State.

Description assembly from location state, free-form state flags, and
listings of what sits directly at a location.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import Field

from worldstate.db.interfaces import WorldRepository
from worldstate.models import (
    Character,
    CharacterSummary,
    Container,
    ContainerSummary,
    EntityRef,
    Exit,
    Item,
    ItemSummary,
    Location,
    LocationSummary,
)
from worldstate.services.base import ServiceResult, is_json_value
from worldstate.services.connection import ConnectionService
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)

DARK_DESCRIPTION = "It's pitch black. You can't see anything."
FIRE_DESCRIPTION = "Flames lick at the walls, filling the air with smoke."
WATER_DESCRIPTIONS: dict[int, str] = {
    1: "Water covers the floor, reaching your ankles.",
    2: "You wade through waist-deep water.",
    3: "The room is completely flooded. You must swim.",
}


def describe_state(description: str | None, state: dict[str, Any]) -> str:
    """
    Apply state rules to a base description, in order.

    Darkness hides everything else. Fire and water sentences are appended;
    water levels other than 1-3 add nothing.
    """
    if state.get("is_dark"):
        return DARK_DESCRIPTION

    parts = [description] if description else []
    if state.get("is_on_fire"):
        parts.append(FIRE_DESCRIPTION)
    level = state.get("water_level")
    if isinstance(level, int) and not isinstance(level, bool) and level in WATER_DESCRIPTIONS:
        parts.append(WATER_DESCRIPTIONS[level])
    return " ".join(parts)


# =============================================================================
# Result Models
# =============================================================================


class LocationDescriptionResult(ServiceResult):
    """What a character sees at a location."""

    location: LocationSummary | None = None
    description: str = ""
    state: dict[str, Any] = Field(default_factory=dict)
    exits: list[Exit] = Field(default_factory=list)


class CharacterListResult(ServiceResult):
    characters: list[CharacterSummary] = Field(default_factory=list)
    count: int = 0


class ItemListResult(ServiceResult):
    items: list[ItemSummary] = Field(default_factory=list)
    count: int = 0


class ContainerListResult(ServiceResult):
    containers: list[ContainerSummary] = Field(default_factory=list)
    count: int = 0


class LocationStateResult(ServiceResult):
    """One key (or all keys) of a location's state map."""

    location_id: int | None = None
    key: str | None = None
    value: Any = None
    cleared: bool = False
    state: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Location Service
# =============================================================================


@dataclass
class LocationService:
    """Location descriptions, state flags and occupancy."""

    repo: WorldRepository
    events: EventLog
    connections: ConnectionService

    def describe_location(self, location_id: int) -> LocationDescriptionResult:
        location = self.repo.get(Location, location_id)
        if location is None:
            return LocationDescriptionResult.not_found("Location")

        exits = self.connections.list_exits(location_id)
        return LocationDescriptionResult(
            location=location.summary(),
            description=describe_state(location.description, location.state),
            state=location.state,
            exits=exits.exits,
        )

    # -------------------------------------------------------------------------
    # Occupancy
    # -------------------------------------------------------------------------

    def list_characters_at(self, location_id: int) -> CharacterListResult:
        """Living characters at a location. Dead ones keep their row but are not listed."""
        if self.repo.get(Location, location_id) is None:
            return CharacterListResult.not_found("Location")
        characters = [
            c.summary() for c in self.repo.find(Character, location_id=location_id, is_dead=False)
        ]
        return CharacterListResult(characters=characters, count=len(characters))

    def list_items_at(self, location_id: int) -> ItemListResult:
        """Items lying on the ground, not carried or stored in a container."""
        if self.repo.get(Location, location_id) is None:
            return ItemListResult.not_found("Location")
        items = [
            i.summary()
            for i in self.repo.find(
                Item, location_id=location_id, character_id=None, container_id=None
            )
        ]
        return ItemListResult(items=items, count=len(items))

    def list_containers_at(self, location_id: int) -> ContainerListResult:
        if self.repo.get(Location, location_id) is None:
            return ContainerListResult.not_found("Location")
        containers = [
            c.summary()
            for c in self.repo.find(Container, location_id=location_id, character_id=None)
        ]
        return ContainerListResult(containers=containers, count=len(containers))

    # -------------------------------------------------------------------------
    # State Flags
    # -------------------------------------------------------------------------

    def get_location_state(self, location_id: int, key: str) -> LocationStateResult:
        location = self.repo.get(Location, location_id)
        if location is None:
            return LocationStateResult.not_found("Location")
        return LocationStateResult(location_id=location_id, key=key, value=location.state.get(key))

    def get_all_location_state(self, location_id: int) -> LocationStateResult:
        location = self.repo.get(Location, location_id)
        if location is None:
            return LocationStateResult.not_found("Location")
        return LocationStateResult(location_id=location_id, state=location.state)

    def set_location_state(self, location_id: int, key: str, value: Any) -> LocationStateResult:
        if not is_json_value(value):
            return LocationStateResult.invalid("State values must be JSON-serialisable")
        with self.repo.transaction():
            location = self.repo.get(Location, location_id)
            if location is None:
                return LocationStateResult.not_found("Location")

            old_value = location.state.get(key)
            location.state[key] = value
            self.repo.update(location)
            self.events.log(
                location.world_id,
                "location_state_changed",
                target=EntityRef.location(location_id),
                data={"key": key, "old_value": old_value, "new_value": value},
            )

        return LocationStateResult(
            location_id=location_id, key=key, value=value, state=location.state
        )

    def clear_location_state(self, location_id: int, key: str) -> LocationStateResult:
        with self.repo.transaction():
            location = self.repo.get(Location, location_id)
            if location is None:
                return LocationStateResult.not_found("Location")

            old_value = location.state.pop(key, None)
            self.repo.update(location)
            self.events.log(
                location.world_id,
                "location_state_changed",
                target=EntityRef.location(location_id),
                data={"key": key, "old_value": old_value, "new_value": None, "action": "cleared"},
            )

        return LocationStateResult(
            location_id=location_id, key=key, cleared=True, state=location.state
        )
