"""
World Builder Service for World State.

Creates worlds, locations and containers, maintains the location tree, and
instantiates templates by deep-copying a whole world graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from worldstate.db.interfaces import WorldRepository
from worldstate.models import (
    Character,
    CharacterType,
    Connection,
    Container,
    ContainerAttributes,
    ContainerSummary,
    EntityKind,
    EntityRef,
    Item,
    Location,
    LocationSummary,
    World,
    WorldSummary,
)
from worldstate.models.attributes import coerce
from worldstate.services.base import ServiceResult
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)


# =============================================================================
# Result Models
# =============================================================================


class WorldCreateResult(ServiceResult):
    world_id: int | None = None
    world: WorldSummary | None = None


class LocationResult(ServiceResult):
    location_id: int | None = None
    location: LocationSummary | None = None


class ContainerResult(ServiceResult):
    container_id: int | None = None
    container: ContainerSummary | None = None


class CopyStats(BaseModel):
    """How many of each entity a world copy produced."""

    locations: int = 0
    connections: int = 0
    characters: int = 0
    containers: int = 0
    items: int = 0


class CopyWorldResult(ServiceResult):
    world_id: int | None = None
    world: WorldSummary | None = None
    stats: CopyStats | None = None


def _remap(id_map: dict[int, int], old_id: int | None) -> int | None:
    return id_map.get(old_id) if old_id is not None else None


# =============================================================================
# World Builder
# =============================================================================


@dataclass
class WorldBuilder:
    """
    Builds worlds and copies templates.

    `max_location_depth` bounds the length of any parent chain, which also
    keeps tree walks finite.
    """

    repo: WorldRepository
    events: EventLog
    max_location_depth: int = 10

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_world(
        self,
        name: str,
        description: str | None = None,
        created_by: int | None = None,
        is_template: bool = False,
    ) -> WorldCreateResult:
        try:
            world = World(
                name=name,
                description=description,
                created_by=created_by,
                is_template=is_template,
            )
        except ValidationError as e:
            return WorldCreateResult.invalid(e)

        with self.repo.transaction():
            world = self.repo.add(world)
            self.events.log(
                world.id,
                "world_created",
                actor=EntityRef.user(created_by),
                target=EntityRef(kind=EntityKind.WORLD, id=world.id),
                data={"is_template": is_template},
                created_by=created_by,
            )

        logger.info(f"Created world {world.id}: {world.name}")
        return WorldCreateResult(world_id=world.id, world=world.summary())

    def create_location(
        self,
        world_id: int,
        name: str,
        description: str | None = None,
        location_type: str | None = None,
        parent_location_id: int | None = None,
        state: dict[str, Any] | None = None,
    ) -> LocationResult:
        try:
            location = Location(
                world_id=world_id,
                name=name,
                description=description,
                location_type=location_type,
                parent_location_id=parent_location_id,
                state=state or {},
            )
        except ValidationError as e:
            return LocationResult.invalid(e)

        with self.repo.transaction():
            if self.repo.get(World, world_id) is None:
                return LocationResult.not_found("World")
            if parent_location_id is not None:
                parent = self.repo.get(Location, parent_location_id)
                if parent is None or parent.world_id != world_id:
                    return LocationResult.not_found("Location")
                if self._depth(parent) + 1 > self.max_location_depth:
                    return LocationResult.refused("Location nesting is too deep")

            location = self.repo.add(location)
            self.events.log(
                world_id,
                "location_created",
                target=EntityRef.location(location.id),
                data={
                    "location_type": location_type,
                    "parent_location_id": parent_location_id,
                },
            )

        return LocationResult(location_id=location.id, location=location.summary())

    def create_container(
        self,
        world_id: int,
        attrs: ContainerAttributes | dict[str, Any] | None,
    ) -> ContainerResult:
        """Create a container at a location or carried by a character."""
        try:
            attrs = coerce(ContainerAttributes, attrs)
        except ValidationError as e:
            return ContainerResult.invalid(e)

        with self.repo.transaction():
            if self.repo.get(World, world_id) is None:
                return ContainerResult.not_found("World")
            if attrs.location_id is not None:
                holder = self.repo.get(Location, attrs.location_id)
                missing = "Location"
            else:
                holder = self.repo.get(Character, attrs.character_id)
                missing = "Character"
            if holder is None or holder.world_id != world_id:
                return ContainerResult.not_found(missing)

            container = self.repo.add(Container(world_id=world_id, **attrs.model_dump()))
            self.events.log(
                world_id,
                "container_created",
                target=EntityRef.container(container.id),
                data={"location_id": container.location_id, "character_id": container.character_id},
            )

        return ContainerResult(container_id=container.id, container=container.summary())

    # -------------------------------------------------------------------------
    # Location Tree
    # -------------------------------------------------------------------------

    def _depth(self, location: Location) -> int:
        """Number of locations in the chain from the root down to `location`."""
        depth = 1
        parent_id = location.parent_location_id
        while parent_id is not None and depth <= self.max_location_depth:
            parent = self.repo.get(Location, parent_id)
            if parent is None:
                break
            depth += 1
            parent_id = parent.parent_location_id
        return depth

    def _subtree_height(self, location: Location) -> int:
        """Levels in the subtree rooted at `location`, itself included."""
        children = self.repo.find(
            Location, world_id=location.world_id, parent_location_id=location.id
        )
        if not children:
            return 1
        return 1 + max(self._subtree_height(child) for child in children)

    def _is_descendant(self, location_id: int, candidate: Location) -> bool:
        """True if `candidate` sits somewhere below `location_id`."""
        parent_id = candidate.parent_location_id
        steps = 0
        while parent_id is not None and steps <= self.max_location_depth:
            if parent_id == location_id:
                return True
            parent = self.repo.get(Location, parent_id)
            if parent is None:
                return False
            parent_id = parent.parent_location_id
            steps += 1
        return False

    def set_location_parent(
        self,
        location_id: int,
        parent_location_id: int | None,
    ) -> LocationResult:
        """
        Move a location under a new parent (or to the top level with None).

        Refuses anything that would create a cycle or a chain deeper than
        max_location_depth.
        """
        with self.repo.transaction():
            location = self.repo.get(Location, location_id)
            if location is None:
                return LocationResult.not_found("Location")

            if parent_location_id is not None:
                if parent_location_id == location_id:
                    return LocationResult.refused("A location cannot be its own parent")
                parent = self.repo.get(Location, parent_location_id)
                if parent is None or parent.world_id != location.world_id:
                    return LocationResult.not_found("Location")
                if self._is_descendant(location_id, parent):
                    return LocationResult.refused("A location cannot be moved under its own descendant")
                if self._depth(parent) + self._subtree_height(location) > self.max_location_depth:
                    return LocationResult.refused("Location nesting is too deep")

            old_parent_id = location.parent_location_id
            location.parent_location_id = parent_location_id
            self.repo.update(location)
            self.events.log(
                location.world_id,
                "location_parent_changed",
                target=EntityRef.location(location_id),
                data={
                    "old_parent_location_id": old_parent_id,
                    "new_parent_location_id": parent_location_id,
                },
            )

        return LocationResult(location_id=location_id, location=location.summary())

    # -------------------------------------------------------------------------
    # Template Copy
    # -------------------------------------------------------------------------

    def copy_world(
        self,
        template_world_id: int,
        new_name: str | None = None,
        created_by: int | None = None,
        is_template: bool = False,
    ) -> CopyWorldResult:
        """
        Deep-copy a world into a new one, all in one transaction.

        Characters come back to life at full health. Copies belong to no
        user, so player characters become NPCs. Every cross-reference
        (parents, owners, connection endpoints, keys) is remapped into the
        new world.
        """
        with self.repo.transaction():
            template = self.repo.get(World, template_world_id)
            if template is None:
                return CopyWorldResult.not_found("Template world")

            world = self.repo.add(
                World(
                    name=new_name or f"{template.name} (Copy)",
                    description=template.description,
                    created_by=created_by,
                    is_template=is_template,
                    time_of_day=template.time_of_day,
                    days_elapsed=0,
                    world_state=dict(template.world_state),
                )
            )
            stats = CopyStats()

            # Locations: create flat, then restore parents once every id is known
            location_map: dict[int, int] = {}
            old_locations = self.repo.find(Location, world_id=template_world_id)
            for old in old_locations:
                new = self.repo.add(
                    old.model_copy(update={"id": None, "world_id": world.id, "parent_location_id": None})
                )
                location_map[old.id] = new.id
            for old in old_locations:
                if old.parent_location_id is None:
                    continue
                new = self.repo.get(Location, location_map[old.id])
                new.parent_location_id = _remap(location_map, old.parent_location_id)
                self.repo.update(new)
            stats.locations = len(location_map)

            character_map: dict[int, int] = {}
            for old in self.repo.find(Character, world_id=template_world_id):
                new = self.repo.add(
                    old.model_copy(
                        update={
                            "id": None,
                            "world_id": world.id,
                            "location_id": _remap(location_map, old.location_id),
                            "user_id": None,
                            "character_type": CharacterType.NPC,
                            "current_hp": old.max_hp,
                            "is_dead": False,
                        }
                    )
                )
                character_map[old.id] = new.id
            stats.characters = len(character_map)

            container_map: dict[int, int] = {}
            for old in self.repo.find(Container, world_id=template_world_id):
                new = self.repo.add(
                    old.model_copy(
                        update={
                            "id": None,
                            "world_id": world.id,
                            "location_id": _remap(location_map, old.location_id),
                            "character_id": _remap(character_map, old.character_id),
                        }
                    )
                )
                container_map[old.id] = new.id
            stats.containers = len(container_map)

            item_map: dict[int, int] = {}
            for old in self.repo.find(Item, world_id=template_world_id):
                new = self.repo.add(
                    old.model_copy(
                        update={
                            "id": None,
                            "world_id": world.id,
                            "location_id": _remap(location_map, old.location_id),
                            "character_id": _remap(character_map, old.character_id),
                            "container_id": _remap(container_map, old.container_id),
                        }
                    )
                )
                item_map[old.id] = new.id
            stats.items = len(item_map)

            # Connections last so keys can be remapped to the copied items
            for old in self.repo.find(Connection, world_id=template_world_id):
                from_id = _remap(location_map, old.from_location_id)
                to_id = _remap(location_map, old.to_location_id)
                if from_id is None or to_id is None:
                    continue
                self.repo.add(
                    old.model_copy(
                        update={
                            "id": None,
                            "world_id": world.id,
                            "from_location_id": from_id,
                            "to_location_id": to_id,
                            "required_item_id": _remap(item_map, old.required_item_id),
                        }
                    )
                )
                stats.connections += 1

            self.events.log(
                world.id,
                "world_copied",
                actor=EntityRef.user(created_by),
                target=EntityRef(kind=EntityKind.WORLD, id=world.id),
                data={"source_world_id": template_world_id, **stats.model_dump()},
                created_by=created_by,
            )

        logger.info(
            f"Copied world {template_world_id} into {world.id}: "
            f"{stats.locations} locations, {stats.characters} characters, {stats.items} items"
        )
        return CopyWorldResult(world_id=world.id, world=world.summary(), stats=stats)
