"""
Connection Service for World State.

The exit graph of a world. Explicit exits are stored Connection rows;
implicit exits are derived from the location tree on every query:

- a location reaches its parent,
- its siblings (same non-null parent),
- and its direct children.

When an explicit exit already leads to a destination, the implicit exit to
that destination is suppressed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import Field, ValidationError

from worldstate.db.interfaces import WorldRepository, first
from worldstate.models import (
    Character,
    Connection,
    ConnectionAttributes,
    ConnectionType,
    EntityKind,
    EntityRef,
    Exit,
    Item,
    Location,
    World,
)
from worldstate.models.attributes import coerce
from worldstate.services.base import ServiceResult
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)


# =============================================================================
# Direction Labels
# =============================================================================

REVERSE_DIRECTIONS: dict[str, str] = {
    "north": "south",
    "south": "north",
    "east": "west",
    "west": "east",
    "up": "down",
    "down": "up",
    "northeast": "southwest",
    "southwest": "northeast",
    "northwest": "southeast",
    "southeast": "northwest",
}


def reverse_direction(direction: str) -> str:
    """Opposite compass label. Custom labels have no opposite and pass through."""
    return REVERSE_DIRECTIONS.get(direction, direction)


def implicit_direction(destination: Location) -> str:
    return f"to {destination.name.lower()}"


# =============================================================================
# Result Models
# =============================================================================


class ConnectionResult(ServiceResult):
    """Result of creating or changing a connection."""

    connection_id: int | None = None
    connection: Connection | None = None
    created: bool = False
    upgraded: bool = False


class ExitListResult(ServiceResult):
    """Exits out of a location."""

    location_id: int | None = None
    exits: list[Exit] = Field(default_factory=list)
    count: int = 0


class ExitResult(ServiceResult):
    """A single resolved exit."""

    exit: Exit | None = None


class TraversalResult(ServiceResult):
    """Result of moving a character through an exit."""

    character_id: int | None = None
    from_location_id: int | None = None
    new_location_id: int | None = None
    direction: str | None = None
    via_connection_id: int | None = None
    is_implicit: bool = False


# =============================================================================
# Connection Service
# =============================================================================


@dataclass
class ConnectionService:
    """
    Explicit and implicit exits, door state and traversal.

    Bidirectional links are two directed rows. Door operations change one row
    only; the companion row keeps its own flags.
    """

    repo: WorldRepository
    events: EventLog

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_connection(
        self,
        world_id: int,
        from_location_id: int,
        to_location_id: int,
        attrs: ConnectionAttributes | dict[str, Any] | None,
    ) -> ConnectionResult:
        """
        Create an exit, merging with any existing link between the two locations.

        - An existing bidirectional row in either direction wins; nothing changes.
        - A bidirectional request upgrades an existing one-way row in place and
          makes sure the opposite row exists.
        - A one-way request next to any existing row is a no-op.
        - Otherwise the forward row (and its companion, if bidirectional) is created.
        """
        try:
            attrs = coerce(ConnectionAttributes, attrs)
        except ValidationError as e:
            return ConnectionResult.invalid(e)

        with self.repo.transaction():
            if self.repo.get(World, world_id) is None:
                return ConnectionResult.not_found("World")
            if from_location_id == to_location_id:
                return ConnectionResult.invalid("Cannot connect a location to itself")
            for location_id in (from_location_id, to_location_id):
                location = self.repo.get(Location, location_id)
                if location is None or location.world_id != world_id:
                    return ConnectionResult.not_found("Location")
            if attrs.required_item_id is not None:
                key = self.repo.get(Item, attrs.required_item_id)
                if key is None or key.world_id != world_id:
                    return ConnectionResult.not_found("Item")

            forward = first(
                self.repo.find(
                    Connection,
                    world_id=world_id,
                    from_location_id=from_location_id,
                    to_location_id=to_location_id,
                )
            )
            reverse = first(
                self.repo.find(
                    Connection,
                    world_id=world_id,
                    from_location_id=to_location_id,
                    to_location_id=from_location_id,
                )
            )

            for existing in (forward, reverse):
                if existing is not None and existing.is_bidirectional:
                    return ConnectionResult(
                        connection_id=existing.id,
                        connection=existing,
                        message="Connection already exists (bidirectional)",
                    )

            existing = forward or reverse
            if existing is not None:
                if not attrs.is_bidirectional:
                    return ConnectionResult(
                        connection_id=existing.id,
                        connection=existing,
                        message="Connection already exists",
                    )
                if existing is forward:
                    return self._upgrade(forward, reverse, attrs, is_forward=True)
                return self._upgrade(existing, None, attrs, is_forward=False)

            return self._create_pair(world_id, from_location_id, to_location_id, attrs)

    def _upgrade(
        self,
        primary: Connection,
        companion: Connection | None,
        attrs: ConnectionAttributes,
        is_forward: bool,
    ) -> ConnectionResult:
        """Turn a one-way row into the primary row of a bidirectional pair."""
        primary.is_bidirectional = True
        self.repo.update(primary)

        synthesized = companion is None
        if companion is None:
            # The new row takes the caller's connection type. A forward row gets
            # the caller's reverse text, a reverse row the caller's forward text.
            if is_forward:
                description = attrs.reverse_description or primary.description
            else:
                description = attrs.description or primary.description
            companion = self.repo.add(
                Connection(
                    world_id=primary.world_id,
                    from_location_id=primary.to_location_id,
                    to_location_id=primary.from_location_id,
                    connection_type=attrs.connection_type,
                    direction=reverse_direction(primary.direction),
                    description=description,
                    is_visible=primary.is_visible,
                    is_locked=primary.is_locked,
                    is_open=primary.is_open,
                    required_item_id=primary.required_item_id,
                    is_bidirectional=False,
                )
            )

        self.events.log(
            primary.world_id,
            "connection_upgraded",
            target=EntityRef(kind=EntityKind.CONNECTION, id=primary.id),
            data={
                "companion_id": companion.id,
                "companion_created": synthesized,
                "direction": primary.direction,
            },
        )
        logger.info(f"Upgraded connection {primary.id} to bidirectional")
        return ConnectionResult(
            connection_id=primary.id,
            connection=primary,
            upgraded=True,
            message="Upgraded existing connection to bidirectional",
        )

    def _create_pair(
        self,
        world_id: int,
        from_location_id: int,
        to_location_id: int,
        attrs: ConnectionAttributes,
    ) -> ConnectionResult:
        connection = self.repo.add(
            Connection(
                world_id=world_id,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                connection_type=attrs.connection_type,
                direction=attrs.direction,
                description=attrs.description,
                is_visible=attrs.is_visible,
                is_locked=attrs.is_locked,
                is_open=attrs.is_open,
                required_item_id=attrs.required_item_id,
                is_bidirectional=attrs.is_bidirectional,
                reverse_description=attrs.reverse_description,
            )
        )
        self._log_created(connection)

        if attrs.is_bidirectional:
            companion = self.repo.add(
                Connection(
                    world_id=world_id,
                    from_location_id=to_location_id,
                    to_location_id=from_location_id,
                    connection_type=attrs.connection_type,
                    direction=reverse_direction(attrs.direction),
                    description=attrs.reverse_description or attrs.description,
                    is_visible=attrs.is_visible,
                    is_locked=attrs.is_locked,
                    is_open=attrs.is_open,
                    required_item_id=attrs.required_item_id,
                    is_bidirectional=False,
                )
            )
            self._log_created(companion, companion_of=connection.id)

        return ConnectionResult(connection_id=connection.id, connection=connection, created=True)

    def _log_created(self, connection: Connection, companion_of: int | None = None) -> None:
        data: dict[str, Any] = {
            "from_location_id": connection.from_location_id,
            "to_location_id": connection.to_location_id,
            "direction": connection.direction,
            "is_bidirectional": connection.is_bidirectional,
        }
        if companion_of is not None:
            data["companion_of"] = companion_of
        self.events.log(
            connection.world_id,
            "connection_created",
            target=EntityRef(kind=EntityKind.CONNECTION, id=connection.id),
            data=data,
        )

    # -------------------------------------------------------------------------
    # Exit Queries
    # -------------------------------------------------------------------------

    def _implicit_exit(self, destination: Location) -> Exit:
        return Exit(
            id=None,
            direction=implicit_direction(destination),
            description=None,
            connection_type=ConnectionType.PASSAGE,
            to_location=destination.name,
            to_location_id=destination.id,
            is_implicit=True,
        )

    def _implicit_exits(self, location: Location) -> list[Exit]:
        """Parent, siblings, then children, re-derived from the tree on each call."""
        neighbours: list[Location] = []
        parent_id = location.parent_location_id
        if parent_id is not None:
            parent = self.repo.get(Location, parent_id)
            if parent is not None:
                neighbours.append(parent)
            siblings = self.repo.find(
                Location, world_id=location.world_id, parent_location_id=parent_id
            )
            neighbours.extend(s for s in siblings if s.id != location.id)
        neighbours.extend(
            self.repo.find(Location, world_id=location.world_id, parent_location_id=location.id)
        )
        return [self._implicit_exit(n) for n in neighbours]

    def _explicit_exits(self, location: Location) -> list[Exit]:
        exits = []
        for connection in self.repo.find(
            Connection, from_location_id=location.id, is_visible=True
        ):
            destination = self.repo.get(Location, connection.to_location_id)
            name = destination.name if destination else None
            exits.append(Exit.from_connection(connection, to_location=name))
        return exits

    def get_implicit_connections(self, location_id: int) -> ExitListResult:
        location = self.repo.get(Location, location_id)
        if location is None:
            return ExitListResult.not_found("Location")
        exits = self._implicit_exits(location)
        return ExitListResult(location_id=location_id, exits=exits, count=len(exits))

    def list_exits(self, location_id: int) -> ExitListResult:
        """Visible explicit exits plus implicit exits to places they do not reach."""
        location = self.repo.get(Location, location_id)
        if location is None:
            return ExitListResult.not_found("Location")

        explicit = self._explicit_exits(location)
        reached = {e.to_location_id for e in explicit}
        implicit = [e for e in self._implicit_exits(location) if e.to_location_id not in reached]

        exits = explicit + implicit
        return ExitListResult(location_id=location_id, exits=exits, count=len(exits))

    def get_connection(self, from_location_id: int, direction: str) -> ExitResult:
        """Resolve an exit by exact direction label. Explicit visible rows win."""
        connection = first(
            self.repo.find(
                Connection,
                from_location_id=from_location_id,
                direction=direction,
                is_visible=True,
            )
        )
        if connection is not None:
            destination = self.repo.get(Location, connection.to_location_id)
            name = destination.name if destination else None
            return ExitResult(exit=Exit.from_connection(connection, to_location=name))

        location = self.repo.get(Location, from_location_id)
        if location is not None:
            for implicit in self._implicit_exits(location):
                if implicit.direction == direction:
                    return ExitResult(exit=implicit)

        return ExitResult.not_found("Connection")

    # -------------------------------------------------------------------------
    # Door State
    # -------------------------------------------------------------------------

    def _change_state(
        self,
        connection_id: int,
        action: str,
        changes: dict[str, Any],
        message: str,
        data: dict[str, Any] | None = None,
    ) -> ConnectionResult:
        with self.repo.transaction():
            connection = self.repo.get(Connection, connection_id)
            if connection is None:
                return ConnectionResult.not_found("Connection")

            for name, value in changes.items():
                setattr(connection, name, value)
            self.repo.update(connection)
            self.events.log(
                connection.world_id,
                "connection_state_changed",
                target=EntityRef(kind=EntityKind.CONNECTION, id=connection_id),
                data={"action": action, **(data or {})},
            )

        return ConnectionResult(connection_id=connection_id, connection=connection, message=message)

    def open_door(self, connection_id: int) -> ConnectionResult:
        return self._change_state(connection_id, "opened", {"is_open": True}, "Door opened")

    def close_door(self, connection_id: int) -> ConnectionResult:
        return self._change_state(connection_id, "closed", {"is_open": False}, "Door closed")

    def lock_door(self, connection_id: int, with_item_id: int | None = None) -> ConnectionResult:
        """Lock (and close) a door. The item, if given, becomes its key."""
        return self._change_state(
            connection_id,
            "locked",
            {"is_locked": True, "is_open": False, "required_item_id": with_item_id},
            "Door locked",
            data={"required_item_id": with_item_id},
        )

    def unlock_door(self, connection_id: int, using_item_id: int | None = None) -> ConnectionResult:
        """Unlock a door. A keyed door needs exactly its key item."""
        with self.repo.transaction():
            connection = self.repo.get(Connection, connection_id)
            if connection is None:
                return ConnectionResult.not_found("Connection")
            if connection.required_item_id is not None and using_item_id != connection.required_item_id:
                logger.warning(
                    f"Wrong key {using_item_id} for connection {connection_id} "
                    f"(needs {connection.required_item_id})"
                )
                return ConnectionResult.invalid("Wrong key")

            return self._change_state(
                connection_id,
                "unlocked",
                {"is_locked": False},
                "Door unlocked",
                data={"used_item_id": using_item_id},
            )

    def reveal_exit(self, connection_id: int) -> ConnectionResult:
        return self._change_state(connection_id, "revealed", {"is_visible": True}, "Exit revealed")

    def hide_exit(self, connection_id: int) -> ConnectionResult:
        return self._change_state(connection_id, "hidden", {"is_visible": False}, "Exit hidden")

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def _move_through(self, character: Character, exit_: Exit) -> TraversalResult:
        old_location_id = character.location_id
        character.location_id = exit_.to_location_id
        self.repo.update(character)

        ref = EntityRef.character(character.id)
        self.events.log(
            character.world_id,
            "character_moved",
            actor=ref,
            target=ref,
            data={
                "from_location_id": old_location_id,
                "to_location_id": exit_.to_location_id,
                "via_connection_id": exit_.id,
                "direction": exit_.direction,
                "is_implicit": exit_.is_implicit,
            },
        )
        return TraversalResult(
            character_id=character.id,
            from_location_id=old_location_id,
            new_location_id=exit_.to_location_id,
            direction=exit_.direction,
            via_connection_id=exit_.id,
            is_implicit=exit_.is_implicit,
        )

    def traverse_connection(self, character_id: int, connection_id: int) -> TraversalResult:
        """Move a character through a specific stored connection."""
        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return TraversalResult.not_found("Character")
            connection = self.repo.get(Connection, connection_id)
            if connection is None:
                return TraversalResult.not_found("Connection")

            blocked = connection.blocks_passage()
            if blocked:
                return TraversalResult.refused(blocked)

            return self._move_through(character, Exit.from_connection(connection))

    def traverse_by_direction(self, character_id: int, direction: str) -> TraversalResult:
        """Move a character through the exit with this label at their location."""
        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return TraversalResult.not_found("Character")
            if character.location_id is None:
                return TraversalResult.not_found("Connection")

            found = self.get_connection(character.location_id, direction)
            if not found.success or found.exit is None:
                return TraversalResult.not_found("Connection")

            blocked = found.exit.blocks_passage()
            if blocked:
                return TraversalResult.refused(blocked)

            return self._move_through(character, found.exit)

