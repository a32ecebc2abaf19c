"""
Connection (exit) models.

Connections are directed rows. A bidirectional link is two rows: the primary
row flagged `is_bidirectional` and a companion row pointing back, whose flags
are toggled independently.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field


class ConnectionType(str, Enum):
    """Physical nature of an exit."""

    PASSAGE = "passage"
    DOOR = "door"  # The only type that honours is_open
    PORTAL = "portal"
    TELEPORTER = "teleporter"
    MAGICAL = "magical"


class Connection(BaseModel):
    """A directed, traversable edge between two locations."""

    table: ClassVar[str] = "connections"

    id: int | None = None
    world_id: int
    from_location_id: int
    to_location_id: int
    connection_type: ConnectionType = ConnectionType.PASSAGE
    direction: str = Field(min_length=1, description='"north", "behind the bookshelf", ...')
    description: str | None = None
    is_visible: bool = True
    is_locked: bool = False
    is_open: bool = True
    required_item_id: int | None = Field(default=None, description="Key item for unlock_door")
    is_bidirectional: bool = False
    reverse_description: str | None = None

    def blocks_passage(self) -> str | None:
        """Return the reason this connection cannot be traversed, if any."""
        if self.is_locked:
            return "Connection is locked"
        if self.connection_type == ConnectionType.DOOR and not self.is_open:
            return "Door is closed"
        return None


class Exit(BaseModel):
    """
    An exit as seen from a location.

    Explicit exits mirror a Connection row. Implicit exits are derived from the
    location tree and have no id.
    """

    id: int | None = None
    direction: str
    description: str | None = None
    connection_type: ConnectionType = ConnectionType.PASSAGE
    is_locked: bool = False
    is_open: bool = True
    is_visible: bool = True
    to_location: str | None = None
    to_location_id: int
    is_implicit: bool = False

    @classmethod
    def from_connection(cls, connection: Connection, to_location: str | None = None) -> Exit:
        return cls(
            id=connection.id,
            direction=connection.direction,
            description=connection.description,
            connection_type=connection.connection_type,
            is_locked=connection.is_locked,
            is_open=connection.is_open,
            is_visible=connection.is_visible,
            to_location=to_location,
            to_location_id=connection.to_location_id,
            is_implicit=False,
        )

    def blocks_passage(self) -> str | None:
        """Return the reason this exit cannot be traversed, if any."""
        if self.is_locked:
            return "Connection is locked"
        if self.connection_type == ConnectionType.DOOR and not self.is_open:
            return "Door is closed"
        return None
