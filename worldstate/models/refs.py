"""
Polymorphic references for World State.

Events and quest objectives point at "some entity" through a kind tag plus an
integer id. Resolving a reference into a stored row is an explicit dispatch on
the kind (see `worldstate.services.base.resolve_ref`).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class EntityKind(str, Enum):
    """Kinds of things an event or objective can reference."""

    WORLD = "World"
    LOCATION = "Location"
    CONNECTION = "Connection"
    CHARACTER = "Character"
    CONTAINER = "Container"
    ITEM = "Item"
    QUEST = "Quest"
    QUEST_OBJECTIVE = "QuestObjective"

    # Not stored in the world graph
    USER = "User"
    SYSTEM = "System"


class EntityRef(BaseModel):
    """A tagged reference: entity kind plus id."""

    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    id: int | None = None

    def __str__(self) -> str:
        if self.id is None:
            return self.kind.value
        return f"{self.kind.value}#{self.id}"

    @classmethod
    def coerce(cls, value: EntityRef | dict[str, Any] | None) -> EntityRef | None:
        """Accept a reference or its plain-map form. Raises ValidationError."""
        if value is None or isinstance(value, EntityRef):
            return value
        return cls.model_validate(value)

    @classmethod
    def system(cls) -> EntityRef:
        return cls(kind=EntityKind.SYSTEM)

    @classmethod
    def user(cls, user_id: int | None) -> EntityRef:
        """Reference a user, or the system when no user is known."""
        if user_id is None:
            return cls.system()
        return cls(kind=EntityKind.USER, id=user_id)

    @classmethod
    def character(cls, character_id: int) -> EntityRef:
        return cls(kind=EntityKind.CHARACTER, id=character_id)

    @classmethod
    def location(cls, location_id: int) -> EntityRef:
        return cls(kind=EntityKind.LOCATION, id=location_id)

    @classmethod
    def container(cls, container_id: int) -> EntityRef:
        return cls(kind=EntityKind.CONTAINER, id=container_id)
