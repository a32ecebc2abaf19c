"""
Game event model.

Events are immutable records of state changes, appended to the `game_events`
log and never updated or deleted by normal operation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from worldstate.models.fields import JsonMap
from worldstate.models.refs import EntityKind, EntityRef


class EventSummary(BaseModel):
    """Public view of an event."""

    id: int
    event_type: str
    actor: str | None = None
    target: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    room_id: int | None = None
    created_at: datetime


class GameEvent(BaseModel):
    """
    One entry in a world's event log.

    `actor` is who caused the change (a character, user or the system);
    `target` is the entity that was changed.
    """

    table: ClassVar[str] = "game_events"

    id: int | None = None
    world_id: int
    room_id: int | None = Field(default=None, description="Play session, if any")
    event_type: str = Field(min_length=1, description="e.g. character_damaged")

    actor_type: EntityKind | None = None
    actor_id: int | None = None
    target_type: EntityKind | None = None
    target_id: int | None = None

    event_data: JsonMap = Field(default_factory=dict, description="Event-specific payload")
    created_at: datetime
    created_by: int | None = None

    @property
    def actor(self) -> EntityRef | None:
        if self.actor_type is None:
            return None
        return EntityRef(kind=self.actor_type, id=self.actor_id)

    @property
    def target(self) -> EntityRef | None:
        if self.target_type is None:
            return None
        return EntityRef(kind=self.target_type, id=self.target_id)

    def summary(self) -> EventSummary:
        actor = self.actor
        target = self.target
        return EventSummary(
            id=self.id,
            event_type=self.event_type,
            actor=str(actor) if actor else None,
            target=str(target) if target else None,
            data=dict(self.event_data),
            room_id=self.room_id,
            created_at=self.created_at,
        )
