"""
Event Log Service for World State.

Append-only record of every state change. Each mutating service writes its
event inside the same repository transaction as the mutation itself, so a
change and its log entry are committed or rolled back together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import Field, ValidationError

from worldstate.db.interfaces import WorldRepository
from worldstate.models import EntityRef, EventSummary, GameEvent, World
from worldstate.services.base import Clock, ServiceResult, utc_now

logger = logging.getLogger(__name__)

# Exact-match filters accepted by get_events
EVENT_FILTERS = frozenset(
    {
        "event_type",
        "actor_type",
        "actor_id",
        "target_type",
        "target_id",
        "room_id",
        "created_by",
    }
)

# Stored column names record() accepts in place of actor, target and data
EVENT_COLUMNS = frozenset(
    {"actor_type", "actor_id", "target_type", "target_id", "event_data"}
)


class EventResult(ServiceResult):
    """A newly logged event."""

    event: EventSummary | None = None


class EventListResult(ServiceResult):
    """Events, newest first."""

    events: list[EventSummary] = Field(default_factory=list)
    count: int = 0


@dataclass
class EventLog:
    """Writes and queries the per-world event log."""

    repo: WorldRepository
    clock: Clock = utc_now
    default_limit: int = 50

    def log(
        self,
        world_id: int,
        event_type: str,
        *,
        actor: EntityRef | dict[str, Any] | None = None,
        target: EntityRef | dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        room_id: int | None = None,
        created_by: int | None = None,
    ) -> GameEvent:
        """
        Append one event.

        Storage failures propagate so the caller's transaction rolls back.
        A malformed reference raises ValidationError.
        """
        actor = EntityRef.coerce(actor)
        target = EntityRef.coerce(target)
        event = GameEvent(
            world_id=world_id,
            room_id=room_id,
            event_type=event_type,
            actor_type=actor.kind if actor else None,
            actor_id=actor.id if actor else None,
            target_type=target.kind if target else None,
            target_id=target.id if target else None,
            event_data=data or {},
            created_at=self.clock(),
            created_by=created_by,
        )
        stored = self.repo.append_event(event)
        logger.debug(f"Logged {event_type} (event {stored.id}) in world {world_id}")
        return stored

    def record(
        self,
        world_id: int,
        event_type: str,
        *,
        actor: EntityRef | dict[str, Any] | None = None,
        target: EntityRef | dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        room_id: int | None = None,
        created_by: int | None = None,
        **columns: Any,
    ) -> EventResult:
        """
        Log an event on behalf of an outside caller (chat layer, GM tooling).

        References may be EntityRefs or plain maps. The stored column names
        (actor_type/actor_id, target_type/target_id, event_data) are accepted
        in place of actor, target and data.
        """
        unknown = sorted(set(columns) - EVENT_COLUMNS)
        if unknown:
            return EventResult.invalid(f"Unknown event field: {', '.join(unknown)}")
        try:
            actor = EntityRef.coerce(actor if actor is not None else _column_ref(columns, "actor"))
            target = EntityRef.coerce(
                target if target is not None else _column_ref(columns, "target")
            )
        except ValidationError as e:
            return EventResult.invalid(e)
        if data is None:
            data = columns.get("event_data")

        with self.repo.transaction():
            if self.repo.get(World, world_id) is None:
                return EventResult.not_found("World")
            try:
                event = self.log(
                    world_id,
                    event_type,
                    actor=actor,
                    target=target,
                    data=data,
                    room_id=room_id,
                    created_by=created_by,
                )
            except ValidationError as e:
                return EventResult.invalid(e)
        return EventResult(event=event.summary())

    def get_recent_events(
        self,
        world_id: int,
        limit: int | None = None,
        room_id: int | None = None,
    ) -> EventListResult:
        """Most recent events, optionally restricted to one play session."""
        criteria: dict[str, Any] = {}
        if room_id is not None:
            criteria["room_id"] = room_id
        events = self.repo.list_events(
            world_id, limit=limit if limit is not None else self.default_limit, **criteria
        )
        return _listing(events)

    def get_events(
        self,
        world_id: int,
        filters: dict[str, Any] | None = None,
    ) -> EventListResult:
        """All events matching every filter exactly."""
        filters = dict(filters or {})
        unknown = sorted(set(filters) - EVENT_FILTERS)
        if unknown:
            return EventListResult.invalid(f"Unknown event filter: {', '.join(unknown)}")
        return _listing(self.repo.list_events(world_id, **filters))


def _listing(events: list[GameEvent]) -> EventListResult:
    summaries = [e.summary() for e in events]
    return EventListResult(events=summaries, count=len(summaries))


def _column_ref(columns: dict[str, Any], prefix: str) -> dict[str, Any] | None:
    kind = columns.get(f"{prefix}_type")
    ref_id = columns.get(f"{prefix}_id")
    if kind is None and ref_id is None:
        return None
    return {"kind": kind, "id": ref_id}
