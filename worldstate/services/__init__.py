"""
Services for World State.

One service per area of the world graph. All share one repository and one
EventLog; every mutation and its event are written in one transaction.
"""

from __future__ import annotations

from worldstate.services.base import ErrorKind, ServiceResult, resolve_ref
from worldstate.services.builder import (
    ContainerResult,
    CopyStats,
    CopyWorldResult,
    LocationResult,
    WorldBuilder,
    WorldCreateResult,
)
from worldstate.services.character import (
    CharacterResult,
    CharacterService,
    HealthResult,
    InventoryResult,
    MoveResult,
    PartyMember,
    PartyMoveResult,
    TransferResult,
)
from worldstate.services.connection import (
    ConnectionResult,
    ConnectionService,
    ExitListResult,
    ExitResult,
    TraversalResult,
    reverse_direction,
)
from worldstate.services.event_log import EventListResult, EventLog, EventResult
from worldstate.services.item import ItemResult, ItemService
from worldstate.services.location import (
    CharacterListResult,
    ContainerListResult,
    ItemListResult,
    LocationDescriptionResult,
    LocationService,
    LocationStateResult,
)
from worldstate.services.quest import (
    ObjectiveResult,
    ObjectiveTargetResult,
    QuestListResult,
    QuestProgressResult,
    QuestResult,
    QuestService,
)
from worldstate.services.world import StateValueResult, WorldResult, WorldService, WorldTimeResult

__all__ = [
    # Shared
    "ErrorKind",
    "ServiceResult",
    "resolve_ref",
    # Event log
    "EventLog",
    "EventResult",
    "EventListResult",
    # World
    "WorldService",
    "WorldResult",
    "WorldTimeResult",
    "StateValueResult",
    # Locations
    "LocationService",
    "LocationDescriptionResult",
    "LocationStateResult",
    "CharacterListResult",
    "ItemListResult",
    "ContainerListResult",
    # Connections
    "ConnectionService",
    "ConnectionResult",
    "ExitListResult",
    "ExitResult",
    "TraversalResult",
    "reverse_direction",
    # Items
    "ItemService",
    "ItemResult",
    # Characters
    "CharacterService",
    "CharacterResult",
    "HealthResult",
    "InventoryResult",
    "MoveResult",
    "PartyMember",
    "PartyMoveResult",
    "TransferResult",
    # Quests
    "QuestService",
    "QuestResult",
    "QuestListResult",
    "ObjectiveResult",
    "ObjectiveTargetResult",
    "QuestProgressResult",
    # World building
    "WorldBuilder",
    "WorldCreateResult",
    "LocationResult",
    "ContainerResult",
    "CopyStats",
    "CopyWorldResult",
]
