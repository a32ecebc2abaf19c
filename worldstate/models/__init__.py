"""
Core Data Models for World State.

These models define the entity graph of a world:
World -> Location -> Character / Container / Item, plus Connections,
Quests and the append-only GameEvent log.
"""

from worldstate.models.attributes import (
    CharacterAttributes,
    ConnectionAttributes,
    ContainerAttributes,
    ItemAttributes,
    ObjectiveAttributes,
    QuestAttributes,
)
from worldstate.models.character import (
    Character,
    CharacterStats,
    CharacterSummary,
    CharacterType,
    Container,
    ContainerSummary,
)
from worldstate.models.connection import Connection, ConnectionType, Exit
from worldstate.models.event import EventSummary, GameEvent
from worldstate.models.fields import JsonMap, parse_json_map
from worldstate.models.item import Item, ItemSummary
from worldstate.models.quest import (
    ObjectiveSummary,
    ObjectiveType,
    Quest,
    QuestObjective,
    QuestStatus,
    QuestSummary,
)
from worldstate.models.refs import EntityKind, EntityRef
from worldstate.models.world import Location, LocationSummary, TimeOfDay, World, WorldSummary

__all__ = [
    # References and fields
    "EntityKind",
    "EntityRef",
    "JsonMap",
    "parse_json_map",
    # World
    "World",
    "WorldSummary",
    "TimeOfDay",
    "Location",
    "LocationSummary",
    # Connection
    "Connection",
    "ConnectionType",
    "Exit",
    # Character
    "Character",
    "CharacterType",
    "CharacterStats",
    "CharacterSummary",
    "Container",
    "ContainerSummary",
    # Item
    "Item",
    "ItemSummary",
    # Quest
    "Quest",
    "QuestStatus",
    "QuestSummary",
    "QuestObjective",
    "ObjectiveType",
    "ObjectiveSummary",
    # Event
    "GameEvent",
    "EventSummary",
    # Inputs
    "CharacterAttributes",
    "ConnectionAttributes",
    "ContainerAttributes",
    "ItemAttributes",
    "ObjectiveAttributes",
    "QuestAttributes",
]
