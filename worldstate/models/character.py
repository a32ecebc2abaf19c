"""
Character and Container models.

Characters are players (owned by a user) or NPCs. Hit points and death are
only changed through damage and healing; `is_dead` is true exactly when
`current_hp` is 0.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from worldstate.models.fields import JsonMap


class CharacterType(str, Enum):
    """Who controls a character."""

    PLAYER = "player"
    NPC = "npc"


class CharacterStats(BaseModel):
    """The four core stats plus armor class."""

    strength: int
    intelligence: int
    charisma: int
    athletics: int
    armor_class: int


class CharacterSummary(BaseModel):
    """Public view of a character."""

    id: int
    name: str
    description: str | None = None
    hp: str
    current_hp: int
    max_hp: int
    is_dead: bool
    character_type: CharacterType
    location_id: int | None = None
    is_hostile: bool = False
    stats: CharacterStats


class Character(BaseModel):
    """Any animate entity in a world."""

    table: ClassVar[str] = "characters"

    id: int | None = None
    world_id: int
    location_id: int | None = None
    user_id: int | None = Field(default=None, description="Owning user; None for NPCs")
    character_type: CharacterType = CharacterType.NPC
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None

    max_hp: int = Field(default=10, ge=1)
    current_hp: int = Field(default=10, ge=0)
    is_dead: bool = False

    strength: int = Field(default=10, ge=1, le=30)
    intelligence: int = Field(default=10, ge=1, le=30)
    charisma: int = Field(default=10, ge=1, le=30)
    athletics: int = Field(default=10, ge=1, le=30)
    armor_class: int = Field(default=10, ge=0)

    is_hostile: bool = False
    faction: str | None = None
    gold: int = Field(default=0, ge=0)
    additional_stats: JsonMap = Field(default_factory=dict)
    created_by: int | None = None

    @property
    def hp(self) -> str:
        return f"{self.current_hp}/{self.max_hp}"

    def is_player(self) -> bool:
        return self.user_id is not None

    @staticmethod
    def stat_modifier(stat_value: int) -> int:
        """D20-style modifier for a stat value."""
        return (stat_value - 10) // 2

    def set_hp(self, new_hp: int) -> None:
        """Clamp and store hit points, keeping the death flag in sync."""
        self.current_hp = max(0, min(self.max_hp, new_hp))
        self.is_dead = self.current_hp == 0

    def summary(self) -> CharacterSummary:
        return CharacterSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            hp=self.hp,
            current_hp=self.current_hp,
            max_hp=self.max_hp,
            is_dead=self.is_dead,
            character_type=self.character_type,
            location_id=self.location_id,
            is_hostile=self.is_hostile,
            stats=CharacterStats(
                strength=self.strength,
                intelligence=self.intelligence,
                charisma=self.charisma,
                athletics=self.athletics,
                armor_class=self.armor_class,
            ),
        )


class ContainerSummary(BaseModel):
    """Public view of a container."""

    id: int
    name: str
    description: str | None = None
    is_locked: bool
    is_open: bool
    capacity: int | None = None


class Container(BaseModel):
    """A chest, bag or similar; sits at a location or is carried by a character."""

    table: ClassVar[str] = "containers"

    id: int | None = None
    world_id: int
    location_id: int | None = None
    character_id: int | None = None
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_locked: bool = False
    is_open: bool = True
    capacity: int | None = Field(default=None, ge=0)

    def summary(self) -> ContainerSummary:
        return ContainerSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            is_locked=self.is_locked,
            is_open=self.is_open,
            capacity=self.capacity,
        )
