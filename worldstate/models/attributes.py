"""
Input models for creation operations.

Callers pass plain maps (from chat commands, HTTP payloads or AI tool calls);
these models validate them and supply defaults. Unknown keys are ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from worldstate.models.connection import ConnectionType
from worldstate.models.fields import JsonMap
from worldstate.models.quest import ObjectiveType
from worldstate.models.refs import EntityKind


class ConnectionAttributes(BaseModel):
    """Attributes for create_connection."""

    direction: str = Field(min_length=1)
    connection_type: ConnectionType = ConnectionType.PASSAGE
    description: str | None = None
    reverse_description: str | None = None
    is_visible: bool = True
    is_locked: bool = False
    is_open: bool = True
    required_item_id: int | None = None
    is_bidirectional: bool = False


class CharacterAttributes(BaseModel):
    """
    Attributes for player characters and NPCs.

    `max_hp` and `armor_class` default per character type when omitted.
    """

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location_id: int | None = None
    max_hp: int | None = Field(default=None, ge=1)
    strength: int = Field(default=10, ge=1, le=30)
    intelligence: int = Field(default=10, ge=1, le=30)
    charisma: int = Field(default=10, ge=1, le=30)
    athletics: int = Field(default=10, ge=1, le=30)
    armor_class: int | None = Field(default=None, ge=0)
    is_hostile: bool = False
    faction: str | None = None
    gold: int = Field(default=0, ge=0)
    additional_stats: JsonMap = Field(default_factory=dict)
    created_by: int | None = None


class ItemAttributes(BaseModel):
    """Attributes for create_item. Exactly one owner must be given."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location_id: int | None = None
    character_id: int | None = None
    container_id: int | None = None
    item_type: str = "misc"
    quantity: int = Field(default=1, ge=1)
    is_stackable: bool = False
    cost: int = Field(default=0, ge=0)
    properties: JsonMap = Field(default_factory=dict)

    @model_validator(mode="after")
    def _single_owner(self) -> ItemAttributes:
        owners = [self.location_id, self.character_id, self.container_id]
        if sum(owner is not None for owner in owners) != 1:
            raise ValueError("exactly one of location_id, character_id, container_id is required")
        return self


class ContainerAttributes(BaseModel):
    """Attributes for create_container. Exactly one holder must be given."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location_id: int | None = None
    character_id: int | None = None
    is_locked: bool = False
    is_open: bool = True
    capacity: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _single_holder(self) -> ContainerAttributes:
        if (self.location_id is None) == (self.character_id is None):
            raise ValueError("exactly one of location_id, character_id is required")
        return self


class QuestAttributes(BaseModel):
    """Attributes for create_quest."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    quest_type: str = "main"


class ObjectiveAttributes(BaseModel):
    """Attributes for add_quest_objective."""

    objective_type: ObjectiveType = ObjectiveType.CUSTOM
    description: str | None = None
    target_type: EntityKind | None = None
    target_id: int | None = None
    quantity: int = Field(default=1, ge=1)
    is_optional: bool = False
    display_order: int = 0

    @model_validator(mode="after")
    def _paired_target(self) -> ObjectiveAttributes:
        if (self.target_type is None) != (self.target_id is None):
            raise ValueError("target_type and target_id must be given together")
        return self


def coerce(model: type[BaseModel], attrs: BaseModel | dict[str, Any] | None) -> Any:
    """Validate caller-supplied attributes into `model`."""
    if isinstance(attrs, model):
        return attrs
    if isinstance(attrs, BaseModel):
        attrs = attrs.model_dump()
    return model.model_validate(attrs or {})
