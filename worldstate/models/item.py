"""
Item model.

An item is held by exactly one owner: a location (on the ground), a character
(in inventory) or a container. `place()` is the only way owners change.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from worldstate.models.fields import JsonMap
from worldstate.models.refs import EntityKind, EntityRef

OWNER_FIELDS: dict[EntityKind, str] = {
    EntityKind.LOCATION: "location_id",
    EntityKind.CHARACTER: "character_id",
    EntityKind.CONTAINER: "container_id",
}


class ItemSummary(BaseModel):
    """Public view of an item."""

    id: int
    name: str
    description: str | None = None
    quantity: int
    item_type: str
    is_stackable: bool = False
    owner: str | None = None


class Item(BaseModel):
    """A physical object in a world."""

    table: ClassVar[str] = "items"

    id: int | None = None
    world_id: int
    location_id: int | None = None
    character_id: int | None = None
    container_id: int | None = None
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    quantity: int = Field(default=1, ge=1)
    item_type: str = "misc"
    is_stackable: bool = False
    cost: int = Field(default=0, ge=0)
    properties: JsonMap = Field(
        default_factory=dict, description="Damage dice, effects, ..."
    )

    @property
    def owner(self) -> EntityRef | None:
        """The current holder of this item."""
        for kind, field_name in OWNER_FIELDS.items():
            owner_id = getattr(self, field_name)
            if owner_id is not None:
                return EntityRef(kind=kind, id=owner_id)
        return None

    def place(self, owner: EntityRef) -> None:
        """Give this item to a new owner, clearing the other owner fields."""
        if owner.kind not in OWNER_FIELDS:
            raise ValueError(f"Items cannot be held by {owner.kind.value}")
        for field_name in OWNER_FIELDS.values():
            setattr(self, field_name, None)
        setattr(self, OWNER_FIELDS[owner.kind], owner.id)

    def summary(self) -> ItemSummary:
        owner = self.owner
        return ItemSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            quantity=self.quantity,
            item_type=self.item_type,
            is_stackable=self.is_stackable,
            owner=str(owner) if owner else None,
        )
