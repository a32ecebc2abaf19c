"""
Item Service for World State.

Item lifecycle: creation, quantity changes (an item whose quantity drops to
zero is consumed and deleted) and moves between owners.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from worldstate.db.interfaces import WorldRepository
from worldstate.models import EntityKind, EntityRef, Item, ItemAttributes, ItemSummary, World
from worldstate.models.attributes import coerce
from worldstate.models.item import OWNER_FIELDS
from worldstate.services.base import ServiceResult, resolve_ref, world_id_of
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)


class ItemResult(ServiceResult):
    """Result of an item operation."""

    item_id: int | None = None
    item: ItemSummary | None = None
    old_quantity: int | None = None
    new_quantity: int | None = None
    removed: bool = False


def _item_ref(item_id: int | None) -> EntityRef:
    return EntityRef(kind=EntityKind.ITEM, id=item_id)


@dataclass
class ItemService:
    """Creates, counts and moves items."""

    repo: WorldRepository
    events: EventLog

    def _check_owner(self, world_id: int, owner: EntityRef) -> str | None:
        """Return the kind name of a missing owner, if the owner is not in this world."""
        record = resolve_ref(self.repo, owner)
        if record is None or world_id_of(record) != world_id:
            return owner.kind.value
        return None

    def create_item(
        self,
        world_id: int,
        attrs: ItemAttributes | dict[str, Any] | None,
        actor: EntityRef | dict[str, Any] | None = None,
    ) -> ItemResult:
        """Create an item held by exactly one location, character or container."""
        try:
            attrs = coerce(ItemAttributes, attrs)
            actor = EntityRef.coerce(actor)
        except ValidationError as e:
            return ItemResult.invalid(e)

        with self.repo.transaction():
            if self.repo.get(World, world_id) is None:
                return ItemResult.not_found("World")

            item = Item(world_id=world_id, **attrs.model_dump())
            missing = self._check_owner(world_id, item.owner)
            if missing:
                return ItemResult.not_found(missing)

            item = self.repo.add(item)
            self.events.log(
                world_id,
                "item_created",
                actor=actor or EntityRef.system(),
                target=_item_ref(item.id),
                data={"item_type": item.item_type, "quantity": item.quantity},
            )

        return ItemResult(item_id=item.id, item=item.summary())

    def get_item(self, item_id: int) -> ItemResult:
        item = self.repo.get(Item, item_id)
        if item is None:
            return ItemResult.not_found("Item")
        return ItemResult(item_id=item.id, item=item.summary())

    def modify_item_quantity(self, item_id: int, delta: int) -> ItemResult:
        """
        Add `delta` to an item's quantity.

        At zero or below the item is deleted and logged as consumed.
        """
        with self.repo.transaction():
            item = self.repo.get(Item, item_id)
            if item is None:
                return ItemResult.not_found("Item")

            old_quantity = item.quantity
            new_quantity = old_quantity + delta

            if new_quantity <= 0:
                self.repo.delete(Item, item_id)
                self.events.log(
                    item.world_id,
                    "item_consumed",
                    target=_item_ref(item_id),
                    data={"reason": "quantity_depleted", "old_quantity": old_quantity},
                )
                return ItemResult(
                    item_id=item_id,
                    old_quantity=old_quantity,
                    new_quantity=0,
                    removed=True,
                    message=f"{item.name} depleted and removed",
                )

            item.quantity = new_quantity
            self.repo.update(item)
            self.events.log(
                item.world_id,
                "item_quantity_changed",
                target=_item_ref(item_id),
                data={"old_quantity": old_quantity, "new_quantity": new_quantity, "change": delta},
            )

        return ItemResult(
            item_id=item_id,
            item=item.summary(),
            old_quantity=old_quantity,
            new_quantity=new_quantity,
        )

    def move_item(
        self,
        item_id: int,
        to: EntityRef | dict[str, Any],
        actor: EntityRef | dict[str, Any] | None = None,
    ) -> ItemResult:
        """Give an item to a location, character or container in its own world."""
        try:
            target = to if isinstance(to, EntityRef) else EntityRef.model_validate(to)
        except ValidationError:
            return ItemResult.invalid("Invalid target for item movement")
        try:
            actor = EntityRef.coerce(actor)
        except ValidationError as e:
            return ItemResult.invalid(e)
        if target.kind not in OWNER_FIELDS or target.id is None:
            return ItemResult.invalid("Invalid target for item movement")

        with self.repo.transaction():
            item = self.repo.get(Item, item_id)
            if item is None:
                return ItemResult.not_found("Item")
            missing = self._check_owner(item.world_id, target)
            if missing:
                return ItemResult.not_found(missing)

            previous = {
                "from_location_id": item.location_id,
                "from_character_id": item.character_id,
                "from_container_id": item.container_id,
            }
            item.place(target)
            self.repo.update(item)
            self.events.log(
                item.world_id,
                "item_moved",
                actor=actor,
                target=_item_ref(item_id),
                data={**previous, "to_type": target.kind.value, "to_id": target.id},
            )

        return ItemResult(item_id=item_id, item=item.summary(), message=f"Item moved to {target}")
