"""Tests for the Item service."""

from __future__ import annotations

import pytest

from worldstate.db import InMemoryWorldRepository
from worldstate.engine import GameEngine
from worldstate.models import EntityRef, Item
from worldstate.services import ErrorKind


@pytest.fixture
def engine() -> GameEngine:
    """Create a GameEngine with an in-memory repository."""
    return GameEngine(repo=InMemoryWorldRepository())


@pytest.fixture
def world_id(engine: GameEngine) -> int:
    return engine.create_world("Eldoria").world_id


@pytest.fixture
def shop_id(engine: GameEngine, world_id: int) -> int:
    return engine.create_location(world_id, "Shop").location_id


class TestCreateItem:
    """Tests for item creation."""

    def test_create_at_location(self, engine: GameEngine, world_id: int, shop_id: int):
        result = engine.create_item(
            world_id, {"name": "Arrow", "location_id": shop_id, "quantity": 20, "is_stackable": True}
        )

        assert result.success
        assert result.item.quantity == 20
        assert result.item.owner == f"Location#{shop_id}"

        event = engine.get_recent_events(world_id, limit=1).events[0]
        assert event.event_type == "item_created"
        assert event.actor == "System"

    def test_requires_exactly_one_owner(self, engine: GameEngine, world_id: int, shop_id: int):
        result = engine.create_item(world_id, {"name": "Arrow"})

        assert result.error_kind == ErrorKind.VALIDATION
        assert engine.repo.find(Item) == []

    def test_owner_must_exist_in_world(self, engine: GameEngine, world_id: int):
        result = engine.create_item(world_id, {"name": "Arrow", "container_id": 404})

        assert result.error == "Container not found"

    def test_quantity_must_be_positive(self, engine: GameEngine, world_id: int, shop_id: int):
        result = engine.create_item(world_id, {"name": "Arrow", "location_id": shop_id, "quantity": 0})

        assert result.error_kind == ErrorKind.VALIDATION


class TestModifyQuantity:
    """Tests for stack changes and consumption."""

    def test_potion_scenario(self, engine: GameEngine, world_id: int, shop_id: int):
        potion = engine.create_item(
            world_id, {"name": "Healing Potion", "location_id": shop_id, "quantity": 2}
        ).item_id

        first = engine.modify_item_quantity(potion, -1)
        assert first.success
        assert (first.old_quantity, first.new_quantity) == (2, 1)
        assert not first.removed

        second = engine.modify_item_quantity(potion, -1)
        assert second.removed
        assert second.new_quantity == 0
        assert second.message == "Healing Potion depleted and removed"
        assert engine.get_item(potion).error == "Item not found"

        consumed = engine.get_recent_events(world_id, limit=1).events[0]
        assert consumed.event_type == "item_consumed"
        assert consumed.data["reason"] == "quantity_depleted"

    def test_overdraw_also_removes(self, engine: GameEngine, world_id: int, shop_id: int):
        coin = engine.create_item(world_id, {"name": "Coin", "location_id": shop_id}).item_id

        assert engine.modify_item_quantity(coin, -5).removed

    def test_increase(self, engine: GameEngine, world_id: int, shop_id: int):
        coin = engine.create_item(world_id, {"name": "Coin", "location_id": shop_id}).item_id

        result = engine.modify_item_quantity(coin, 4)

        assert result.new_quantity == 5
        assert engine.get_item(coin).item.quantity == 5


class TestMoveItem:
    """Tests for moving items between owners."""

    def test_move_into_container(self, engine: GameEngine, world_id: int, shop_id: int):
        chest = engine.create_container(world_id, {"name": "Chest", "location_id": shop_id})
        gem = engine.create_item(world_id, {"name": "Gem", "location_id": shop_id}).item_id

        result = engine.move_item(gem, EntityRef.container(chest.container_id))

        assert result.success
        stored = engine.repo.get(Item, gem)
        assert stored.container_id == chest.container_id
        assert stored.location_id is None

        event = engine.get_recent_events(world_id, limit=1).events[0]
        assert event.data["from_location_id"] == shop_id
        assert event.data["to_type"] == "Container"

    def test_move_accepts_plain_map(self, engine: GameEngine, world_id: int, shop_id: int):
        hero = engine.create_npc(world_id, {"name": "Hero", "location_id": shop_id}).character_id
        gem = engine.create_item(world_id, {"name": "Gem", "location_id": shop_id}).item_id

        result = engine.move_item(gem, {"kind": "Character", "id": hero})

        assert result.item.owner == f"Character#{hero}"

    @pytest.mark.parametrize(
        "target",
        [{"kind": "Quest", "id": 1}, {"kind": "Dragon", "id": 1}, {"kind": "Location"}],
    )
    def test_invalid_target(self, engine: GameEngine, world_id: int, shop_id: int, target):
        gem = engine.create_item(world_id, {"name": "Gem", "location_id": shop_id}).item_id

        result = engine.move_item(gem, target)

        assert result.error == "Invalid target for item movement"
        assert result.error_kind == ErrorKind.VALIDATION
        assert engine.repo.get(Item, gem).location_id == shop_id

    def test_target_in_other_world(self, engine: GameEngine, world_id: int, shop_id: int):
        other = engine.create_world("Elsewhere").world_id
        void = engine.create_location(other, "Void").location_id
        gem = engine.create_item(world_id, {"name": "Gem", "location_id": shop_id}).item_id

        result = engine.move_item(gem, EntityRef.location(void))

        assert result.error == "Location not found"
