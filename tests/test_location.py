"""Tests for location descriptions, state flags and occupancy."""

from __future__ import annotations

import pytest

from worldstate.db import InMemoryWorldRepository
from worldstate.engine import GameEngine
from worldstate.services import ErrorKind
from worldstate.services.location import (
    DARK_DESCRIPTION,
    FIRE_DESCRIPTION,
    WATER_DESCRIPTIONS,
    describe_state,
)


@pytest.fixture
def engine() -> GameEngine:
    """Create a GameEngine with an in-memory repository."""
    return GameEngine(repo=InMemoryWorldRepository())


@pytest.fixture
def world_id(engine: GameEngine) -> int:
    return engine.create_world("Eldoria").world_id


@pytest.fixture
def cellar_id(engine: GameEngine, world_id: int) -> int:
    return engine.create_location(world_id, "Cellar", description="A damp cellar.").location_id


class TestDescribeState:
    """Tests for the description rules."""

    def test_plain_description(self):
        assert describe_state("A damp cellar.", {}) == "A damp cellar."

    def test_darkness_hides_everything(self):
        state = {"is_dark": True, "is_on_fire": True, "water_level": 2}
        assert describe_state("A damp cellar.", state) == DARK_DESCRIPTION

    def test_fire_then_water(self):
        text = describe_state("A damp cellar.", {"is_on_fire": True, "water_level": 1})
        assert text == f"A damp cellar. {FIRE_DESCRIPTION} {WATER_DESCRIPTIONS[1]}"

    @pytest.mark.parametrize("level", [0, 4, -1, "2", True])
    def test_other_water_levels_add_nothing(self, level):
        assert describe_state("A damp cellar.", {"water_level": level}) == "A damp cellar."

    def test_missing_base_description(self):
        assert describe_state(None, {"water_level": 3}) == WATER_DESCRIPTIONS[3]


class TestDescribeLocation:
    """Tests for describe_location."""

    def test_flooded_cellar_scenario(self, engine: GameEngine, cellar_id: int):
        engine.set_location_state(cellar_id, "water_level", 2)

        result = engine.describe_location(cellar_id)

        assert result.success
        assert result.description == "A damp cellar. You wade through waist-deep water."

        engine.set_location_state(cellar_id, "is_dark", True)
        assert engine.describe_location(cellar_id).description == DARK_DESCRIPTION

    def test_dark_room_still_lists_exits(self, engine: GameEngine, world_id: int, cellar_id: int):
        hall = engine.create_location(world_id, "Hall").location_id
        engine.create_connection(world_id, cellar_id, hall, {"direction": "up"})
        engine.set_location_state(cellar_id, "is_dark", True)

        result = engine.describe_location(cellar_id)

        assert [e.direction for e in result.exits] == ["up"]

    def test_missing_location(self, engine: GameEngine):
        result = engine.describe_location(404)

        assert result.error == "Location not found"
        assert result.error_kind == ErrorKind.NOT_FOUND


class TestLocationState:
    """Tests for free-form location flags."""

    def test_set_get_and_clear(self, engine: GameEngine, cellar_id: int):
        engine.set_location_state(cellar_id, "is_on_fire", True)
        assert engine.get_location_state(cellar_id, "is_on_fire").value is True

        cleared = engine.clear_location_state(cellar_id, "is_on_fire")

        assert cleared.success
        assert cleared.cleared
        assert engine.get_location_state(cellar_id, "is_on_fire").value is None
        assert engine.get_all_location_state(cellar_id).state == {}

    def test_state_changes_are_logged(self, engine: GameEngine, world_id: int, cellar_id: int):
        engine.set_location_state(cellar_id, "water_level", 1)
        engine.clear_location_state(cellar_id, "water_level")

        events = engine.get_events(world_id, {"event_type": "location_state_changed"}).events
        assert len(events) == 2
        assert events[0].data["action"] == "cleared"
        assert events[0].data["old_value"] == 1
        assert events[1].data == {"key": "water_level", "old_value": None, "new_value": 1}
        assert events[1].target == f"Location#{cellar_id}"

    def test_value_must_be_json(self, engine: GameEngine, cellar_id: int):
        result = engine.set_location_state(cellar_id, "lamp", object())

        assert result.error == "State values must be JSON-serialisable"
        assert result.error_kind == ErrorKind.VALIDATION
        assert engine.get_all_location_state(cellar_id).state == {}


class TestOccupancy:
    """Tests for what sits directly at a location."""

    def test_dead_characters_are_not_listed(self, engine: GameEngine, world_id: int, cellar_id: int):
        rat = engine.create_npc(world_id, {"name": "Rat", "location_id": cellar_id}).character_id
        engine.create_npc(world_id, {"name": "Spider", "location_id": cellar_id})
        engine.kill_character(rat)

        result = engine.list_characters_at(cellar_id)

        assert [c.name for c in result.characters] == ["Spider"]

    def test_only_loose_items_are_listed(self, engine: GameEngine, world_id: int, cellar_id: int):
        chest = engine.create_container(world_id, {"name": "Chest", "location_id": cellar_id})
        engine.create_item(world_id, {"name": "Coin", "location_id": cellar_id})
        engine.create_item(world_id, {"name": "Gem", "container_id": chest.container_id})

        items = engine.list_items_at(cellar_id)
        containers = engine.list_containers_at(cellar_id)

        assert [i.name for i in items.items] == ["Coin"]
        assert [c.name for c in containers.containers] == ["Chest"]

    def test_listing_missing_location(self, engine: GameEngine):
        assert engine.list_items_at(404).error_kind == ErrorKind.NOT_FOUND
