"""Tests for the Character service."""

from __future__ import annotations

import pytest

from worldstate.db import InMemoryWorldRepository
from worldstate.engine import GameEngine
from worldstate.models import Character, CharacterType, EntityRef, Item
from worldstate.services import ErrorKind
from worldstate.services.character import default_armor_class


@pytest.fixture
def engine() -> GameEngine:
    """Create a GameEngine with an in-memory repository."""
    return GameEngine(repo=InMemoryWorldRepository())


@pytest.fixture
def world_id(engine: GameEngine) -> int:
    return engine.create_world("Eldoria").world_id


@pytest.fixture
def tavern_id(engine: GameEngine, world_id: int) -> int:
    return engine.create_location(world_id, "Tavern").location_id


@pytest.fixture
def goblin_id(engine: GameEngine, world_id: int, tavern_id: int) -> int:
    return engine.create_npc(
        world_id, {"name": "Goblin", "location_id": tavern_id, "max_hp": 15, "is_hostile": True}
    ).character_id


class TestCreation:
    """Tests for player characters and NPCs."""

    def test_player_defaults(self, engine: GameEngine, world_id: int):
        result = engine.create_player_character(7, world_id, {"name": "Aria", "athletics": 14})

        assert result.success
        character = result.character
        assert character.character_type == CharacterType.PLAYER
        assert character.max_hp == 20
        assert character.current_hp == 20
        assert character.stats.armor_class == 17

    def test_explicit_armor_class_wins(self, engine: GameEngine, world_id: int):
        result = engine.create_player_character(7, world_id, {"name": "Aria", "armor_class": 12})

        assert result.character.stats.armor_class == 12

    @pytest.mark.parametrize("athletics,expected", [(10, 15), (11, 15), (1, 10), (30, 25)])
    def test_default_armor_class(self, athletics, expected):
        assert default_armor_class(athletics) == expected

    def test_one_player_character_per_world(self, engine: GameEngine, world_id: int):
        first = engine.create_player_character(7, world_id, {"name": "Aria"})

        second = engine.create_player_character(7, world_id, {"name": "Bram"})

        assert not second.success
        assert second.error == "User already has a character in this world"
        assert second.character_id == first.character_id
        assert second.to_response()["character_id"] == first.character_id
        assert len(engine.repo.find(Character, user_id=7)) == 1

    def test_same_user_other_world(self, engine: GameEngine, world_id: int):
        other = engine.create_world("Elsewhere").world_id
        engine.create_player_character(7, world_id, {"name": "Aria"})

        assert engine.create_player_character(7, other, {"name": "Aria"}).success

    def test_get_player_character(self, engine: GameEngine, world_id: int):
        created = engine.create_player_character(7, world_id, {"name": "Aria"})

        assert engine.get_player_character(7, world_id).character_id == created.character_id
        assert engine.get_player_character(8, world_id).error == "Character not found"

    def test_npc_defaults(self, engine: GameEngine, world_id: int):
        result = engine.create_npc(world_id, {"name": "Rat"})

        assert result.character.max_hp == 10
        assert result.character.stats.armor_class == 10
        assert result.character.character_type == CharacterType.NPC

    def test_start_location_must_be_in_world(self, engine: GameEngine, world_id: int):
        assert engine.create_npc(world_id, {"name": "Rat", "location_id": 404}).error == "Location not found"

    def test_creation_is_logged(self, engine: GameEngine, world_id: int, goblin_id: int):
        event = engine.get_recent_events(world_id, limit=1).events[0]

        assert event.event_type == "character_created"
        assert event.target == f"Character#{goblin_id}"
        assert event.data == {"character_type": "npc", "is_hostile": True}


class TestCombat:
    """Tests for damage, healing and death."""

    def test_goblin_scenario(self, engine: GameEngine, world_id: int, goblin_id: int):
        hit = engine.damage_character(goblin_id, 10)
        assert hit.new_hp == 5
        assert not hit.is_dead
        assert hit.message == "Goblin took 10 damage (5/15 HP)"

        killed = engine.damage_character(goblin_id, 10)
        assert killed.new_hp == 0
        assert killed.is_dead
        assert killed.message == "Goblin has been killed!"

        healed = engine.heal_character(goblin_id, 5)
        assert healed.error == "Cannot heal a dead character"
        assert healed.error_kind == ErrorKind.BUSINESS_RULE
        assert engine.repo.get(Character, goblin_id).current_hp == 0

    def test_damage_event_names_source(self, engine: GameEngine, world_id: int, goblin_id: int):
        hero = engine.create_npc(world_id, {"name": "Hero"}).character_id

        engine.damage_character(goblin_id, 3, source=EntityRef.character(hero))

        event = engine.get_recent_events(world_id, limit=1).events[0]
        assert event.event_type == "character_damaged"
        assert event.actor == f"Character#{hero}"
        assert event.data["damage"] == 3

    @pytest.mark.parametrize("operation", ["damage_character", "heal_character"])
    def test_source_as_plain_map(self, engine: GameEngine, world_id: int, goblin_id: int, operation):
        hero = engine.create_npc(world_id, {"name": "Hero"}).character_id
        engine.damage_character(goblin_id, 1)

        result = getattr(engine, operation)(goblin_id, 1, source={"kind": "Character", "id": hero})

        assert result.success
        event = engine.get_recent_events(world_id, limit=1).events[0]
        assert event.actor == f"Character#{hero}"

    def test_kill_with_plain_map_source(self, engine: GameEngine, world_id: int, goblin_id: int):
        result = engine.kill_character(goblin_id, source={"kind": "System"})

        assert result.is_dead
        assert engine.get_recent_events(world_id, limit=1).events[0].actor == "System"

    @pytest.mark.parametrize("source", [{"kind": "Dragon", "id": 1}, {"id": 1}, "Character#1"])
    def test_malformed_source_rejected(self, engine: GameEngine, goblin_id: int, source):
        result = engine.damage_character(goblin_id, 3, source=source)

        assert result.error_kind == ErrorKind.VALIDATION
        assert engine.repo.get(Character, goblin_id).current_hp == 15

    def test_heal_caps_at_max(self, engine: GameEngine, goblin_id: int):
        engine.damage_character(goblin_id, 4)

        result = engine.heal_character(goblin_id, 100)

        assert result.new_hp == 15

    @pytest.mark.parametrize("operation", ["damage_character", "heal_character"])
    def test_negative_amounts_rejected(self, engine: GameEngine, goblin_id: int, operation):
        result = getattr(engine, operation)(goblin_id, -3)

        assert result.error_kind == ErrorKind.VALIDATION
        assert engine.repo.get(Character, goblin_id).current_hp == 15

    def test_kill(self, engine: GameEngine, goblin_id: int):
        result = engine.kill_character(goblin_id)

        assert result.is_dead
        assert result.new_hp == 0

    def test_damaging_the_dead_stays_at_zero(self, engine: GameEngine, goblin_id: int):
        engine.kill_character(goblin_id)

        result = engine.damage_character(goblin_id, 5)

        assert result.success
        assert result.new_hp == 0
        assert result.message == "Goblin took 5 damage (0/15 HP)"


class TestMovement:
    """Tests for moving characters and parties."""

    def test_move_character(self, engine: GameEngine, world_id: int, tavern_id: int, goblin_id: int):
        cellar = engine.create_location(world_id, "Cellar").location_id

        result = engine.move_character(goblin_id, cellar)

        assert result.success
        assert result.from_location_id == tavern_id
        assert result.new_location == "Cellar"
        event = engine.get_recent_events(world_id, limit=1).events[0]
        assert event.event_type == "character_moved"
        assert event.target == f"Character#{goblin_id}"

    def test_move_party_reports_each_member(self, engine: GameEngine, world_id: int, goblin_id: int):
        cellar = engine.create_location(world_id, "Cellar").location_id
        other = engine.create_npc(world_id, {"name": "Rat"}).character_id

        result = engine.move_party([goblin_id, 404, other], cellar)

        assert result.success
        assert (result.moved, result.failed) == (2, 1)
        assert [d.status for d in result.details] == ["moved", "failed", "moved"]
        assert result.details[1].error == "Character not found"

    def test_move_party_missing_destination(self, engine: GameEngine, goblin_id: int, tavern_id: int):
        result = engine.move_party([goblin_id], 404)

        assert result.error == "Location not found"
        assert engine.repo.get(Character, goblin_id).location_id == tavern_id


class TestInventory:
    """Tests for taking and dropping items."""

    def test_take_and_drop(self, engine: GameEngine, world_id: int, tavern_id: int, goblin_id: int):
        mug = engine.create_item(world_id, {"name": "Mug", "location_id": tavern_id}).item_id

        taken = engine.character_take_item(goblin_id, mug)
        assert taken.success
        inventory = engine.get_character_inventory(goblin_id)
        assert [i.name for i in inventory.items] == ["Mug"]
        assert engine.list_items_at(tavern_id).count == 0

        dropped = engine.character_drop_item(goblin_id, mug)
        assert dropped.location_id == tavern_id
        assert engine.repo.get(Item, mug).character_id is None
        assert engine.list_items_at(tavern_id).count == 1

    def test_take_from_container(self, engine: GameEngine, world_id: int, tavern_id: int, goblin_id: int):
        chest = engine.create_container(world_id, {"name": "Chest", "location_id": tavern_id})
        gem = engine.create_item(world_id, {"name": "Gem", "container_id": chest.container_id}).item_id

        engine.character_take_item(goblin_id, gem)

        stored = engine.repo.get(Item, gem)
        assert stored.character_id == goblin_id
        assert stored.container_id is None

    def test_drop_item_not_held(self, engine: GameEngine, world_id: int, tavern_id: int, goblin_id: int):
        mug = engine.create_item(world_id, {"name": "Mug", "location_id": tavern_id}).item_id

        result = engine.character_drop_item(goblin_id, mug)

        assert result.error == "Character does not have this item"
        assert result.error_kind == ErrorKind.BUSINESS_RULE

    def test_drop_nowhere(self, engine: GameEngine, world_id: int):
        ghost = engine.create_npc(world_id, {"name": "Ghost"}).character_id
        orb = engine.create_item(world_id, {"name": "Orb", "character_id": ghost}).item_id

        assert engine.character_drop_item(ghost, orb).error == "Character is not at a location"

    def test_inventory_lists_carried_containers(self, engine: GameEngine, world_id: int, goblin_id: int):
        engine.create_container(world_id, {"name": "Sack", "character_id": goblin_id})

        inventory = engine.get_character_inventory(goblin_id)

        assert inventory.character == "Goblin"
        assert [c.name for c in inventory.containers] == ["Sack"]
