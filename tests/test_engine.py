"""
Tests for the GameEngine facade: response shapes, storage failures,
configuration and concurrent use.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from worldstate.db import InMemoryWorldRepository, StorageError
from worldstate.engine import EngineConfig, GameEngine
from worldstate.engine.models import ENV_VARS, StorageBackend
from worldstate.models import Character, GameEvent, Location
from worldstate.services import ErrorKind


class FlakyRepository(InMemoryWorldRepository):
    """In-memory repository whose event log can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_events = False

    def append_event(self, event: GameEvent) -> GameEvent:
        if self.fail_events:
            raise StorageError("event log unavailable")
        return super().append_event(event)


@pytest.fixture
def engine() -> GameEngine:
    """Create a GameEngine with an in-memory repository."""
    return GameEngine(repo=InMemoryWorldRepository())


@pytest.fixture
def world_id(engine: GameEngine) -> int:
    return engine.create_world("Eldoria").world_id


# =============================================================================
# Response Shape Tests
# =============================================================================


class TestResponses:
    """Tests for the flat external response shape."""

    def test_success_shape(self, engine: GameEngine, world_id: int):
        """Successful results carry the flag and their payload."""
        response = engine.advance_time(world_id, "night").to_response()

        assert response == {"success": True, "time_of_day": "night", "days_elapsed": 0}

    def test_success_with_message(self, engine: GameEngine, world_id: int):
        """A message is included when the operation sets one."""
        npc = engine.create_npc(world_id, {"name": "Rat", "max_hp": 4}).character_id

        response = engine.damage_character(npc, 1).to_response()

        assert response["success"] is True
        assert response["message"] == "Rat took 1 damage (3/4 HP)"
        assert response["new_hp"] == 3

    def test_failure_shape(self, engine: GameEngine):
        """Failures carry the error and its kind, not the success flag."""
        response = engine.get_world_time(404).to_response()

        assert response == {"error": "World not found", "error_kind": "not_found"}

    def test_failure_keeps_recovery_data(self, engine: GameEngine, world_id: int):
        """Refusals may attach data the caller can act on."""
        npc = engine.create_npc(world_id, {"name": "Rat", "max_hp": 4}).character_id
        engine.kill_character(npc)

        response = engine.heal_character(npc, 2).to_response()

        assert response["error"] == "Cannot heal a dead character"
        assert response["error_kind"] == "business_rule"
        assert response["character_id"] == npc
        assert response["is_dead"] is True


# =============================================================================
# Storage Failure Tests
# =============================================================================


class TestStorageFailures:
    """A failed write leaves neither the change nor its event behind."""

    @pytest.fixture
    def flaky(self) -> GameEngine:
        return GameEngine(repo=FlakyRepository())

    def test_damage_rolls_back(self, flaky: GameEngine, caplog):
        """The hit point change is undone when its event cannot be written."""
        world = flaky.create_world("Eldoria").world_id
        npc = flaky.create_npc(world, {"name": "Rat", "max_hp": 4}).character_id
        events_before = flaky.get_recent_events(world).count
        flaky.repo.fail_events = True

        with caplog.at_level(logging.ERROR, logger="worldstate.engine.game"):
            result = flaky.damage_character(npc, 3)

        assert not result.success
        assert result.error_kind == ErrorKind.STORAGE
        assert "event log unavailable" in result.error
        assert "Storage failure in damage_character" in caplog.text

        flaky.repo.fail_events = False
        assert flaky.repo.get(Character, npc).current_hp == 4
        assert flaky.get_recent_events(world).count == events_before

    def test_creation_rolls_back(self, flaky: GameEngine):
        """A location is not created when its event fails."""
        world = flaky.create_world("Eldoria").world_id
        flaky.repo.fail_events = True

        result = flaky.create_location(world, "Cellar")

        assert result.error_kind == ErrorKind.STORAGE
        assert flaky.repo.find(Location, world_id=world) == []

    def test_copy_world_is_all_or_nothing(self, flaky: GameEngine):
        """A world copy whose final event fails leaves no partial world."""
        template = flaky.create_world("Template", is_template=True).world_id
        flaky.create_location(template, "Keep")
        flaky.repo.fail_events = True

        result = flaky.copy_world(template)

        assert result.error_kind == ErrorKind.STORAGE
        assert len(flaky.repo.find(Location)) == 1


# =============================================================================
# Configuration Tests
# =============================================================================


class TestConfiguration:
    """Tests for environment configuration."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for env_var in ENV_VARS.values():
            monkeypatch.delenv(env_var, raising=False)

    def test_defaults(self):
        """Unset variables keep defaults."""
        config = EngineConfig.from_env()

        assert config.backend == StorageBackend.MEMORY
        assert config.db_port == 3306
        assert config.recent_events_limit == 50

    def test_from_env(self, monkeypatch):
        """Variables are read and coerced."""
        monkeypatch.setenv("WORLDSTATE_BACKEND", "sql")
        monkeypatch.setenv("WORLDSTATE_DB_HOST", "db.internal")
        monkeypatch.setenv("WORLDSTATE_DB_PORT", "3307")

        config = EngineConfig.from_env()

        assert config.backend == StorageBackend.SQL
        assert config.db_host == "db.internal"
        assert config.db_port == 3307

    def test_engine_from_config(self, monkeypatch):
        """from_config builds the configured repository and limits."""
        monkeypatch.setenv("WORLDSTATE_RECENT_EVENTS_LIMIT", "2")

        engine = GameEngine.from_config()
        world = engine.create_world("Eldoria").world_id
        for time_of_day in ("afternoon", "evening", "night"):
            engine.advance_time(world, time_of_day)

        assert isinstance(engine.repo, InMemoryWorldRepository)
        assert engine.get_recent_events(world).count == 2

    def test_kill_damage_from_config(self):
        """kill_character deals the configured damage."""
        engine = GameEngine(repo=InMemoryWorldRepository(), config=EngineConfig(kill_damage=5))
        world = engine.create_world("Eldoria").world_id
        troll = engine.create_npc(world, {"name": "Troll", "max_hp": 30}).character_id

        result = engine.kill_character(troll)

        assert result.new_hp == 25
        assert not result.is_dead


# =============================================================================
# Concurrency Tests
# =============================================================================


class TestConcurrency:
    """Concurrent callers never lose updates."""

    def test_parallel_damage(self, engine: GameEngine, world_id: int):
        """Every hit lands exactly once."""
        dragon = engine.create_npc(world_id, {"name": "Dragon", "max_hp": 200}).character_id

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: engine.damage_character(dragon, 1), range(100)))

        assert all(r.success for r in results)
        assert engine.repo.get(Character, dragon).current_hp == 100
        assert engine.get_events(world_id, {"event_type": "character_damaged"}).count == 100

    def test_parallel_quantity_changes(self, engine: GameEngine, world_id: int):
        """Concurrent consumption removes the item exactly once."""
        shop = engine.create_location(world_id, "Shop").location_id
        arrows = engine.create_item(
            world_id, {"name": "Arrow", "location_id": shop, "quantity": 10}
        ).item_id

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: engine.modify_item_quantity(arrows, -1), range(12)))

        assert sum(r.removed for r in results) == 1
        assert sum(r.error == "Item not found" for r in results) == 2
