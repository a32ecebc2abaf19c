"""Tests for the in-memory world repository."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from worldstate.db import InMemoryWorldRepository, StorageError
from worldstate.models import Character, GameEvent, Location, World


@pytest.fixture
def repo() -> InMemoryWorldRepository:
    return InMemoryWorldRepository()


def _event(world_id: int, event_type: str, created_at: datetime, **kwargs) -> GameEvent:
    return GameEvent(world_id=world_id, event_type=event_type, created_at=created_at, **kwargs)


class TestEntityStorage:
    """Tests for add/get/update/delete/find."""

    def test_add_assigns_sequential_ids_per_table(self, repo: InMemoryWorldRepository):
        world = repo.add(World(name="A"))
        other = repo.add(World(name="B"))
        location = repo.add(Location(world_id=world.id, name="Hall"))

        assert (world.id, other.id) == (1, 2)
        assert location.id == 1

    def test_get_returns_copy(self, repo: InMemoryWorldRepository):
        world = repo.add(World(name="A"))

        fetched = repo.get(World, world.id)
        fetched.world_state["dragon_slain"] = True

        assert repo.get(World, world.id).world_state == {}

    def test_get_missing_or_none(self, repo: InMemoryWorldRepository):
        assert repo.get(World, 99) is None
        assert repo.get(World, None) is None

    def test_update_overwrites(self, repo: InMemoryWorldRepository):
        world = repo.add(World(name="A"))
        world.name = "Renamed"
        repo.update(world)

        assert repo.get(World, world.id).name == "Renamed"

    def test_update_missing_raises(self, repo: InMemoryWorldRepository):
        with pytest.raises(StorageError):
            repo.update(World(id=42, name="Ghost"))

    def test_delete(self, repo: InMemoryWorldRepository):
        world = repo.add(World(name="A"))
        repo.delete(World, world.id)
        repo.delete(World, world.id)  # missing ids are ignored

        assert repo.get(World, world.id) is None

    def test_find_matches_exactly_and_orders_by_id(self, repo: InMemoryWorldRepository):
        world = repo.add(World(name="A"))
        root = repo.add(Location(world_id=world.id, name="Root"))
        b = repo.add(Location(world_id=world.id, name="B", parent_location_id=root.id))
        a = repo.add(Location(world_id=world.id, name="A", parent_location_id=root.id))

        children = repo.find(Location, parent_location_id=root.id)
        top_level = repo.find(Location, world_id=world.id, parent_location_id=None)

        assert [c.id for c in children] == [b.id, a.id]
        assert [t.id for t in top_level] == [root.id]

    def test_find_rejects_unknown_field(self, repo: InMemoryWorldRepository):
        with pytest.raises(ValueError):
            repo.find(Character, colour="red")


class TestEventStorage:
    """Tests for the append-only event log."""

    def test_list_newest_first(self, repo: InMemoryWorldRepository):
        start = datetime(2024, 1, 1, tzinfo=UTC)
        repo.append_event(_event(1, "first", start))
        repo.append_event(_event(1, "second", start + timedelta(seconds=1)))
        repo.append_event(_event(2, "elsewhere", start + timedelta(seconds=2)))

        events = repo.list_events(1)

        assert [e.event_type for e in events] == ["second", "first"]

    def test_same_timestamp_falls_back_to_id(self, repo: InMemoryWorldRepository):
        now = datetime(2024, 1, 1, tzinfo=UTC)
        repo.append_event(_event(1, "a", now))
        repo.append_event(_event(1, "b", now))

        assert [e.event_type for e in repo.list_events(1)] == ["b", "a"]

    def test_limit_and_criteria(self, repo: InMemoryWorldRepository):
        now = datetime(2024, 1, 1, tzinfo=UTC)
        for i in range(5):
            repo.append_event(_event(1, "tick", now + timedelta(seconds=i), room_id=i % 2))

        assert len(repo.list_events(1, limit=2)) == 2
        assert len(repo.list_events(1, room_id=1)) == 2


class TestTransactions:
    """Tests for atomic units of work."""

    def test_exception_rolls_back_everything(self, repo: InMemoryWorldRepository):
        world = repo.add(World(name="A"))

        with pytest.raises(RuntimeError):
            with repo.transaction():
                world.name = "Changed"
                repo.update(world)
                repo.add(Location(world_id=world.id, name="Hall"))
                repo.append_event(_event(world.id, "changed", datetime.now(UTC)))
                raise RuntimeError("boom")

        assert repo.get(World, world.id).name == "A"
        assert repo.find(Location, world_id=world.id) == []
        assert repo.list_events(world.id) == []

    def test_rollback_restores_id_sequence(self, repo: InMemoryWorldRepository):
        with pytest.raises(RuntimeError):
            with repo.transaction():
                repo.add(World(name="Lost"))
                raise RuntimeError("boom")

        assert repo.add(World(name="Kept")).id == 1

    def test_nested_blocks_join_outer(self, repo: InMemoryWorldRepository):
        with pytest.raises(RuntimeError):
            with repo.transaction():
                with repo.transaction():
                    repo.add(World(name="Inner"))
                raise RuntimeError("outer fails")

        assert repo.find(World) == []

    def test_commit_keeps_writes(self, repo: InMemoryWorldRepository):
        with repo.transaction():
            repo.add(World(name="A"))
            with repo.transaction():
                repo.add(World(name="B"))

        assert [w.name for w in repo.find(World)] == ["A", "B"]

    def test_rollback_keeps_earlier_events(self, repo: InMemoryWorldRepository):
        now = datetime(2024, 1, 1, tzinfo=UTC)
        repo.append_event(_event(1, "kept", now))
        logged = list(repo._events)

        with pytest.raises(RuntimeError):
            with repo.transaction():
                repo.append_event(_event(1, "dropped", now + timedelta(seconds=1)))
                raise RuntimeError("boom")

        assert [e.event_type for e in repo.list_events(1)] == ["kept"]
        assert all(a is b for a, b in zip(repo._events, logged, strict=True))
        assert repo.append_event(_event(1, "next", now)).id == 2
