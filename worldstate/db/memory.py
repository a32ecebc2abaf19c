"""
In-memory implementation of the world repository for testing.

Everything is stored in dictionaries, making tests fast and isolated from
actual database infrastructure. Records are deep-copied on the way in and out
so callers never share state with the store.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from copy import deepcopy
from typing import Any

from worldstate.db.interfaces import Record, StorageError, check_criteria
from worldstate.models import GameEvent


class InMemoryWorldRepository:
    """
    In-memory implementation of WorldRepository.

    Transactions snapshot every table when the outermost block opens and
    restore the snapshot if the block raises.
    """

    def __init__(self) -> None:
        # table_name -> {id -> record}
        self._tables: dict[str, dict[int, Any]] = {}
        self._sequences: dict[str, int] = {}
        self._events: list[GameEvent] = []

        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Atomic, serialised unit of work. Nested blocks join the outer one."""
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            # Events are append-only: rollback truncates to the saved length
            snapshot = deepcopy((self._tables, self._sequences))
            event_count = len(self._events)
            self._depth = 1
            try:
                yield
            except BaseException:
                self._tables, self._sequences = snapshot
                del self._events[event_count:]
                raise
            finally:
                self._depth = 0

    def _table(self, model: type[Any]) -> dict[int, Any]:
        return self._tables.setdefault(model.table, {})

    # Entity operations
    def add(self, record: Record) -> Record:
        """Insert a record and return it with its new id."""
        with self._lock:
            model = type(record)
            next_id = self._sequences.get(model.table, 0) + 1
            self._sequences[model.table] = next_id

            stored = record.model_copy(update={"id": next_id}, deep=True)
            self._table(model)[next_id] = stored
            return deepcopy(stored)

    def get(self, model: type[Record], record_id: int | None) -> Record | None:
        """Get a record by id."""
        if record_id is None:
            return None
        with self._lock:
            record = self._table(model).get(record_id)
            return deepcopy(record) if record is not None else None

    def update(self, record: Record) -> Record:
        """Overwrite an existing record."""
        model = type(record)
        record_id = getattr(record, "id", None)
        with self._lock:
            table = self._table(model)
            if record_id not in table:
                raise StorageError(f"{model.__name__} {record_id} does not exist")
            table[record_id] = deepcopy(record)
            return deepcopy(record)

    def delete(self, model: type[Record], record_id: int) -> None:
        """Delete a record by id."""
        with self._lock:
            self._table(model).pop(record_id, None)

    def find(self, model: type[Record], **criteria: Any) -> list[Record]:
        """Get all records matching the criteria, ordered by id."""
        check_criteria(model, criteria)
        with self._lock:
            table = self._table(model)
            return [
                deepcopy(table[record_id])
                for record_id in sorted(table)
                if _matches(table[record_id], criteria)
            ]

    # Event operations
    def append_event(self, event: GameEvent) -> GameEvent:
        """Append an event to the immutable event log."""
        with self._lock:
            next_id = self._sequences.get(GameEvent.table, 0) + 1
            self._sequences[GameEvent.table] = next_id

            stored = event.model_copy(update={"id": next_id}, deep=True)
            self._events.append(stored)
            return deepcopy(stored)

    def list_events(
        self,
        world_id: int,
        limit: int | None = None,
        **criteria: Any,
    ) -> list[GameEvent]:
        """Get events for a world, newest first."""
        check_criteria(GameEvent, criteria)
        with self._lock:
            events = [
                e for e in self._events if e.world_id == world_id and _matches(e, criteria)
            ]
            events.sort(key=lambda e: (e.created_at, e.id), reverse=True)
            if limit is not None:
                events = events[:limit]
            return deepcopy(events)


def _matches(record: Any, criteria: dict[str, Any]) -> bool:
    return all(getattr(record, key) == value for key, value in criteria.items())
