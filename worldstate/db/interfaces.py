"""
Database interface definitions for World State.

Uses a Protocol class to define the contract for storage operations.
Implementations can use a real SQL server or an in-memory store for testing.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel

from worldstate.models import GameEvent

Record = TypeVar("Record", bound=BaseModel)


class StorageError(Exception):
    """The underlying store failed to read or write."""


class WorldRepository(Protocol):
    """
    Interface for world-state persistence.

    Records are pydantic models carrying a `table` class variable. The
    repository assigns integer ids on insert, unique per table.
    """

    def transaction(self) -> AbstractContextManager[None]:
        """
        Open an atomic unit of work.

        The outermost block commits on success and rolls back every write on
        any exception, which then propagates. Nested blocks join the outer one.
        Transactions are serialised: a concurrent caller waits until the
        outermost block of another caller has finished.
        """
        ...

    # Entity operations
    def add(self, record: Record) -> Record:
        """Insert a record and return it with its new id."""
        ...

    def get(self, model: type[Record], record_id: int | None) -> Record | None:
        """Get a record by id."""
        ...

    def update(self, record: Record) -> Record:
        """Overwrite an existing record."""
        ...

    def delete(self, model: type[Record], record_id: int) -> None:
        """Delete a record by id. Missing ids are ignored."""
        ...

    def find(self, model: type[Record], **criteria: Any) -> list[Record]:
        """
        Get all records whose fields equal the given values, ordered by id.

        A criterion of None matches unset (NULL) fields.
        """
        ...

    # Event operations
    def append_event(self, event: GameEvent) -> GameEvent:
        """Append an event to the immutable event log."""
        ...

    def list_events(
        self,
        world_id: int,
        limit: int | None = None,
        **criteria: Any,
    ) -> list[GameEvent]:
        """Get events for a world matching the criteria, newest first."""
        ...


def check_criteria(model: type[BaseModel], criteria: dict[str, Any]) -> None:
    """Reject criteria that do not name a field of `model`."""
    unknown = sorted(set(criteria) - set(model.model_fields))
    if unknown:
        raise ValueError(f"Unknown {model.__name__} fields: {', '.join(unknown)}")


def first(records: list[Record]) -> Record | None:
    """First record of a query result, if any."""
    return records[0] if records else None


