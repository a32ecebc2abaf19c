"""
Shared result types for World State services.

Every operation returns a pydantic result model. Expected domain failures
(missing entities, bad input, broken game rules) are returned, never raised.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from worldstate.db.interfaces import WorldRepository
from worldstate.models import (
    Character,
    Connection,
    Container,
    EntityKind,
    EntityRef,
    Item,
    Location,
    Quest,
    QuestObjective,
    World,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


class ErrorKind(str, Enum):
    """Why an operation failed."""

    NOT_FOUND = "not_found"  # Referenced entity does not exist
    VALIDATION = "validation"  # Bad input (enum value, target kind, wrong key)
    BUSINESS_RULE = "business_rule"  # Input is fine but the game rules refuse it
    STORAGE = "storage"  # Persistence fault; nothing was written


_BASE_FIELDS = {"success", "error", "error_kind", "message"}


class ServiceResult(BaseModel):
    """
    Base result of a service operation.

    Subclasses add payload fields, all of which must have defaults so a
    failure can be built from the error alone.
    """

    success: bool = True
    error: str | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @classmethod
    def failure(cls, kind: ErrorKind, error: str, **extra: Any) -> Any:
        return cls(success=False, error=error, error_kind=kind, **extra)

    @classmethod
    def not_found(cls, what: str) -> Any:
        return cls.failure(ErrorKind.NOT_FOUND, f"{what} not found")

    @classmethod
    def invalid(cls, error: str | ValidationError) -> Any:
        if isinstance(error, ValidationError):
            error = validation_message(error)
        return cls.failure(ErrorKind.VALIDATION, error)

    @classmethod
    def refused(cls, error: str, **extra: Any) -> Any:
        return cls.failure(ErrorKind.BUSINESS_RULE, error, **extra)

    def to_response(self) -> dict[str, Any]:
        """
        Render the flat external shape.

        Success: {"success": True, **payload}. Failure: {"error": ..., "error_kind": ...}
        plus any recovery data the operation attached.
        """
        if self.success:
            payload = self.model_dump(mode="json", exclude=_BASE_FIELDS)
            if self.message:
                payload["message"] = self.message
            return {"success": True, **payload}

        extras = self.model_dump(mode="json", exclude=_BASE_FIELDS, exclude_defaults=True)
        kind = self.error_kind.value if self.error_kind else None
        return {"error": self.error, "error_kind": kind, **extras}


def is_json_value(value: Any) -> bool:
    """Whether a value can be stored in a JSON column."""
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def validation_message(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one line."""
    parts = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err["loc"])
        parts.append(f"{where}: {err['msg']}" if where else err["msg"])
    return "; ".join(parts)


# Explicit dispatch from reference kind to stored model
KIND_MODELS: dict[EntityKind, type[BaseModel]] = {
    EntityKind.WORLD: World,
    EntityKind.LOCATION: Location,
    EntityKind.CONNECTION: Connection,
    EntityKind.CHARACTER: Character,
    EntityKind.CONTAINER: Container,
    EntityKind.ITEM: Item,
    EntityKind.QUEST: Quest,
    EntityKind.QUEST_OBJECTIVE: QuestObjective,
}


def resolve_ref(repo: WorldRepository, ref: EntityRef | None) -> BaseModel | None:
    """
    Load the entity a reference points at.

    Users and the system live outside the world graph and never resolve.
    """
    if ref is None or ref.id is None:
        return None
    model = KIND_MODELS.get(ref.kind)
    if model is None:
        return None
    return repo.get(model, ref.id)


def world_id_of(record: BaseModel) -> int | None:
    """World an entity belongs to, if it carries one directly."""
    return getattr(record, "world_id", None)
