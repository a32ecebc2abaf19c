"""
Quest models for World State.

A quest owns a list of objectives. It completes automatically once every
non-optional objective is complete; optional objectives never block it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from worldstate.models.refs import EntityKind, EntityRef


class QuestStatus(str, Enum):
    """Status of a quest."""

    ACTIVE = "active"  # Being worked on
    COMPLETED = "completed"  # Every required objective done
    FAILED = "failed"  # Cannot be completed (e.g., NPC died)
    ABANDONED = "abandoned"  # Players gave up


class ObjectiveType(str, Enum):
    """Types of quest objectives."""

    REACH_LOCATION = "reach_location"  # Go to a specific place
    ACQUIRE_ITEM = "acquire_item"  # Pick up an item
    KILL_CHARACTER = "kill_character"  # Defeat a character
    CUSTOM = "custom"  # Judged by the game master


class ObjectiveSummary(BaseModel):
    """Progress view of one objective."""

    id: int
    description: str | None = None
    objective_type: ObjectiveType
    progress: str
    is_completed: bool
    is_optional: bool


class QuestObjective(BaseModel):
    """
    A single measurable sub-goal of a quest.

    `current_progress` stays within [0, quantity].
    """

    table: ClassVar[str] = "quest_objectives"

    id: int | None = None
    quest_id: int
    objective_type: ObjectiveType = ObjectiveType.CUSTOM
    description: str | None = None

    # Polymorphic target (both set or both unset)
    target_type: EntityKind | None = None
    target_id: int | None = None

    quantity: int = Field(default=1, ge=1)
    """Goal count, e.g. "kill 3 goblins"."""

    current_progress: int = Field(default=0, ge=0)
    display_order: int = 0
    is_completed: bool = False
    is_optional: bool = False
    """Optional objectives are ignored by the quest completion check."""

    @property
    def target(self) -> EntityRef | None:
        if self.target_type is None or self.target_id is None:
            return None
        return EntityRef(kind=self.target_type, id=self.target_id)

    @property
    def progress(self) -> str:
        return f"{self.current_progress}/{self.quantity}"

    def clamp_progress(self, progress: int) -> int:
        return max(0, min(progress, self.quantity))

    def mark_complete(self) -> None:
        self.is_completed = True
        self.current_progress = self.quantity

    def summary(self) -> ObjectiveSummary:
        return ObjectiveSummary(
            id=self.id,
            description=self.description,
            objective_type=self.objective_type,
            progress=self.progress,
            is_completed=self.is_completed,
            is_optional=self.is_optional,
        )


class QuestSummary(BaseModel):
    """Public view of a quest with its objectives."""

    id: int
    name: str
    description: str | None = None
    quest_type: str
    status: QuestStatus
    room_id: int | None = None
    completed_at: datetime | None = None
    objectives: list[ObjectiveSummary] = Field(default_factory=list)


class Quest(BaseModel):
    """A quest tracked within a world (and optionally a play session)."""

    table: ClassVar[str] = "quests"

    id: int | None = None
    world_id: int
    room_id: int | None = Field(default=None, description="Play session; None for templates")
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    quest_type: str = "main"
    """main, side, personal."""

    status: QuestStatus = QuestStatus.ACTIVE
    completed_at: datetime | None = None

    @staticmethod
    def all_required_complete(objectives: list[QuestObjective]) -> bool:
        """Check if all non-optional objectives are complete."""
        required = [o for o in objectives if not o.is_optional]
        return all(o.is_completed for o in required)

    def complete(self, when: datetime) -> bool:
        """
        Mark quest as completed.

        Only active quests transition; returns True if the status changed.
        """
        if self.status != QuestStatus.ACTIVE:
            return False
        self.status = QuestStatus.COMPLETED
        if self.completed_at is None:
            self.completed_at = when
        return True

    def summary(self, objectives: list[QuestObjective]) -> QuestSummary:
        return QuestSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            quest_type=self.quest_type,
            status=self.status,
            room_id=self.room_id,
            completed_at=self.completed_at,
            objectives=[o.summary() for o in objectives],
        )
