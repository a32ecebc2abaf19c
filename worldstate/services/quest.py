"""
Quest Service for World State.

Tracks quests and their objectives. A quest completes itself once every
non-optional objective is complete, whether the last objective was completed
explicitly or by its progress reaching the goal count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import Field, ValidationError

from worldstate.db.interfaces import WorldRepository
from worldstate.models import (
    EntityKind,
    EntityRef,
    ObjectiveAttributes,
    ObjectiveSummary,
    Quest,
    QuestAttributes,
    QuestObjective,
    QuestStatus,
    QuestSummary,
    World,
)
from worldstate.models.attributes import coerce
from worldstate.services.base import Clock, ServiceResult, resolve_ref, utc_now
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)


# =============================================================================
# Result Models
# =============================================================================


class QuestResult(ServiceResult):
    """Result of creating, reading or closing a quest."""

    quest_id: int | None = None
    quest: QuestSummary | None = None


class QuestListResult(ServiceResult):
    quests: list[QuestSummary] = Field(default_factory=list)
    count: int = 0


class ObjectiveResult(ServiceResult):
    """Result of adding or advancing an objective."""

    objective_id: int | None = None
    quest_id: int | None = None
    objective: ObjectiveSummary | None = None
    current_progress: int | None = None
    quantity: int | None = None
    quest_completed: bool = False


class QuestProgressResult(ServiceResult):
    """Read-only rollup of a quest's objectives."""

    quest_id: int | None = None
    quest_name: str | None = None
    status: QuestStatus | None = None
    all_objectives_complete: bool = False
    objectives: list[ObjectiveSummary] = Field(default_factory=list)


class ObjectiveTargetResult(ServiceResult):
    """The entity an objective points at."""

    objective_id: int | None = None
    target: str | None = None
    found: bool = False
    entity: dict[str, Any] | None = None


# =============================================================================
# Quest Service
# =============================================================================


@dataclass
class QuestService:
    """Quest and objective tracking."""

    repo: WorldRepository
    events: EventLog
    clock: Clock = utc_now

    def _objectives(self, quest_id: int) -> list[QuestObjective]:
        objectives = self.repo.find(QuestObjective, quest_id=quest_id)
        return sorted(objectives, key=lambda o: (o.display_order, o.id))

    def _summary(self, quest: Quest) -> QuestSummary:
        return quest.summary(self._objectives(quest.id))

    def _log(self, quest: Quest, event_type: str, target: EntityRef, **data: Any) -> None:
        self.events.log(quest.world_id, event_type, target=target, data=data, room_id=quest.room_id)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_quest(
        self,
        world_id: int,
        attrs: QuestAttributes | dict[str, Any] | None,
        room_id: int | None = None,
    ) -> QuestResult:
        try:
            attrs = coerce(QuestAttributes, attrs)
        except ValidationError as e:
            return QuestResult.invalid(e)

        with self.repo.transaction():
            if self.repo.get(World, world_id) is None:
                return QuestResult.not_found("World")

            quest = self.repo.add(Quest(world_id=world_id, room_id=room_id, **attrs.model_dump()))
            self._log(
                quest,
                "quest_created",
                EntityRef(kind=EntityKind.QUEST, id=quest.id),
                quest_type=quest.quest_type,
            )

        return QuestResult(quest_id=quest.id, quest=quest.summary([]))

    def add_quest_objective(
        self,
        quest_id: int,
        attrs: ObjectiveAttributes | dict[str, Any] | None,
    ) -> ObjectiveResult:
        """Add an objective. It starts with no progress."""
        try:
            attrs = coerce(ObjectiveAttributes, attrs)
        except ValidationError as e:
            return ObjectiveResult.invalid(e)

        with self.repo.transaction():
            quest = self.repo.get(Quest, quest_id)
            if quest is None:
                return ObjectiveResult.not_found("Quest")

            objective = self.repo.add(QuestObjective(quest_id=quest_id, **attrs.model_dump()))
            self._log(
                quest,
                "objective_added",
                EntityRef(kind=EntityKind.QUEST_OBJECTIVE, id=objective.id),
                quest_id=quest_id,
                objective_type=objective.objective_type.value,
            )

        return ObjectiveResult(
            objective_id=objective.id,
            quest_id=quest_id,
            objective=objective.summary(),
            current_progress=objective.current_progress,
            quantity=objective.quantity,
        )

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def _complete_if_done(self, quest: Quest) -> bool:
        """Complete an active quest whose required objectives are all done."""
        if quest.status != QuestStatus.ACTIVE:
            return False
        if not Quest.all_required_complete(self._objectives(quest.id)):
            return False

        quest.complete(self.clock())
        self.repo.update(quest)
        self._log(
            quest,
            "quest_completed",
            EntityRef(kind=EntityKind.QUEST, id=quest.id),
            quest_name=quest.name,
        )
        logger.info(f"Quest {quest.id} ({quest.name}) completed")
        return True

    def _complete(self, objective: QuestObjective) -> ObjectiveResult:
        quest = self.repo.get(Quest, objective.quest_id)
        if quest is None:
            return ObjectiveResult.not_found("Quest")

        objective.mark_complete()
        self.repo.update(objective)
        self._log(
            quest,
            "objective_completed",
            EntityRef(kind=EntityKind.QUEST_OBJECTIVE, id=objective.id),
            quest_id=quest.id,
            objective_type=objective.objective_type.value,
        )
        self._complete_if_done(quest)

        return ObjectiveResult(
            objective_id=objective.id,
            quest_id=quest.id,
            objective=objective.summary(),
            current_progress=objective.current_progress,
            quantity=objective.quantity,
            quest_completed=quest.status == QuestStatus.COMPLETED,
        )

    def complete_objective(self, objective_id: int) -> ObjectiveResult:
        """Mark an objective complete and re-check its quest."""
        with self.repo.transaction():
            objective = self.repo.get(QuestObjective, objective_id)
            if objective is None:
                return ObjectiveResult.not_found("Objective")
            return self._complete(objective)

    def update_objective_progress(self, objective_id: int, progress: int) -> ObjectiveResult:
        """
        Set an objective's progress, clamped to [0, quantity].

        Reaching the goal completes the objective. Completed objectives keep
        their progress.
        """
        with self.repo.transaction():
            objective = self.repo.get(QuestObjective, objective_id)
            if objective is None:
                return ObjectiveResult.not_found("Objective")
            quest = self.repo.get(Quest, objective.quest_id)
            if quest is None:
                return ObjectiveResult.not_found("Quest")

            if objective.is_completed:
                return ObjectiveResult(
                    objective_id=objective_id,
                    quest_id=quest.id,
                    objective=objective.summary(),
                    current_progress=objective.current_progress,
                    quantity=objective.quantity,
                    quest_completed=quest.status == QuestStatus.COMPLETED,
                    message="Objective already completed",
                )

            old_progress = objective.current_progress
            objective.current_progress = objective.clamp_progress(progress)
            self.repo.update(objective)
            self._log(
                quest,
                "objective_progress_updated",
                EntityRef(kind=EntityKind.QUEST_OBJECTIVE, id=objective_id),
                quest_id=quest.id,
                old_progress=old_progress,
                new_progress=objective.current_progress,
            )

            if objective.current_progress >= objective.quantity:
                return self._complete(objective)

        return ObjectiveResult(
            objective_id=objective_id,
            quest_id=quest.id,
            objective=objective.summary(),
            current_progress=objective.current_progress,
            quantity=objective.quantity,
        )

    def _close(self, quest_id: int, status: QuestStatus, event_type: str, **data: Any) -> QuestResult:
        with self.repo.transaction():
            quest = self.repo.get(Quest, quest_id)
            if quest is None:
                return QuestResult.not_found("Quest")
            if quest.status != QuestStatus.ACTIVE:
                return QuestResult.refused("Quest is not active", quest_id=quest_id)

            quest.status = status
            self.repo.update(quest)
            self._log(
                quest,
                event_type,
                EntityRef(kind=EntityKind.QUEST, id=quest_id),
                quest_name=quest.name,
                **data,
            )

        logger.info(f"Quest {quest_id} ({quest.name}) {status.value}")
        return QuestResult(quest_id=quest_id, quest=self._summary(quest))

    def fail_quest(self, quest_id: int, reason: str | None = None) -> QuestResult:
        return self._close(quest_id, QuestStatus.FAILED, "quest_failed", reason=reason)

    def abandon_quest(self, quest_id: int) -> QuestResult:
        return self._close(quest_id, QuestStatus.ABANDONED, "quest_abandoned")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def check_quest_progress(self, quest_id: int) -> QuestProgressResult:
        quest = self.repo.get(Quest, quest_id)
        if quest is None:
            return QuestProgressResult.not_found("Quest")
        objectives = self._objectives(quest_id)
        return QuestProgressResult(
            quest_id=quest.id,
            quest_name=quest.name,
            status=quest.status,
            all_objectives_complete=Quest.all_required_complete(objectives),
            objectives=[o.summary() for o in objectives],
        )

    def get_quest_details(self, quest_id: int) -> QuestResult:
        quest = self.repo.get(Quest, quest_id)
        if quest is None:
            return QuestResult.not_found("Quest")
        return QuestResult(quest_id=quest.id, quest=self._summary(quest))

    def get_active_quests(self, world_id: int, room_id: int | None = None) -> QuestListResult:
        """Active quests of a world, or of one play session within it."""
        criteria: dict[str, Any] = {"world_id": world_id, "status": QuestStatus.ACTIVE}
        if room_id is not None:
            criteria["room_id"] = room_id
        quests = [self._summary(q) for q in self.repo.find(Quest, **criteria)]
        return QuestListResult(quests=quests, count=len(quests))

    def get_objective_target(self, objective_id: int) -> ObjectiveTargetResult:
        """Resolve an objective's target reference into the stored entity."""
        objective = self.repo.get(QuestObjective, objective_id)
        if objective is None:
            return ObjectiveTargetResult.not_found("Objective")

        target = objective.target
        if target is None:
            return ObjectiveTargetResult(objective_id=objective_id)
        entity = resolve_ref(self.repo, target)
        return ObjectiveTargetResult(
            objective_id=objective_id,
            target=str(target),
            found=entity is not None,
            entity=entity.model_dump(mode="json") if entity is not None else None,
        )
