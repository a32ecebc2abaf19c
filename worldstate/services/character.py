"""
Character Service for World State.

Character lifecycle, movement, combat (damage and healing) and inventory.
Hit points only change through damage_character and heal_character, which
keep `is_dead` in step with `current_hp`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from worldstate.db.interfaces import WorldRepository, first
from worldstate.models import (
    Character,
    CharacterAttributes,
    CharacterSummary,
    CharacterType,
    Container,
    ContainerSummary,
    EntityKind,
    EntityRef,
    Item,
    ItemSummary,
    Location,
    World,
)
from worldstate.models.attributes import coerce
from worldstate.services.base import ServiceResult
from worldstate.services.event_log import EventLog

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_PLAYER_MAX_HP = 20
DEFAULT_NPC_MAX_HP = 10
BASE_ARMOR_CLASS = 10


def default_armor_class(athletics: int) -> int:
    """Player armor class when none is given: 10 + athletics // 2."""
    return BASE_ARMOR_CLASS + athletics // 2


# =============================================================================
# Result Models
# =============================================================================


class CharacterResult(ServiceResult):
    """Result of creating or looking up a character."""

    character_id: int | None = None
    character: CharacterSummary | None = None


class MoveResult(ServiceResult):
    """Result of moving one character."""

    character_id: int | None = None
    from_location_id: int | None = None
    new_location_id: int | None = None
    new_location: str | None = None


class PartyMember(BaseModel):
    """Outcome for one character of a party move."""

    character_id: int
    status: str  # moved | failed
    error: str | None = None


class PartyMoveResult(ServiceResult):
    """Per-character outcome of a party move."""

    location: str | None = None
    moved: int = 0
    failed: int = 0
    details: list[PartyMember] = Field(default_factory=list)


class HealthResult(ServiceResult):
    """Result of damage, healing or a kill."""

    character_id: int | None = None
    old_hp: int | None = None
    new_hp: int | None = None
    max_hp: int | None = None
    is_dead: bool = False


class TransferResult(ServiceResult):
    """Result of taking or dropping an item."""

    character_id: int | None = None
    item_id: int | None = None
    location_id: int | None = None


class InventoryResult(ServiceResult):
    """Items and containers a character carries directly."""

    character: str | None = None
    items: list[ItemSummary] = Field(default_factory=list)
    containers: list[ContainerSummary] = Field(default_factory=list)


# =============================================================================
# Character Service
# =============================================================================


@dataclass
class CharacterService:
    """Movement, combat and inventory for players and NPCs."""

    repo: WorldRepository
    events: EventLog
    kill_damage: int = 9999

    # -------------------------------------------------------------------------
    # Movement
    # -------------------------------------------------------------------------

    def move_character(self, character_id: int, to_location_id: int) -> MoveResult:
        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return MoveResult.not_found("Character")
            location = self.repo.get(Location, to_location_id)
            if location is None or location.world_id != character.world_id:
                return MoveResult.not_found("Location")

            old_location_id = character.location_id
            character.location_id = to_location_id
            self.repo.update(character)

            ref = EntityRef.character(character_id)
            self.events.log(
                character.world_id,
                "character_moved",
                actor=ref,
                target=ref,
                data={"from_location_id": old_location_id, "to_location_id": to_location_id},
            )

        return MoveResult(
            character_id=character_id,
            from_location_id=old_location_id,
            new_location_id=to_location_id,
            new_location=location.name,
        )

    def move_party(self, character_ids: list[int], to_location_id: int) -> PartyMoveResult:
        """
        Move several characters, one after another.

        A missing destination fails the whole call before anyone moves. A
        failing character only fails its own entry; earlier moves stand.
        """
        location = self.repo.get(Location, to_location_id)
        if location is None:
            return PartyMoveResult.not_found("Location")

        result = PartyMoveResult(location=location.name)
        for character_id in character_ids:
            moved = self.move_character(character_id, to_location_id)
            if moved.success:
                result.moved += 1
                result.details.append(PartyMember(character_id=character_id, status="moved"))
            else:
                result.failed += 1
                result.details.append(
                    PartyMember(character_id=character_id, status="failed", error=moved.error)
                )
        return result

    # -------------------------------------------------------------------------
    # Combat
    # -------------------------------------------------------------------------

    def damage_character(
        self,
        character_id: int,
        amount: int,
        source: EntityRef | dict[str, Any] | None = None,
    ) -> HealthResult:
        """
        Apply damage. Hit points floor at zero, which kills.

        Damaging the dead is allowed and leaves them at zero.
        """
        if amount < 0:
            return HealthResult.invalid("Damage amount cannot be negative")
        try:
            source = EntityRef.coerce(source)
        except ValidationError as e:
            return HealthResult.invalid(e)

        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return HealthResult.not_found("Character")

            old_hp = character.current_hp
            was_dead = character.is_dead
            character.set_hp(old_hp - amount)
            self.repo.update(character)
            self.events.log(
                character.world_id,
                "character_damaged",
                actor=source,
                target=EntityRef.character(character_id),
                data={
                    "damage": amount,
                    "old_hp": old_hp,
                    "new_hp": character.current_hp,
                    "is_dead": character.is_dead,
                },
            )

        if character.is_dead and not was_dead:
            logger.info(f"Character {character_id} ({character.name}) was killed")
            message = f"{character.name} has been killed!"
        else:
            message = f"{character.name} took {amount} damage ({character.hp} HP)"

        return HealthResult(
            character_id=character_id,
            old_hp=old_hp,
            new_hp=character.current_hp,
            max_hp=character.max_hp,
            is_dead=character.is_dead,
            message=message,
        )

    def heal_character(
        self,
        character_id: int,
        amount: int,
        source: EntityRef | dict[str, Any] | None = None,
    ) -> HealthResult:
        """Restore hit points up to max_hp. The dead cannot be healed."""
        if amount < 0:
            return HealthResult.invalid("Heal amount cannot be negative")
        try:
            source = EntityRef.coerce(source)
        except ValidationError as e:
            return HealthResult.invalid(e)

        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return HealthResult.not_found("Character")
            if character.is_dead:
                return HealthResult.refused(
                    "Cannot heal a dead character",
                    character_id=character_id,
                    new_hp=character.current_hp,
                    max_hp=character.max_hp,
                    is_dead=True,
                )

            old_hp = character.current_hp
            character.set_hp(old_hp + amount)
            self.repo.update(character)
            self.events.log(
                character.world_id,
                "character_healed",
                actor=source,
                target=EntityRef.character(character_id),
                data={"healing": amount, "old_hp": old_hp, "new_hp": character.current_hp},
            )

        return HealthResult(
            character_id=character_id,
            old_hp=old_hp,
            new_hp=character.current_hp,
            max_hp=character.max_hp,
            message=f"{character.name} restored {amount} HP ({character.hp} HP)",
        )

    def kill_character(
        self, character_id: int, source: EntityRef | dict[str, Any] | None = None
    ) -> HealthResult:
        """Kill through the normal damage path."""
        # TODO: spill the character's inventory into a corpse container at their location
        return self.damage_character(character_id, self.kill_damage, source=source)

    # -------------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------------

    def character_take_item(self, character_id: int, item_id: int) -> TransferResult:
        """Pick an item up from wherever it is."""
        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return TransferResult.not_found("Character")
            item = self.repo.get(Item, item_id)
            if item is None or item.world_id != character.world_id:
                return TransferResult.not_found("Item")

            old_location_id = item.location_id
            old_container_id = item.container_id
            item.place(EntityRef.character(character_id))
            self.repo.update(item)
            self.events.log(
                character.world_id,
                "item_taken",
                actor=EntityRef.character(character_id),
                target=EntityRef(kind=EntityKind.ITEM, id=item_id),
                data={"from_location_id": old_location_id, "from_container_id": old_container_id},
            )

        return TransferResult(
            character_id=character_id,
            item_id=item_id,
            message=f"{character.name} took {item.name}",
        )

    def character_drop_item(self, character_id: int, item_id: int) -> TransferResult:
        """Drop a carried item at the character's current location."""
        with self.repo.transaction():
            character = self.repo.get(Character, character_id)
            if character is None:
                return TransferResult.not_found("Character")
            item = self.repo.get(Item, item_id)
            if item is None:
                return TransferResult.not_found("Item")
            if item.character_id != character_id:
                return TransferResult.refused("Character does not have this item")
            if character.location_id is None:
                return TransferResult.refused("Character is not at a location")

            item.place(EntityRef.location(character.location_id))
            self.repo.update(item)
            self.events.log(
                character.world_id,
                "item_dropped",
                actor=EntityRef.character(character_id),
                target=EntityRef(kind=EntityKind.ITEM, id=item_id),
                data={"at_location_id": character.location_id},
            )

        return TransferResult(
            character_id=character_id,
            item_id=item_id,
            location_id=character.location_id,
            message=f"{character.name} dropped {item.name}",
        )

    def get_character_inventory(self, character_id: int) -> InventoryResult:
        character = self.repo.get(Character, character_id)
        if character is None:
            return InventoryResult.not_found("Character")
        items = self.repo.find(Item, character_id=character_id)
        containers = self.repo.find(Container, character_id=character_id)
        return InventoryResult(
            character=character.name,
            items=[i.summary() for i in items],
            containers=[c.summary() for c in containers],
        )

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def _validate_start(
        self, world_id: int, attrs: CharacterAttributes
    ) -> CharacterResult | None:
        if self.repo.get(World, world_id) is None:
            return CharacterResult.not_found("World")
        if attrs.location_id is not None:
            location = self.repo.get(Location, attrs.location_id)
            if location is None or location.world_id != world_id:
                return CharacterResult.not_found("Location")
        return None

    def _create(
        self,
        character: Character,
        actor: EntityRef,
    ) -> CharacterResult:
        character = self.repo.add(character)
        self.events.log(
            character.world_id,
            "character_created",
            actor=actor,
            target=EntityRef.character(character.id),
            data={
                "character_type": character.character_type.value,
                "is_hostile": character.is_hostile,
            },
            created_by=character.created_by,
        )
        return CharacterResult(character_id=character.id, character=character.summary())

    def create_player_character(
        self,
        user_id: int,
        world_id: int,
        attrs: CharacterAttributes | dict[str, Any] | None,
    ) -> CharacterResult:
        """
        Create a user's character in a world.

        A user gets one player character per world; asking again returns the
        existing character's id on an error result.
        """
        try:
            attrs = coerce(CharacterAttributes, attrs)
        except ValidationError as e:
            return CharacterResult.invalid(e)

        with self.repo.transaction():
            existing = first(
                self.repo.find(
                    Character,
                    user_id=user_id,
                    world_id=world_id,
                    character_type=CharacterType.PLAYER,
                )
            )
            if existing is not None:
                logger.warning(f"User {user_id} already has character {existing.id} in world {world_id}")
                return CharacterResult.refused(
                    "User already has a character in this world",
                    character_id=existing.id,
                )
            invalid = self._validate_start(world_id, attrs)
            if invalid is not None:
                return invalid

            max_hp = attrs.max_hp or DEFAULT_PLAYER_MAX_HP
            values = attrs.model_dump(exclude={"max_hp", "armor_class", "created_by"})
            character = Character(
                world_id=world_id,
                user_id=user_id,
                character_type=CharacterType.PLAYER,
                max_hp=max_hp,
                current_hp=max_hp,
                armor_class=(
                    attrs.armor_class
                    if attrs.armor_class is not None
                    else default_armor_class(attrs.athletics)
                ),
                created_by=user_id,
                **values,
            )
            return self._create(character, EntityRef.user(user_id))

    def get_player_character(self, user_id: int, world_id: int) -> CharacterResult:
        character = first(
            self.repo.find(
                Character,
                user_id=user_id,
                world_id=world_id,
                character_type=CharacterType.PLAYER,
            )
        )
        if character is None:
            return CharacterResult.not_found("Character")
        return CharacterResult(character_id=character.id, character=character.summary())

    def create_npc(
        self,
        world_id: int,
        attrs: CharacterAttributes | dict[str, Any] | None,
    ) -> CharacterResult:
        """Create a non-player character at full health."""
        try:
            attrs = coerce(CharacterAttributes, attrs)
        except ValidationError as e:
            return CharacterResult.invalid(e)

        with self.repo.transaction():
            invalid = self._validate_start(world_id, attrs)
            if invalid is not None:
                return invalid

            max_hp = attrs.max_hp or DEFAULT_NPC_MAX_HP
            values = attrs.model_dump(exclude={"max_hp", "armor_class"})
            character = Character(
                world_id=world_id,
                character_type=CharacterType.NPC,
                max_hp=max_hp,
                current_hp=max_hp,
                armor_class=(
                    attrs.armor_class if attrs.armor_class is not None else BASE_ARMOR_CLASS
                ),
                **values,
            )
            return self._create(character, EntityRef.user(attrs.created_by))
