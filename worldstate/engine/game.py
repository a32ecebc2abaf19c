"""
Game Engine for World State.

The single entry point external callers use (chat command handlers, HTTP
action dispatchers, AI tool-call executors). It composes every service over
one shared repository and forwards each operation explicitly.

Storage faults never escape: each operation runs guarded, and a StorageError
becomes a `storage` failure of that operation's result type. Because a
mutation and its event share one transaction, a failed operation leaves
neither behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from worldstate.db import InMemoryWorldRepository, SqlConnection, SqlWorldRepository
from worldstate.db.interfaces import StorageError, WorldRepository
from worldstate.engine.models import EngineConfig, StorageBackend
from worldstate.models import EntityRef
from worldstate.services import (
    CharacterListResult,
    CharacterResult,
    CharacterService,
    ConnectionResult,
    ConnectionService,
    ContainerListResult,
    ContainerResult,
    CopyWorldResult,
    ErrorKind,
    EventListResult,
    EventLog,
    EventResult,
    ExitListResult,
    ExitResult,
    HealthResult,
    InventoryResult,
    ItemListResult,
    ItemResult,
    ItemService,
    LocationDescriptionResult,
    LocationResult,
    LocationService,
    LocationStateResult,
    MoveResult,
    ObjectiveResult,
    ObjectiveTargetResult,
    PartyMoveResult,
    QuestListResult,
    QuestProgressResult,
    QuestResult,
    QuestService,
    ServiceResult,
    StateValueResult,
    TransferResult,
    TraversalResult,
    WorldBuilder,
    WorldCreateResult,
    WorldResult,
    WorldService,
    WorldTimeResult,
)
from worldstate.services.base import Clock, utc_now

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=ServiceResult)


def build_repository(config: EngineConfig) -> WorldRepository:
    """Create the repository for the configured backend."""
    if config.backend == StorageBackend.SQL:
        connection = SqlConnection(
            host=config.db_host,
            port=config.db_port,
            user=config.db_user,
            password=config.db_password,
            database=config.db_name,
        )
        return SqlWorldRepository(connection)
    return InMemoryWorldRepository()


@dataclass
class GameEngine:
    """
    Facade over every world-state service.

    Holds no state of its own beyond the repository and the services built
    on it.
    """

    repo: WorldRepository
    config: EngineConfig = field(default_factory=EngineConfig)
    clock: Clock = utc_now

    # Components (initialized in __post_init__)
    events: EventLog = field(init=False)
    worlds: WorldService = field(init=False)
    connections: ConnectionService = field(init=False)
    locations: LocationService = field(init=False)
    items: ItemService = field(init=False)
    characters: CharacterService = field(init=False)
    quests: QuestService = field(init=False)
    builder: WorldBuilder = field(init=False)

    def __post_init__(self) -> None:
        """Initialize services over the shared repository."""
        self.events = EventLog(
            repo=self.repo,
            clock=self.clock,
            default_limit=self.config.recent_events_limit,
        )
        self.worlds = WorldService(repo=self.repo, events=self.events)
        self.connections = ConnectionService(repo=self.repo, events=self.events)
        self.locations = LocationService(
            repo=self.repo, events=self.events, connections=self.connections
        )
        self.items = ItemService(repo=self.repo, events=self.events)
        self.characters = CharacterService(
            repo=self.repo, events=self.events, kill_damage=self.config.kill_damage
        )
        self.quests = QuestService(repo=self.repo, events=self.events, clock=self.clock)
        self.builder = WorldBuilder(
            repo=self.repo,
            events=self.events,
            max_location_depth=self.config.max_location_depth,
        )

    @classmethod
    def from_config(cls, config: EngineConfig | None = None, clock: Clock | None = None) -> GameEngine:
        """Build an engine and its repository from configuration (defaults: environment)."""
        config = config or EngineConfig.from_env()
        logger.info(f"Starting world-state engine with {config.backend.value} storage")
        return cls(repo=build_repository(config), config=config, clock=clock or utc_now)

    def _guarded(self, result_type: type[R], op: Callable[..., R], /, *args: Any, **kwargs: Any) -> R:
        """Run an operation, turning storage faults into a failed result."""
        try:
            return op(*args, **kwargs)
        except StorageError as e:
            logger.exception(f"Storage failure in {op.__name__}")
            return result_type.failure(ErrorKind.STORAGE, f"Storage failure: {e}")

    # =========================================================================
    # Event Log
    # =========================================================================

    def log_event(
        self,
        world_id: int,
        event_type: str,
        *,
        actor: EntityRef | dict[str, Any] | None = None,
        target: EntityRef | dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        room_id: int | None = None,
        created_by: int | None = None,
        **columns: Any,
    ) -> EventResult:
        return self._guarded(
            EventResult,
            self.events.record,
            world_id,
            event_type,
            actor=actor,
            target=target,
            data=data,
            room_id=room_id,
            created_by=created_by,
            **columns,
        )

    def get_recent_events(
        self, world_id: int, limit: int | None = None, room_id: int | None = None
    ) -> EventListResult:
        return self._guarded(
            EventListResult, self.events.get_recent_events, world_id, limit=limit, room_id=room_id
        )

    def get_events(self, world_id: int, filters: dict[str, Any] | None = None) -> EventListResult:
        return self._guarded(EventListResult, self.events.get_events, world_id, filters)

    # =========================================================================
    # World
    # =========================================================================

    def get_world(self, world_id: int) -> WorldResult:
        return self._guarded(WorldResult, self.worlds.get_world, world_id)

    def get_world_time(self, world_id: int) -> WorldTimeResult:
        return self._guarded(WorldTimeResult, self.worlds.get_world_time, world_id)

    def advance_time(self, world_id: int, to_time_of_day: str) -> WorldTimeResult:
        return self._guarded(WorldTimeResult, self.worlds.advance_time, world_id, to_time_of_day)

    def advance_day(self, world_id: int) -> WorldTimeResult:
        return self._guarded(WorldTimeResult, self.worlds.advance_day, world_id)

    def set_world_state(self, world_id: int, key: str, value: Any) -> StateValueResult:
        return self._guarded(StateValueResult, self.worlds.set_world_state, world_id, key, value)

    def get_world_state(self, world_id: int, key: str) -> StateValueResult:
        return self._guarded(StateValueResult, self.worlds.get_world_state, world_id, key)

    # =========================================================================
    # Locations
    # =========================================================================

    def describe_location(self, location_id: int) -> LocationDescriptionResult:
        return self._guarded(
            LocationDescriptionResult, self.locations.describe_location, location_id
        )

    def list_characters_at(self, location_id: int) -> CharacterListResult:
        return self._guarded(CharacterListResult, self.locations.list_characters_at, location_id)

    def list_items_at(self, location_id: int) -> ItemListResult:
        return self._guarded(ItemListResult, self.locations.list_items_at, location_id)

    def list_containers_at(self, location_id: int) -> ContainerListResult:
        return self._guarded(ContainerListResult, self.locations.list_containers_at, location_id)

    def get_location_state(self, location_id: int, key: str) -> LocationStateResult:
        return self._guarded(
            LocationStateResult, self.locations.get_location_state, location_id, key
        )

    def get_all_location_state(self, location_id: int) -> LocationStateResult:
        return self._guarded(LocationStateResult, self.locations.get_all_location_state, location_id)

    def set_location_state(self, location_id: int, key: str, value: Any) -> LocationStateResult:
        return self._guarded(
            LocationStateResult, self.locations.set_location_state, location_id, key, value
        )

    def clear_location_state(self, location_id: int, key: str) -> LocationStateResult:
        return self._guarded(
            LocationStateResult, self.locations.clear_location_state, location_id, key
        )

    # =========================================================================
    # Connections
    # =========================================================================

    def create_connection(
        self,
        world_id: int,
        from_location_id: int,
        to_location_id: int,
        attrs: dict[str, Any] | None,
    ) -> ConnectionResult:
        return self._guarded(
            ConnectionResult,
            self.connections.create_connection,
            world_id,
            from_location_id,
            to_location_id,
            attrs,
        )

    def list_exits(self, location_id: int) -> ExitListResult:
        return self._guarded(ExitListResult, self.connections.list_exits, location_id)

    def get_implicit_connections(self, location_id: int) -> ExitListResult:
        return self._guarded(
            ExitListResult, self.connections.get_implicit_connections, location_id
        )

    def get_connection(self, from_location_id: int, direction: str) -> ExitResult:
        return self._guarded(
            ExitResult, self.connections.get_connection, from_location_id, direction
        )

    def open_door(self, connection_id: int) -> ConnectionResult:
        return self._guarded(ConnectionResult, self.connections.open_door, connection_id)

    def close_door(self, connection_id: int) -> ConnectionResult:
        return self._guarded(ConnectionResult, self.connections.close_door, connection_id)

    def lock_door(self, connection_id: int, with_item_id: int | None = None) -> ConnectionResult:
        return self._guarded(
            ConnectionResult, self.connections.lock_door, connection_id, with_item_id=with_item_id
        )

    def unlock_door(self, connection_id: int, using_item_id: int | None = None) -> ConnectionResult:
        return self._guarded(
            ConnectionResult,
            self.connections.unlock_door,
            connection_id,
            using_item_id=using_item_id,
        )

    def reveal_exit(self, connection_id: int) -> ConnectionResult:
        return self._guarded(ConnectionResult, self.connections.reveal_exit, connection_id)

    def hide_exit(self, connection_id: int) -> ConnectionResult:
        return self._guarded(ConnectionResult, self.connections.hide_exit, connection_id)

    def traverse_connection(self, character_id: int, connection_id: int) -> TraversalResult:
        return self._guarded(
            TraversalResult, self.connections.traverse_connection, character_id, connection_id
        )

    def traverse_by_direction(self, character_id: int, direction: str) -> TraversalResult:
        return self._guarded(
            TraversalResult, self.connections.traverse_by_direction, character_id, direction
        )

    # =========================================================================
    # Items
    # =========================================================================

    def create_item(self, world_id: int, attrs: dict[str, Any] | None) -> ItemResult:
        return self._guarded(ItemResult, self.items.create_item, world_id, attrs)

    def get_item(self, item_id: int) -> ItemResult:
        return self._guarded(ItemResult, self.items.get_item, item_id)

    def modify_item_quantity(self, item_id: int, delta: int) -> ItemResult:
        return self._guarded(ItemResult, self.items.modify_item_quantity, item_id, delta)

    def move_item(self, item_id: int, to: EntityRef | dict[str, Any]) -> ItemResult:
        return self._guarded(ItemResult, self.items.move_item, item_id, to)

    # =========================================================================
    # Characters
    # =========================================================================

    def move_character(self, character_id: int, to_location_id: int) -> MoveResult:
        return self._guarded(
            MoveResult, self.characters.move_character, character_id, to_location_id
        )

    def move_party(self, character_ids: list[int], to_location_id: int) -> PartyMoveResult:
        return self._guarded(
            PartyMoveResult, self.characters.move_party, character_ids, to_location_id
        )

    def damage_character(
        self, character_id: int, amount: int, source: EntityRef | dict[str, Any] | None = None
    ) -> HealthResult:
        return self._guarded(
            HealthResult, self.characters.damage_character, character_id, amount, source=source
        )

    def heal_character(
        self, character_id: int, amount: int, source: EntityRef | dict[str, Any] | None = None
    ) -> HealthResult:
        return self._guarded(
            HealthResult, self.characters.heal_character, character_id, amount, source=source
        )

    def kill_character(
        self, character_id: int, source: EntityRef | dict[str, Any] | None = None
    ) -> HealthResult:
        return self._guarded(
            HealthResult, self.characters.kill_character, character_id, source=source
        )

    def character_take_item(self, character_id: int, item_id: int) -> TransferResult:
        return self._guarded(
            TransferResult, self.characters.character_take_item, character_id, item_id
        )

    def character_drop_item(self, character_id: int, item_id: int) -> TransferResult:
        return self._guarded(
            TransferResult, self.characters.character_drop_item, character_id, item_id
        )

    def get_character_inventory(self, character_id: int) -> InventoryResult:
        return self._guarded(
            InventoryResult, self.characters.get_character_inventory, character_id
        )

    def create_player_character(
        self, user_id: int, world_id: int, attrs: dict[str, Any] | None
    ) -> CharacterResult:
        return self._guarded(
            CharacterResult, self.characters.create_player_character, user_id, world_id, attrs
        )

    def get_player_character(self, user_id: int, world_id: int) -> CharacterResult:
        return self._guarded(
            CharacterResult, self.characters.get_player_character, user_id, world_id
        )

    def create_npc(self, world_id: int, attrs: dict[str, Any] | None) -> CharacterResult:
        return self._guarded(CharacterResult, self.characters.create_npc, world_id, attrs)

    # =========================================================================
    # Quests
    # =========================================================================

    def create_quest(
        self, world_id: int, attrs: dict[str, Any] | None, room_id: int | None = None
    ) -> QuestResult:
        return self._guarded(
            QuestResult, self.quests.create_quest, world_id, attrs, room_id=room_id
        )

    def add_quest_objective(self, quest_id: int, attrs: dict[str, Any] | None) -> ObjectiveResult:
        return self._guarded(ObjectiveResult, self.quests.add_quest_objective, quest_id, attrs)

    def complete_objective(self, objective_id: int) -> ObjectiveResult:
        return self._guarded(ObjectiveResult, self.quests.complete_objective, objective_id)

    def update_objective_progress(self, objective_id: int, progress: int) -> ObjectiveResult:
        return self._guarded(
            ObjectiveResult, self.quests.update_objective_progress, objective_id, progress
        )

    def check_quest_progress(self, quest_id: int) -> QuestProgressResult:
        return self._guarded(QuestProgressResult, self.quests.check_quest_progress, quest_id)

    def get_active_quests(self, world_id: int, room_id: int | None = None) -> QuestListResult:
        return self._guarded(
            QuestListResult, self.quests.get_active_quests, world_id, room_id=room_id
        )

    def get_quest_details(self, quest_id: int) -> QuestResult:
        return self._guarded(QuestResult, self.quests.get_quest_details, quest_id)

    def fail_quest(self, quest_id: int, reason: str | None = None) -> QuestResult:
        return self._guarded(QuestResult, self.quests.fail_quest, quest_id, reason=reason)

    def abandon_quest(self, quest_id: int) -> QuestResult:
        return self._guarded(QuestResult, self.quests.abandon_quest, quest_id)

    def get_objective_target(self, objective_id: int) -> ObjectiveTargetResult:
        return self._guarded(ObjectiveTargetResult, self.quests.get_objective_target, objective_id)

    # =========================================================================
    # World Building
    # =========================================================================

    def create_world(
        self,
        name: str,
        description: str | None = None,
        created_by: int | None = None,
        is_template: bool = False,
    ) -> WorldCreateResult:
        return self._guarded(
            WorldCreateResult,
            self.builder.create_world,
            name,
            description=description,
            created_by=created_by,
            is_template=is_template,
        )

    def create_location(
        self,
        world_id: int,
        name: str,
        description: str | None = None,
        location_type: str | None = None,
        parent_location_id: int | None = None,
        state: dict[str, Any] | None = None,
    ) -> LocationResult:
        return self._guarded(
            LocationResult,
            self.builder.create_location,
            world_id,
            name,
            description=description,
            location_type=location_type,
            parent_location_id=parent_location_id,
            state=state,
        )

    def set_location_parent(
        self, location_id: int, parent_location_id: int | None
    ) -> LocationResult:
        return self._guarded(
            LocationResult, self.builder.set_location_parent, location_id, parent_location_id
        )

    def create_container(self, world_id: int, attrs: dict[str, Any] | None) -> ContainerResult:
        return self._guarded(ContainerResult, self.builder.create_container, world_id, attrs)

    def copy_world(
        self,
        template_world_id: int,
        new_name: str | None = None,
        created_by: int | None = None,
        is_template: bool = False,
    ) -> CopyWorldResult:
        return self._guarded(
            CopyWorldResult,
            self.builder.copy_world,
            template_world_id,
            new_name=new_name,
            created_by=created_by,
            is_template=is_template,
        )
