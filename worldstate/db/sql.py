"""
SQL database implementation for World State.

Uses mysql-connector-python to connect to a MySQL-compatible server
(MySQL, MariaDB or Dolt). Statements are built from the pydantic model
fields, so every model maps onto one table with one column per field.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any

import mysql.connector
from mysql.connector.cursor import MySQLCursor

from worldstate.db.interfaces import Record, StorageError, check_criteria
from worldstate.models import GameEvent

logger = logging.getLogger(__name__)


class SqlConnection:
    """
    Connection manager for the SQL server.

    Autocommit is off; the repository opens and closes transactions itself.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        user: str = "root",
        password: str = "",
        database: str = "worldstate",
    ) -> None:
        self.config = {
            "host": host,
            "port": port,
            "user": user,
            "password": password,
            "database": database,
            "autocommit": False,
        }
        self._connection: Any = None

    def get_connection(self) -> Any:
        """Get or create a database connection."""
        if self._connection is None or not self._connection.is_connected():
            self._connection = mysql.connector.connect(**self.config)
        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
            self._connection = None


def _quote(column: str) -> str:
    if not column.isidentifier():
        raise ValueError(f"Invalid column name: {column}")
    return f"`{column}`"


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not JSON-serialisable: {e}") from e
    return value


class SqlWorldRepository:
    """
    SQL implementation of the WorldRepository interface.

    One connection is shared and guarded by a re-entrant lock, which also
    serialises transactions across threads.
    """

    def __init__(self, connection: SqlConnection) -> None:
        self._conn = connection
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Atomic unit of work. Nested blocks join the outer one."""
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            try:
                conn = self._conn.get_connection()
                conn.start_transaction()
            except mysql.connector.Error as e:
                raise StorageError(f"Could not open transaction: {e}") from e

            self._depth = 1
            try:
                yield
            except BaseException:
                self._rollback(conn)
                raise
            else:
                try:
                    conn.commit()
                except mysql.connector.Error as e:
                    self._rollback(conn)
                    raise StorageError(f"Commit failed: {e}") from e
            finally:
                self._depth = 0

    def _rollback(self, conn: Any) -> None:
        try:
            conn.rollback()
        except mysql.connector.Error:
            logger.exception("Rollback failed")

    def _execute(
        self,
        query: str,
        params: tuple[Any, ...] | None = None,
        fetch: bool = True,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Execute a query and return (rows as dicts, last inserted id)."""
        conn = self._conn.get_connection()
        cursor: MySQLCursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(query, params or ())
            if fetch:
                results = cursor.fetchall()
                return [dict(row) for row in results], None  # type: ignore[arg-type]
            return [], cursor.lastrowid
        except mysql.connector.Error as e:
            raise StorageError(str(e)) from e
        finally:
            cursor.close()

    def _where(self, criteria: dict[str, Any]) -> tuple[str, tuple[Any, ...]]:
        clauses = []
        params: list[Any] = []
        for key, value in criteria.items():
            if value is None:
                clauses.append(f"{_quote(key)} IS NULL")
            else:
                clauses.append(f"{_quote(key)} = %s")
                params.append(_to_db(value))
        where = " AND ".join(clauses) if clauses else "1 = 1"
        return where, tuple(params)

    def _insert(self, record: Record) -> Record:
        model = type(record)
        values = record.model_dump(exclude={"id"})
        columns = ", ".join(_quote(c) for c in values)
        placeholders = ", ".join(["%s"] * len(values))
        query = f"INSERT INTO {model.table} ({columns}) VALUES ({placeholders})"
        with self.transaction():
            _, new_id = self._execute(
                query, tuple(_to_db(v) for v in values.values()), fetch=False
            )
        return record.model_copy(update={"id": new_id}, deep=True)

    # =========================================================================
    # Entity Operations
    # =========================================================================

    def add(self, record: Record) -> Record:
        """Insert a record and return it with its new id."""
        return self._insert(record)

    def get(self, model: type[Record], record_id: int | None) -> Record | None:
        """Get a record by id."""
        if record_id is None:
            return None
        with self.transaction():
            rows, _ = self._execute(f"SELECT * FROM {model.table} WHERE id = %s", (record_id,))
        return model.model_validate(rows[0]) if rows else None

    def update(self, record: Record) -> Record:
        """Overwrite an existing record."""
        model = type(record)
        record_id = getattr(record, "id", None)
        values = record.model_dump(exclude={"id"})
        assignments = ", ".join(f"{_quote(c)} = %s" for c in values)
        query = f"UPDATE {model.table} SET {assignments} WHERE id = %s"
        with self.transaction():
            # Matched-row counts vary by server, so check existence explicitly
            rows, _ = self._execute(f"SELECT id FROM {model.table} WHERE id = %s", (record_id,))
            if not rows:
                raise StorageError(f"{model.__name__} {record_id} does not exist")
            self._execute(
                query,
                tuple(_to_db(v) for v in values.values()) + (record_id,),
                fetch=False,
            )
        return record

    def delete(self, model: type[Record], record_id: int) -> None:
        """Delete a record by id."""
        with self.transaction():
            self._execute(f"DELETE FROM {model.table} WHERE id = %s", (record_id,), fetch=False)

    def find(self, model: type[Record], **criteria: Any) -> list[Record]:
        """Get all records matching the criteria, ordered by id."""
        check_criteria(model, criteria)
        where, params = self._where(criteria)
        with self.transaction():
            rows, _ = self._execute(f"SELECT * FROM {model.table} WHERE {where} ORDER BY id", params)
        return [model.model_validate(row) for row in rows]

    # =========================================================================
    # Event Operations
    # =========================================================================

    def append_event(self, event: GameEvent) -> GameEvent:
        """Append an event to the immutable event log."""
        return self._insert(event)

    def list_events(
        self,
        world_id: int,
        limit: int | None = None,
        **criteria: Any,
    ) -> list[GameEvent]:
        """Get events for a world, newest first."""
        check_criteria(GameEvent, criteria)
        where, params = self._where({"world_id": world_id, **criteria})
        query = f"SELECT * FROM {GameEvent.table} WHERE {where} ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT %s"
            params += (limit,)
        with self.transaction():
            rows, _ = self._execute(query, params)
        return [GameEvent.model_validate(row) for row in rows]


# =============================================================================
# Schema Initialization
# =============================================================================

SCHEMA = """
-- Worlds (and world templates)
CREATE TABLE IF NOT EXISTS worlds (
    id INT AUTO_INCREMENT PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    description TEXT,
    created_by INT,
    is_template BOOLEAN NOT NULL DEFAULT FALSE,
    time_of_day VARCHAR(20) NOT NULL DEFAULT 'morning',
    days_elapsed INT NOT NULL DEFAULT 0,
    world_state JSON
);

-- Locations, nested through parent_location_id
CREATE TABLE IF NOT EXISTS locations (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    parent_location_id INT,
    name VARCHAR(255) NOT NULL,
    description TEXT,
    location_type VARCHAR(50),
    state JSON,
    INDEX idx_world (world_id),
    INDEX idx_parent (parent_location_id)
);

-- Directed exits between locations
CREATE TABLE IF NOT EXISTS connections (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    from_location_id INT NOT NULL,
    to_location_id INT NOT NULL,
    connection_type VARCHAR(20) NOT NULL DEFAULT 'passage',
    direction VARCHAR(100) NOT NULL,
    description TEXT,
    is_visible BOOLEAN NOT NULL DEFAULT TRUE,
    is_locked BOOLEAN NOT NULL DEFAULT FALSE,
    is_open BOOLEAN NOT NULL DEFAULT TRUE,
    required_item_id INT,
    is_bidirectional BOOLEAN NOT NULL DEFAULT FALSE,
    reverse_description TEXT,
    INDEX idx_from (from_location_id),
    INDEX idx_to (to_location_id)
);

-- Players and NPCs
CREATE TABLE IF NOT EXISTS characters (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    location_id INT,
    user_id INT,
    character_type VARCHAR(20) NOT NULL DEFAULT 'npc',
    name VARCHAR(255) NOT NULL,
    description TEXT,
    max_hp INT NOT NULL,
    current_hp INT NOT NULL,
    is_dead BOOLEAN NOT NULL DEFAULT FALSE,
    strength INT NOT NULL DEFAULT 10,
    intelligence INT NOT NULL DEFAULT 10,
    charisma INT NOT NULL DEFAULT 10,
    athletics INT NOT NULL DEFAULT 10,
    armor_class INT NOT NULL DEFAULT 10,
    is_hostile BOOLEAN NOT NULL DEFAULT FALSE,
    faction VARCHAR(100),
    gold INT NOT NULL DEFAULT 0,
    additional_stats JSON,
    created_by INT,
    INDEX idx_world (world_id),
    INDEX idx_location (location_id),
    UNIQUE KEY uk_user_world (user_id, world_id)
);

-- Chests, bags and the like
CREATE TABLE IF NOT EXISTS containers (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    location_id INT,
    character_id INT,
    name VARCHAR(255) NOT NULL,
    description TEXT,
    is_locked BOOLEAN NOT NULL DEFAULT FALSE,
    is_open BOOLEAN NOT NULL DEFAULT TRUE,
    capacity INT,
    INDEX idx_location (location_id)
);

-- Items, held by exactly one of location, character or container
CREATE TABLE IF NOT EXISTS items (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    location_id INT,
    character_id INT,
    container_id INT,
    name VARCHAR(255) NOT NULL,
    description TEXT,
    quantity INT NOT NULL DEFAULT 1,
    item_type VARCHAR(50) NOT NULL DEFAULT 'misc',
    is_stackable BOOLEAN NOT NULL DEFAULT FALSE,
    cost INT NOT NULL DEFAULT 0,
    properties JSON,
    INDEX idx_location (location_id),
    INDEX idx_character (character_id),
    INDEX idx_container (container_id)
);

-- Quests and their objectives
CREATE TABLE IF NOT EXISTS quests (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    room_id INT,
    name VARCHAR(255) NOT NULL,
    description TEXT,
    quest_type VARCHAR(50) NOT NULL DEFAULT 'main',
    status VARCHAR(20) NOT NULL DEFAULT 'active',
    completed_at DATETIME(6),
    INDEX idx_world_status (world_id, status)
);

CREATE TABLE IF NOT EXISTS quest_objectives (
    id INT AUTO_INCREMENT PRIMARY KEY,
    quest_id INT NOT NULL,
    objective_type VARCHAR(50) NOT NULL DEFAULT 'custom',
    description TEXT,
    target_type VARCHAR(50),
    target_id INT,
    quantity INT NOT NULL DEFAULT 1,
    current_progress INT NOT NULL DEFAULT 0,
    display_order INT NOT NULL DEFAULT 0,
    is_completed BOOLEAN NOT NULL DEFAULT FALSE,
    is_optional BOOLEAN NOT NULL DEFAULT FALSE,
    INDEX idx_quest (quest_id)
);

-- Event log (append-only)
CREATE TABLE IF NOT EXISTS game_events (
    id INT AUTO_INCREMENT PRIMARY KEY,
    world_id INT NOT NULL,
    room_id INT,
    event_type VARCHAR(100) NOT NULL,
    actor_type VARCHAR(50),
    actor_id INT,
    target_type VARCHAR(50),
    target_id INT,
    event_data JSON,
    created_at DATETIME(6) NOT NULL,
    created_by INT,
    INDEX idx_world_time (world_id, created_at),
    INDEX idx_type (event_type),
    INDEX idx_target (target_type, target_id)
);
"""


def init_schema(connection: SqlConnection) -> None:
    """Initialize the database schema."""
    conn = connection.get_connection()
    cursor = conn.cursor()
    try:
        for statement in SCHEMA.split(";"):
            statement = statement.strip()
            if statement:
                cursor.execute(statement)
        conn.commit()
    finally:
        cursor.close()
