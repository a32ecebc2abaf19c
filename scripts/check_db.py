#!/usr/bin/env python3
"""
Database health check and initialization script.

Reads the same WORLDSTATE_* environment variables as EngineConfig.from_env().

Usage:
    python scripts/check_db.py          # Check connectivity
    python scripts/check_db.py --init   # Initialize schema
"""

from __future__ import annotations

import argparse
import logging
import sys

import mysql.connector

from worldstate.db import SqlConnection, StorageError, init_schema
from worldstate.engine import EngineConfig


def connect(config: EngineConfig) -> SqlConnection:
    return SqlConnection(
        host=config.db_host,
        port=config.db_port,
        user=config.db_user,
        password=config.db_password,
        database=config.db_name,
    )


def check_sql(config: EngineConfig) -> bool:
    """Check SQL server connectivity."""
    print(f"Checking SQL server at {config.db_host}:{config.db_port}/{config.db_name}...")

    conn = connect(config)
    try:
        # Raises if the server is unreachable
        db_conn = conn.get_connection()
        if db_conn.is_connected():
            print("  SQL: Connected")
            return True
        print("  SQL: Connection failed")
        return False
    except mysql.connector.Error as e:
        print(f"  SQL: Error - {e}")
        return False
    finally:
        conn.close()


def init_sql(config: EngineConfig) -> bool:
    """Initialize the world-state schema."""
    print("Initializing schema...")

    conn = connect(config)
    try:
        init_schema(conn)
        print("  Schema initialized")
        return True
    except (mysql.connector.Error, StorageError) as e:
        print(f"  Schema init error: {e}")
        return False
    finally:
        conn.close()


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Check and initialize the World State database")
    parser.add_argument("--init", action="store_true", help="Initialize database schema")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = EngineConfig.from_env()

    print("World State Database Check")
    print("=" * 40)

    sql_ok = check_sql(config)
    init_ok = True

    if args.init:
        print()
        print("Schema Initialization")
        print("=" * 40)
        init_ok = sql_ok and init_sql(config)

    print()
    print("Summary")
    print("=" * 40)
    print(f"  SQL:    {'OK' if sql_ok else 'FAILED'}")
    if args.init:
        print(f"  Schema: {'OK' if init_ok else 'FAILED'}")

    return 0 if (sql_ok and init_ok) else 1


if __name__ == "__main__":
    sys.exit(main())
