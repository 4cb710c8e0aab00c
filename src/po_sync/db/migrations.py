"""
migrations.py - Database initialization and schema management.

Handles creation of the local store tables and schema version checks.
"""

import sqlite3

from po_sync.config import SCHEMA_VERSION, SETTINGS_KEY_SCHEMA_VERSION
from po_sync.db.schema import ALL_SCHEMA_STATEMENTS
from po_sync.errors import StorageError


def initialize_tables(conn: sqlite3.Connection) -> int:
    """
    Create all tables and record the schema version.

    This is idempotent: can be called multiple times safely.

    Args:
        conn: SQLite connection

    Returns:
        Schema version of the database

    Raises:
        StorageError: If schema creation fails or the on-disk version
            is newer than this code understands
    """
    try:
        for statement in ALL_SCHEMA_STATEMENTS:
            # Split multi-statement strings
            for sql in statement.strip().split(";"):
                sql = sql.strip()
                if sql:
                    conn.execute(sql)
    except sqlite3.Error as e:
        raise StorageError(
            f"Failed to create tables: {e}",
            operation="create_tables",
        ) from e

    existing = get_schema_version(conn)
    if existing is None:
        try:
            conn.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?)",
                (SETTINGS_KEY_SCHEMA_VERSION, str(SCHEMA_VERSION)),
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to record schema version: {e}",
                operation="init_metadata",
            ) from e
        return SCHEMA_VERSION

    if existing > SCHEMA_VERSION:
        raise StorageError(
            f"Database schema version {existing} is newer than supported {SCHEMA_VERSION}",
            operation="verify_schema",
        )
    return existing


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    try:
        row = conn.execute(
            "SELECT value FROM settings WHERE key = ?",
            (SETTINGS_KEY_SCHEMA_VERSION,),
        ).fetchone()
    except sqlite3.Error as e:
        raise StorageError(
            f"Failed to read schema version: {e}",
            operation="get_schema_version",
        ) from e
    return int(row[0]) if row is not None else None
