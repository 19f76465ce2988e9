"""
Database Schema Management Module

This module handles database initialization, schema validation, and migrations.
For CRUD operations, see core/database.py
"""

import sqlite3

# Import database module to use DB_FILE and get_connection dynamically
# This ensures monkeypatching in tests works correctly
import lingobatch.core.database as db

DB_VERSION = 1  # Increment when schema changes


def get_connection():
    """Get a database connection using the database module's DB_FILE."""
    return db.get_connection()


def get_db_version() -> int:
    """Get current database version."""
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT version FROM db_version LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else 0
    except sqlite3.OperationalError:
        return 0


def set_db_version(version: int):
    """Set database version."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER)")
        cursor.execute("DELETE FROM db_version")
        cursor.execute("INSERT INTO db_version (version) VALUES (?)", (version,))
        conn.commit()


def ensure_all_schemas():
    """Create any missing table. Safe to call repeatedly."""
    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS run_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            languages TEXT NOT NULL,
            files_count INTEGER DEFAULT 0,
            strings_translated INTEGER DEFAULT 0,
            duration INTEGER DEFAULT 0,
            model TEXT,
            success INTEGER NOT NULL,
            error TEXT
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS app_config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)
        conn.commit()


def initialize_database():
    """Initializes the database and creates the tables."""
    from lingobatch.logger import get_logger
    logger = get_logger(__name__)

    current_version = get_db_version() if db.DB_FILE.exists() else 0
    ensure_all_schemas()
    if current_version < DB_VERSION:
        logger.info(f"Database schema set to version {DB_VERSION} (was {current_version})")
        set_db_version(DB_VERSION)
