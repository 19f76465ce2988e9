"""
Database CRUD Operations Module

This module handles all database CRUD operations for:
- Run history
- App Config

For schema management and migrations, see core/schema.py
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any

DB_FILE = Path(__file__).parent.parent.parent / "lingobatch.db"

HISTORY_LIMIT = 50


def get_connection():
    """Get a database connection."""
    return sqlite3.connect(DB_FILE)


# ============================================================
# Run History Operations
# ============================================================

def add_history_entry(languages: str, files_count: int, strings_translated: int,
                      duration: int, model: str, success: bool,
                      error: Optional[str] = None) -> int:
    """Record a finished (or failed) run and keep only the newest entries."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO run_history
                (timestamp, languages, files_count, strings_translated,
                 duration, model, success, error)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (datetime.now().isoformat(timespec="seconds"), languages, files_count,
              strings_translated, duration, model, 1 if success else 0, error))
        conn.commit()
        entry_id = cursor.lastrowid
    trim_history(HISTORY_LIMIT)
    return entry_id


def get_history(limit: int = HISTORY_LIMIT) -> List[Dict[str, Any]]:
    """Get run history, newest first."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("""
            SELECT timestamp, languages, files_count, strings_translated,
                   duration, model, success, error
            FROM run_history
            ORDER BY id DESC
            LIMIT ?
        """, (limit,))
        rows = []
        for row in cursor.fetchall():
            entry = dict(row)
            entry["success"] = bool(entry["success"])
            rows.append(entry)
        return rows


def trim_history(keep: int = HISTORY_LIMIT):
    """Delete all but the newest ``keep`` history entries."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            DELETE FROM run_history
            WHERE id NOT IN (
                SELECT id FROM run_history ORDER BY id DESC LIMIT ?
            )
        """, (keep,))
        conn.commit()


# ============================================================
# App Config Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get a configuration value by key."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT value FROM app_config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None


def set_app_config(key: str, value: str):
    """Set a configuration value."""
    with get_connection() as conn:
        cursor = conn.cursor()
        # Ensure app_config table exists
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            INSERT OR REPLACE INTO app_config (key, value, updated_at)
            VALUES (?, ?, ?)
        """, (key, value, datetime.now().isoformat()))
        conn.commit()


def get_all_app_config() -> Dict[str, Any]:
    """Get all configuration values, decoding JSON payloads where possible."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT key, value FROM app_config")
        result = {}
        for key, value in cursor.fetchall():
            try:
                result[key] = json.loads(value)
            except json.JSONDecodeError:
                result[key] = value
        return result
