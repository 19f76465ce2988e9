"""
Core module - Persistence and post-processing utilities

This module provides:
- database: run history and app config CRUD
- schema: Database initialization
- sync: merging translated files back into locale files
"""

from lingobatch.core.database import (
    DB_FILE,
    get_connection,
    # History operations
    add_history_entry,
    get_history,
    trim_history,
    # App config operations
    get_app_config,
    set_app_config,
    get_all_app_config,
)

from lingobatch.core.schema import (
    DB_VERSION,
    get_db_version,
    set_db_version,
    initialize_database,
    ensure_all_schemas,
)
