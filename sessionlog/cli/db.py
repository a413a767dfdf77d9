# ==============================================================================
# Database Commands
# ==============================================================================
"""
Schema management for the PostgreSQL session store.
"""

import psycopg2

from sessionlog.cli.shared import C, I, fail
from sessionlog.infrastructure.store.postgresql import check_postgresql_connection
from sessionlog.utils.config import get_settings
from sessionlog.utils.db import ensure_schema, table_name


def db_init() -> None:
    """Create the PostgreSQL schema and session documents table (idempotent)."""
    settings = get_settings()
    table = f"{settings.postgres.schema_name}.{table_name(settings.store.collection_name)}"

    if not check_postgresql_connection(settings):
        fail(f"Cannot connect to PostgreSQL at {settings.postgres.host}:{settings.postgres.port}")

    print(f"  Initializing table '{C.WHITE}{table}{C.RESET}'...")
    try:
        ensure_schema(settings)
    except (RuntimeError, psycopg2.Error) as e:
        fail(f"Failed to initialize schema: {e}")
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Table '{table}' ready{C.RESET}")
