# ==============================================================================
# Database Utilities
# ==============================================================================
"""
Database utility functions for the PostgreSQL session store.

Provides schema initialization and connection-string helpers.
Includes retry logic with exponential backoff for network resilience.
"""

import logging
import re
from pathlib import Path

import psycopg2
from jinja2 import Template

from sessionlog.utils.config import Settings, get_settings
from sessionlog.utils.paths import get_init_sql_path
from sessionlog.utils.retry import retry_standard

logger = logging.getLogger(__name__)

# Connection timeout (seconds)
CONNECT_TIMEOUT = 10


def add_connect_timeout(conn_string: str) -> str:
    """Add connect_timeout to connection string if not present."""
    if "connect_timeout" not in conn_string:
        separator = "&" if "?" in conn_string else "?"
        return f"{conn_string}{separator}connect_timeout={CONNECT_TIMEOUT}"
    return conn_string


def table_name(collection_name: str) -> str:
    """Turn a collection name (e.g. 'sdlc-events') into a SQL identifier."""
    name = re.sub(r"[^0-9a-zA-Z_]", "_", collection_name).lower()
    if not name or name[0].isdigit():
        name = f"c_{name}"
    return name


def get_schema_file() -> Path | None:
    """Get the schema init.sql path, or None if not found."""
    path = get_init_sql_path()
    if path.exists():
        return path
    # Fallback to current directory
    cwd_path = Path.cwd() / "schema" / "init.sql"
    if cwd_path.exists():
        return cwd_path
    return None


def render_schema_sql(settings: Settings | None = None) -> str:
    """Render the schema SQL template for the configured schema and collection."""
    settings = settings or get_settings()
    schema_file = get_schema_file()
    if not schema_file:
        raise RuntimeError(
            "Schema file (schema/init.sql) not found. "
            "Make sure you're running from the project root."
        )

    template = Template(schema_file.read_text())
    return template.render(
        schema_name=settings.postgres.schema_name,
        table_name=table_name(settings.store.collection_name),
    )


@retry_standard((psycopg2.OperationalError, psycopg2.InterfaceError), logger)
def ensure_schema(settings: Settings | None = None) -> None:
    """
    Create the schema and session documents table if they do not exist.

    The DDL is idempotent and safe to run on every start.

    Raises:
        RuntimeError: If the schema file is missing or initialization fails
    """
    settings = settings or get_settings()
    schema_sql = render_schema_sql(settings)

    logger.info("Initializing database schema '%s'...", settings.postgres.schema_name)
    conn = psycopg2.connect(add_connect_timeout(settings.postgres.connection_string))
    try:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
        conn.commit()
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        raise
    except psycopg2.Error as e:
        raise RuntimeError(f"Failed to initialize schema: {e}") from e
    finally:
        conn.close()
    logger.info("Database schema '%s' initialized.", settings.postgres.schema_name)
