# ==============================================================================
# Session Store Adapters
# ==============================================================================
"""
Session store adapters implementing the SessionStore interface from base/store.py.

Currently supported:
- In-memory (memory.py), for tests and local runs
- Valkey/Redis (valkey.py)
- PostgreSQL JSONB (postgresql.py)

Usage:
    from sessionlog.infrastructure.store import get_session_store

    store = get_session_store()
    store.connect()
"""

from sessionlog.base.store import SessionStore
from sessionlog.infrastructure.store.memory import InMemorySessionStore
from sessionlog.utils.config import Settings, get_settings


def get_session_store(settings: Settings | None = None) -> SessionStore:
    """
    Get a session store instance based on configuration.

    The backend is determined by the STORE_BACKEND environment variable:
    - "valkey" (default): Valkey/Redis documents
    - "postgresql": PostgreSQL JSONB documents
    - "memory": In-process store (lost on exit)

    The returned store is not connected yet; call connect().

    Raises:
        ValueError: If an unknown backend is configured
    """
    settings = settings or get_settings()
    backend = settings.store.backend

    match backend:
        case "valkey":
            from sessionlog.infrastructure.store.valkey import ValkeySessionStore

            return ValkeySessionStore(settings=settings)
        case "postgresql":
            from sessionlog.infrastructure.store.postgresql import PostgreSQLSessionStore

            return PostgreSQLSessionStore(settings=settings)
        case "memory":
            return InMemorySessionStore()
        case _:
            raise ValueError(
                f"Unknown session store backend: '{backend}'.\n"
                "Valid options are: valkey, postgresql, memory"
            )


__all__ = [
    "InMemorySessionStore",
    "get_session_store",
]
