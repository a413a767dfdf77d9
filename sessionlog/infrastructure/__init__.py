# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations:
- store/ - Session store adapters (in-memory, Valkey, PostgreSQL)
- kafka.py - Kafka client configuration and event publishing

Client libraries (redis, psycopg2, confluent-kafka) are imported by the
adapter modules themselves, so importing this package stays cheap.
"""

from sessionlog.infrastructure.store import InMemorySessionStore, get_session_store

__all__ = [
    "InMemorySessionStore",
    "get_session_store",
]
