# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis client (clean state per test)
- In-memory session store with aggregator, flush controller and dispatcher
- Record payload factory
- Memory-backend settings for the handler and CLI entry points
- A store factory whose connect always fails
"""

import fakeredis
import pytest

from sessionlog.core.aggregator import SessionAggregator
from sessionlog.core.errors import StoreError
from sessionlog.core.flush import FlushController
from sessionlog.infrastructure.store import InMemorySessionStore
from sessionlog.ingress.dispatcher import IngressDispatcher
from sessionlog.ingress.handler import reset_handler
from sessionlog.utils.config import IngressSettings, get_settings


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real Valkey client.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def store():
    """An empty in-memory session store."""
    store = InMemorySessionStore()
    store.connect()
    return store


@pytest.fixture()
def aggregator(store):
    return SessionAggregator(store)


@pytest.fixture()
def flush_controller(store):
    return FlushController(store)


@pytest.fixture()
def ingress_settings():
    return IngressSettings(
        queue_event_sources=["aws:sqs", "kafka"],
        cors_allow_origin="*",
        cors_allow_methods="POST,OPTIONS",
    )


@pytest.fixture()
def dispatcher(store, ingress_settings):
    return IngressDispatcher.from_store(store, ingress_settings)


@pytest.fixture()
def make_payload():
    """Factory for wire-format event records."""

    def _make(
        session_id="s1",
        agent_name="planner",
        event="start",
        created_at="2024-01-01T00:00:00Z",
        **extra,
    ) -> dict:
        payload = {
            "sessionId": session_id,
            "agentName": agent_name,
            "event": event,
            "createdAt": created_at,
        }
        payload.update(extra)
        return payload

    return _make


@pytest.fixture()
def memory_backend(monkeypatch):
    """Point get_settings() at the in-memory store and reset the handler cache."""
    monkeypatch.setenv("STORE_BACKEND", "memory")
    get_settings.cache_clear()
    reset_handler()
    yield get_settings()
    reset_handler()
    get_settings.cache_clear()


class UnreachableStore(InMemorySessionStore):
    """A store whose backend never answers."""

    def connect(self) -> None:
        raise StoreError("Connection refused")


@pytest.fixture()
def unreachable_store(monkeypatch, memory_backend):
    """Make the handler's store factory hand out an UnreachableStore."""
    monkeypatch.setattr("sessionlog.ingress.handler.get_session_store", lambda settings: UnreachableStore())
    return memory_backend
