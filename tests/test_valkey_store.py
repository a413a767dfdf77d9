# ==============================================================================
# Tests for ValkeySessionStore
# ==============================================================================
"""
Tests for the Valkey session store against fakeredis.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ResponseError

from sessionlog.core.errors import DocumentNotFoundError, StoreError, TimestampParseError
from sessionlog.core.models import StoredEvent
from sessionlog.infrastructure.store.valkey import ValkeySessionStore
from sessionlog.utils.config import Settings, StoreSettings


def _event(event="start", ms=0) -> StoredEvent:
    return StoredEvent(
        created_at=datetime(2024, 1, 1, 0, 0, 0, ms * 1000, tzinfo=UTC),
        source="planner",
        event=event,
    )


@pytest.fixture()
def valkey_store(fake_redis):
    settings = Settings(store=StoreSettings(backend="valkey", collection_name="test-events"))
    store = ValkeySessionStore(client=fake_redis, settings=settings)
    store.connect()
    return store


# ==============================================================================
# Documents
# ==============================================================================


class TestDocuments:
    """Tests for create, find and append."""

    def test_create_and_find(self, valkey_store):
        document_id = valkey_store.create_document("s1", _event())

        documents = valkey_store.find_by_session_id("s1")
        assert len(documents) == 1
        assert documents[0].id == document_id
        assert documents[0].session_id == "s1"
        assert documents[0].events == [_event()]

    def test_find_unknown_session(self, valkey_store):
        assert valkey_store.find_by_session_id("nope") == []

    def test_find_in_creation_order(self, valkey_store):
        first = valkey_store.create_document("s1", _event("a"))
        second = valkey_store.create_document("s1", _event("b"))

        assert [d.id for d in valkey_store.find_by_session_id("s1")] == [first, second]

    def test_append_preserves_order(self, valkey_store):
        document_id = valkey_store.create_document("s1", _event("e0"))
        for i in range(1, 4):
            valkey_store.append_event(document_id, _event(f"e{i}", ms=i))

        events = valkey_store.find_by_session_id("s1")[0].events
        assert [e.event for e in events] == ["e0", "e1", "e2", "e3"]

    def test_repeated_append_id_ignored(self, valkey_store):
        document_id = valkey_store.create_document("s1", _event(), append_id="m1")
        valkey_store.append_event(document_id, _event("plan"), append_id="m2")
        valkey_store.append_event(document_id, _event("plan"), append_id="m2")
        valkey_store.append_event(document_id, _event(), append_id="m1")

        assert len(valkey_store.find_by_session_id("s1")[0].events) == 2

    def test_appends_without_id_always_applied(self, valkey_store):
        document_id = valkey_store.create_document("s1", _event())
        valkey_store.append_event(document_id, _event())
        valkey_store.append_event(document_id, _event())

        assert len(valkey_store.find_by_session_id("s1")[0].events) == 3

    def test_append_to_missing_document(self, valkey_store):
        with pytest.raises(DocumentNotFoundError):
            valkey_store.append_event("missing", _event())

    def test_keys_use_collection_prefix(self, valkey_store, fake_redis):
        document_id = valkey_store.create_document("s1", _event())

        assert fake_redis.exists(f"test-events:doc:{document_id}")
        assert fake_redis.zrange("test-events:session:s1", 0, -1) == [document_id]


# ==============================================================================
# Batch delete
# ==============================================================================


class TestBatchDelete:
    """Tests for batch_delete."""

    def test_deletes_documents_and_index(self, valkey_store, fake_redis):
        ids = [valkey_store.create_document("s1", _event()) for _ in range(2)]
        other = valkey_store.create_document("s2", _event())

        valkey_store.batch_delete(ids)

        assert valkey_store.find_by_session_id("s1") == []
        assert not fake_redis.exists("test-events:session:s1")
        assert [d.id for d in valkey_store.find_by_session_id("s2")] == [other]

    def test_empty_list_is_noop(self, valkey_store):
        valkey_store.batch_delete([])

    def test_find_skips_dangling_index_entries(self, valkey_store, fake_redis):
        document_id = valkey_store.create_document("s1", _event())
        fake_redis.zadd("test-events:session:s1", {"ghost": 999})

        assert [d.id for d in valkey_store.find_by_session_id("s1")] == [document_id]


# ==============================================================================
# Timestamps and errors
# ==============================================================================


class TestTimestamps:
    """Tests for millisecond timestamp storage."""

    def test_truncates_to_milliseconds(self, valkey_store):
        parsed = valkey_store.to_store_timestamp("2024-01-01T00:00:00.123456Z")
        assert parsed == datetime(2024, 1, 1, 0, 0, 0, 123000, tzinfo=UTC)

    def test_round_trip(self, valkey_store):
        created_at = valkey_store.to_store_timestamp("2024-03-05T10:20:30.456+01:00")
        event = StoredEvent(created_at=created_at, source="coder", event="edit")
        valkey_store.create_document("s1", event)

        assert valkey_store.find_by_session_id("s1")[0].events == [event]

    def test_invalid_timestamp(self, valkey_store):
        with pytest.raises(TimestampParseError):
            valkey_store.to_store_timestamp("later")


class TestErrors:
    """Tests for error translation."""

    def test_redis_error_becomes_store_error(self):
        client = MagicMock()
        client.zrange.side_effect = ResponseError("WRONGTYPE")
        store = ValkeySessionStore(client=client, settings=Settings())

        with pytest.raises(StoreError, match="WRONGTYPE") as exc_info:
            store.find_by_session_id("s1")
        assert exc_info.value.session_id == "s1"

    def test_close_releases_client(self, valkey_store):
        valkey_store.close()
        assert valkey_store.client is None
