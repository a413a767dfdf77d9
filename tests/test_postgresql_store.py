# ==============================================================================
# Tests for PostgreSQLSessionStore
# ==============================================================================
"""
Tests for the PostgreSQL session store with a mocked psycopg2 connection,
plus schema template rendering.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import psycopg2
import pytest

from sessionlog.core.errors import DocumentNotFoundError, StoreError
from sessionlog.core.models import StoredEvent
from sessionlog.infrastructure.store.postgresql import PostgreSQLSessionStore
from sessionlog.utils.config import PostgresSettings, Settings, StoreSettings
from sessionlog.utils.db import render_schema_sql, table_name

EVENT = StoredEvent(created_at=datetime(2024, 1, 1, tzinfo=UTC), source="planner", event="start")


@pytest.fixture()
def settings():
    return Settings(
        store=StoreSettings(backend="postgresql", collection_name="sdlc-events"),
        postgres=PostgresSettings(schema_name="sessionlog"),
    )


@pytest.fixture()
def conn():
    conn = MagicMock()
    conn.closed = 0
    return conn


@pytest.fixture()
def cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture()
def pg_store(settings, conn):
    return PostgreSQLSessionStore(settings=settings, connection=conn)


# ==============================================================================
# Queries
# ==============================================================================


class TestQueries:
    """Tests for the SQL issued by each store call."""

    def test_table_name(self, pg_store):
        assert pg_store.table == "sessionlog.sdlc_events"

    def test_find_orders_by_creation(self, pg_store, cursor):
        cursor.fetchall.return_value = [
            ("d1", [{"createdAt": "2024-01-01T00:00:00+00:00", "source": "planner", "event": "start"}]),
            ("d2", []),
        ]

        documents = pg_store.find_by_session_id("s1")

        sql, params = cursor.execute.call_args.args
        assert "ORDER BY seq" in sql
        assert params == ("s1",)
        assert [d.id for d in documents] == ["d1", "d2"]
        assert documents[0].events == [EVENT]
        assert documents[1].events == []

    def test_create_inserts_single_event(self, pg_store, cursor, conn):
        document_id = pg_store.create_document("s1", EVENT, append_id="m1")

        sql, params = cursor.execute.call_args.args
        assert "INSERT INTO sessionlog.sdlc_events" in sql
        assert params[0] == document_id
        assert params[1] == "s1"
        assert params[2].adapted == [
            {"createdAt": "2024-01-01T00:00:00+00:00", "source": "planner", "event": "start"}
        ]
        assert params[3] == "m1"
        conn.commit.assert_called_once()

    def test_append_uses_jsonb_concatenation(self, pg_store, cursor):
        cursor.rowcount = 1

        pg_store.append_event("d1", EVENT, append_id="m2")

        sql, params = cursor.execute.call_args.args
        assert "events = events ||" in sql
        assert params[1:] == ("m2", "d1", "m2")

    def test_repeated_append_is_noop(self, pg_store, cursor):
        cursor.rowcount = 0
        cursor.fetchone.return_value = (1,)

        pg_store.append_event("d1", EVENT, append_id="m2")

        assert cursor.execute.call_count == 2

    def test_append_to_missing_document(self, pg_store, cursor, conn):
        cursor.rowcount = 0
        cursor.fetchone.return_value = None

        with pytest.raises(DocumentNotFoundError):
            pg_store.append_event("gone", EVENT)
        conn.rollback.assert_called_once()

    def test_batch_delete_single_statement(self, pg_store, cursor, conn):
        pg_store.batch_delete(["d1", "d2"])

        sql, params = cursor.execute.call_args.args
        assert "DELETE FROM sessionlog.sdlc_events WHERE id = ANY(%s)" in sql
        assert params == (["d1", "d2"],)
        assert cursor.execute.call_count == 1
        conn.commit.assert_called_once()

    def test_batch_delete_empty_is_noop(self, pg_store, conn):
        pg_store.batch_delete([])
        conn.cursor.assert_not_called()


# ==============================================================================
# Errors
# ==============================================================================


class TestErrors:
    """Tests for rollback and error translation."""

    def test_failed_delete_rolls_back(self, pg_store, cursor, conn):
        cursor.execute.side_effect = psycopg2.DatabaseError("disk full")

        with pytest.raises(StoreError, match="disk full"):
            pg_store.batch_delete(["d1"])

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_find_error_tagged_with_session(self, pg_store, cursor):
        cursor.execute.side_effect = psycopg2.ProgrammingError("no such table")

        with pytest.raises(StoreError) as exc_info:
            pg_store.find_by_session_id("s1")
        assert exc_info.value.session_id == "s1"

    def test_not_connected(self, settings):
        store = PostgreSQLSessionStore(settings=settings)
        with pytest.raises(RuntimeError, match="connect"):
            store.find_by_session_id("s1")

    def test_close(self, pg_store, conn):
        pg_store.close()
        conn.close.assert_called_once()


# ==============================================================================
# Schema
# ==============================================================================


class TestSchema:
    """Tests for schema/init.sql rendering."""

    def test_table_name_sanitized(self):
        assert table_name("sdlc-events") == "sdlc_events"
        assert table_name("9lives") == "c_9lives"

    def test_render(self, settings):
        sql = render_schema_sql(settings)

        assert "CREATE SCHEMA IF NOT EXISTS sessionlog;" in sql
        assert "CREATE TABLE IF NOT EXISTS sessionlog.sdlc_events" in sql
        assert "UNIQUE" not in sql
