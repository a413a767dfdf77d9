# ==============================================================================
# Session Store Implementation (PostgreSQL)
# ==============================================================================
"""
PostgreSQL implementation of the SessionStore interface.

Session documents are rows of {schema}.{collection} with a JSONB `events`
array (see schema/init.sql). Appends use `events || $event` so the current
array is never read back; `append_ids` records the tokens already applied.
A flush deletes all matching rows with one DELETE inside one transaction.
"""

import logging
import uuid
from datetime import datetime

import psycopg2
from psycopg2.extras import Json

from sessionlog.base.store import SessionStore
from sessionlog.core.errors import DocumentNotFoundError, StoreError
from sessionlog.core.models import SessionDocument, StoredEvent
from sessionlog.utils.config import Settings, get_settings
from sessionlog.utils.db import add_connect_timeout, table_name
from sessionlog.utils.retry import retry_light, retry_standard

logger = logging.getLogger(__name__)

POSTGRES_RETRY_EXCEPTIONS = (psycopg2.OperationalError, psycopg2.InterfaceError)

_retry = retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
_retry_connect = retry_light(POSTGRES_RETRY_EXCEPTIONS, logger)


class PostgreSQLSessionStore(SessionStore):
    """
    PostgreSQL implementation of SessionStore.

    Uses a single psycopg2 connection, committing after every call. On a
    connection-class error the connection is re-opened and the call retried;
    every retried statement is idempotent (client-generated ids, append tokens).
    """

    def __init__(self, settings: Settings | None = None, connection=None):
        """
        Initialize the session store.

        Args:
            settings: Application settings. If None, uses get_settings().
            connection: Existing psycopg2 connection. If None, connect() opens one.
        """
        self._settings = settings or get_settings()
        self._conn = connection
        self._schema = self._settings.postgres.schema_name
        self._table = f"{self._schema}.{table_name(self._settings.store.collection_name)}"

    @property
    def table(self) -> str:
        """Get the fully qualified table name."""
        return self._table

    @_retry_connect
    def _open(self):
        conn_string = add_connect_timeout(self._settings.postgres.connection_string)
        return psycopg2.connect(conn_string)

    def connect(self) -> None:
        """Establish connection to PostgreSQL."""
        if self._conn is None:
            try:
                self._conn = self._open()
            except psycopg2.Error as e:
                raise StoreError(f"Cannot connect to PostgreSQL: {e}") from e
        logger.info("PostgreSQLSessionStore connected (table=%s)", self._table)

    def rollback(self) -> None:
        """Rollback current transaction."""
        if self._conn is not None and not self._conn.closed:
            try:
                self._conn.rollback()
            except psycopg2.Error as e:
                logger.warning("Rollback failed: %s", e)

    def reconnect(self) -> None:
        """Re-open the connection after it was lost."""
        if self._conn is not None and not self._conn.closed:
            try:
                self._conn.close()
            except psycopg2.Error as e:
                logger.debug("Error closing stale connection: %s", e)
        self._conn = self._open()
        logger.info("PostgreSQLSessionStore reconnected")

    @_retry
    def _run(self, work):
        """Run work(cursor) in its own transaction and commit."""
        if self._conn is None:
            raise RuntimeError("PostgreSQL connection not established. Call connect() first.")
        conn = self._conn
        try:
            with conn.cursor() as cur:
                result = work(cur)
            conn.commit()
            return result
        except Exception:
            self.rollback()
            if conn.closed:
                self.reconnect()
            raise

    @staticmethod
    def _serialize_event(event: StoredEvent) -> dict:
        return {
            "createdAt": event.created_at.isoformat(),
            "source": event.source,
            "event": event.event,
        }

    @staticmethod
    def _parse_event(data: dict) -> StoredEvent:
        return StoredEvent(
            created_at=datetime.fromisoformat(data["createdAt"]),
            source=data["source"],
            event=data["event"],
        )

    # ==========================================================================
    # SessionStore Interface Implementation
    # ==========================================================================

    def find_by_session_id(self, session_id: str) -> list[SessionDocument]:
        def work(cur):
            cur.execute(
                f"SELECT id, events FROM {self._table} WHERE session_id = %s ORDER BY seq",
                (session_id,),
            )
            return cur.fetchall()

        try:
            rows = self._run(work)
        except psycopg2.Error as e:
            raise StoreError(f"Failed to query session documents: {e}", session_id) from e

        return [
            SessionDocument(
                id=row[0],
                session_id=session_id,
                events=[self._parse_event(e) for e in (row[1] or [])],
            )
            for row in rows
        ]

    def create_document(
        self, session_id: str, event: StoredEvent, append_id: str | None = None
    ) -> str:
        document_id = uuid.uuid4().hex
        append_id = append_id or uuid.uuid4().hex

        def work(cur):
            cur.execute(
                f"""
                INSERT INTO {self._table} (id, session_id, events, append_ids)
                VALUES (%s, %s, %s::jsonb, ARRAY[%s])
                ON CONFLICT (id) DO NOTHING
                """,
                (document_id, session_id, Json([self._serialize_event(event)]), append_id),
            )

        try:
            self._run(work)
        except psycopg2.Error as e:
            raise StoreError(f"Failed to create session document: {e}", session_id) from e
        return document_id

    def append_event(
        self, document_id: str, event: StoredEvent, append_id: str | None = None
    ) -> None:
        append_id = append_id or uuid.uuid4().hex

        def work(cur):
            cur.execute(
                f"""
                UPDATE {self._table}
                SET events = events || %s::jsonb,
                    append_ids = array_append(append_ids, %s)
                WHERE id = %s AND NOT (%s = ANY(append_ids))
                """,
                (Json([self._serialize_event(event)]), append_id, document_id, append_id),
            )
            if cur.rowcount > 0:
                return
            cur.execute(f"SELECT 1 FROM {self._table} WHERE id = %s", (document_id,))
            if cur.fetchone() is None:
                raise DocumentNotFoundError(document_id)
            logger.debug("Ignoring repeated append %s on %s", append_id, document_id)

        try:
            self._run(work)
        except psycopg2.Error as e:
            raise StoreError(f"Failed to append event to {document_id}: {e}") from e

    def batch_delete(self, document_ids: list[str]) -> None:
        if not document_ids:
            return

        def work(cur):
            cur.execute(f"DELETE FROM {self._table} WHERE id = ANY(%s)", (list(document_ids),))

        try:
            self._run(work)
        except psycopg2.Error as e:
            raise StoreError(f"Failed to delete session documents: {e}") from e

    def close(self) -> None:
        """Close connection and release resources."""
        if self._conn is not None:
            try:
                self._conn.close()
                logger.info("PostgreSQLSessionStore connection closed")
            except psycopg2.Error as e:
                logger.warning("Error closing connection: %s", e)
            finally:
                self._conn = None


def check_postgresql_connection(settings: Settings | None = None) -> bool:
    """
    Check if PostgreSQL is reachable.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        settings = settings or get_settings()
        conn = psycopg2.connect(add_connect_timeout(settings.postgres.connection_string))
        conn.close()
        return True
    except psycopg2.Error:
        return False
