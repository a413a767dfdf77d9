# ==============================================================================
# Session Store Implementation (Valkey/Redis)
# ==============================================================================
"""
Valkey/Redis implementation of the SessionStore interface.

Key layout (prefix = STORE_COLLECTION_NAME):

    {prefix}:doc:{id}            hash   sessionId, seq
    {prefix}:doc:{id}:events     list   JSON-encoded events, append order
    {prefix}:doc:{id}:appends    set    append tokens already applied
    {prefix}:session:{sid}       zset   document ids scored by creation seq
    {prefix}:seq                 string creation counter

Event timestamps are stored as Unix milliseconds. Writes run in MULTI/EXEC
transactions; appends and creates WATCH the document so a concurrent flush
either happens entirely before or entirely after them.
"""

import json
import logging
import uuid
from datetime import UTC, datetime, timedelta

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from sessionlog.base.store import SessionStore
from sessionlog.core.errors import DocumentNotFoundError, StoreError
from sessionlog.core.models import SessionDocument, StoredEvent
from sessionlog.utils.config import Settings, get_settings
from sessionlog.utils.retry import VALKEY_RETRIES, retry_light, retry_standard

logger = logging.getLogger(__name__)

REDIS_RETRY_EXCEPTIONS = (RedisConnectionError, RedisTimeoutError)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)

_retry = retry_standard(REDIS_RETRY_EXCEPTIONS, logger)
_retry_connect = retry_light(REDIS_RETRY_EXCEPTIONS, logger)


def get_valkey_client(settings: Settings | None = None) -> redis.Redis:
    """
    Get a Valkey/Redis client connection.

    Configured with:
    - Socket timeouts from settings for fast failure detection
    - Automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    Returns:
        redis.Redis client instance
    """
    settings = settings or get_settings()
    valkey = settings.valkey

    retry = Retry(ExponentialBackoff(cap=8, base=1), retries=VALKEY_RETRIES)

    return redis.from_url(
        valkey.url,
        decode_responses=True,
        socket_timeout=valkey.socket_timeout,
        socket_connect_timeout=valkey.socket_timeout,
        retry=retry,
        retry_on_error=[RedisTimeoutError, RedisConnectionError],
        health_check_interval=30,
    )


def _to_millis(value: datetime) -> int:
    return (value - _EPOCH) // _ONE_MS


def _from_millis(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


class ValkeySessionStore(SessionStore):
    """
    Valkey/Redis implementation of SessionStore.

    The client must be created with decode_responses=True.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        settings: Settings | None = None,
        prefix: str | None = None,
    ):
        """
        Initialize the session store.

        Args:
            client: Redis client instance. If None, connect() creates one.
            settings: Application settings. If None, uses get_settings().
            prefix: Key prefix. If None, uses settings.store.collection_name.
        """
        self._settings = settings or get_settings()
        self._client = client
        self._prefix = prefix or self._settings.store.collection_name

    @property
    def client(self) -> redis.Redis | None:
        """Get the underlying Redis client."""
        return self._client

    def _require_client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Valkey connection not established. Call connect() first.")
        return self._client

    # ==========================================================================
    # Key helpers
    # ==========================================================================

    def _doc_key(self, document_id: str) -> str:
        return f"{self._prefix}:doc:{document_id}"

    def _events_key(self, document_id: str) -> str:
        return f"{self._prefix}:doc:{document_id}:events"

    def _appends_key(self, document_id: str) -> str:
        return f"{self._prefix}:doc:{document_id}:appends"

    def _index_key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    def _seq_key(self) -> str:
        return f"{self._prefix}:seq"

    @staticmethod
    def _serialize_event(event: StoredEvent) -> str:
        return json.dumps(
            {
                "createdAt": _to_millis(event.created_at),
                "source": event.source,
                "event": event.event,
            }
        )

    @staticmethod
    def _parse_event(raw: str) -> StoredEvent:
        data = json.loads(raw)
        return StoredEvent(
            created_at=_from_millis(int(data["createdAt"])),
            source=data["source"],
            event=data["event"],
        )

    # ==========================================================================
    # SessionStore Interface Implementation
    # ==========================================================================

    def connect(self) -> None:
        """Create the client if needed and verify the connection."""
        if self._client is None:
            self._client = get_valkey_client(self._settings)
        try:
            self._ping()
        except RedisError as e:
            raise StoreError(f"Cannot reach Valkey: {e}") from e
        logger.info("ValkeySessionStore connected (prefix=%s)", self._prefix)

    @_retry_connect
    def _ping(self) -> None:
        self._require_client().ping()

    def to_store_timestamp(self, value: str) -> datetime:
        # Valkey keeps millisecond precision; truncate up front so the
        # returned event equals what is read back.
        parsed = super().to_store_timestamp(value)
        return _from_millis(_to_millis(parsed))

    def find_by_session_id(self, session_id: str) -> list[SessionDocument]:
        try:
            return self._find(session_id)
        except RedisError as e:
            raise StoreError(f"Failed to query session documents: {e}", session_id) from e

    @_retry
    def _find(self, session_id: str) -> list[SessionDocument]:
        client = self._require_client()
        document_ids = client.zrange(self._index_key(session_id), 0, -1)
        if not document_ids:
            return []

        pipe = client.pipeline(transaction=False)
        for document_id in document_ids:
            pipe.exists(self._doc_key(document_id))
            pipe.lrange(self._events_key(document_id), 0, -1)
        results = pipe.execute()

        documents = []
        for i, document_id in enumerate(document_ids):
            exists, raw_events = results[2 * i], results[2 * i + 1]
            if not exists:
                continue
            documents.append(
                SessionDocument(
                    id=document_id,
                    session_id=session_id,
                    events=[self._parse_event(raw) for raw in raw_events],
                )
            )
        return documents

    def create_document(
        self, session_id: str, event: StoredEvent, append_id: str | None = None
    ) -> str:
        document_id = uuid.uuid4().hex
        append_id = append_id or uuid.uuid4().hex
        try:
            self._create(document_id, session_id, event, append_id)
        except RedisError as e:
            raise StoreError(f"Failed to create session document: {e}", session_id) from e
        return document_id

    @_retry
    def _create(
        self, document_id: str, session_id: str, event: StoredEvent, append_id: str
    ) -> None:
        client = self._require_client()
        doc_key = self._doc_key(document_id)
        seq = client.incr(self._seq_key())
        payload = self._serialize_event(event)

        def _write(pipe) -> None:
            # A retried create after a lost EXEC reply finds its own document
            if pipe.exists(doc_key):
                return
            pipe.multi()
            pipe.hset(doc_key, mapping={"sessionId": session_id, "seq": seq})
            pipe.rpush(self._events_key(document_id), payload)
            pipe.sadd(self._appends_key(document_id), append_id)
            pipe.zadd(self._index_key(session_id), {document_id: seq})

        client.transaction(_write, doc_key)

    def append_event(
        self, document_id: str, event: StoredEvent, append_id: str | None = None
    ) -> None:
        append_id = append_id or uuid.uuid4().hex
        try:
            self._append(document_id, event, append_id)
        except RedisError as e:
            raise StoreError(f"Failed to append event to {document_id}: {e}") from e

    @_retry
    def _append(self, document_id: str, event: StoredEvent, append_id: str) -> None:
        client = self._require_client()
        doc_key = self._doc_key(document_id)
        appends_key = self._appends_key(document_id)
        payload = self._serialize_event(event)

        def _write(pipe) -> None:
            if not pipe.exists(doc_key):
                raise DocumentNotFoundError(document_id)
            if pipe.sismember(appends_key, append_id):
                logger.debug("Ignoring repeated append %s on %s", append_id, document_id)
                return
            pipe.multi()
            pipe.rpush(self._events_key(document_id), payload)
            pipe.sadd(appends_key, append_id)

        client.transaction(_write, doc_key, appends_key)

    def batch_delete(self, document_ids: list[str]) -> None:
        if not document_ids:
            return
        try:
            self._delete(document_ids)
        except RedisError as e:
            raise StoreError(f"Failed to delete session documents: {e}") from e

    @_retry
    def _delete(self, document_ids: list[str]) -> None:
        client = self._require_client()
        doc_keys = [self._doc_key(d) for d in document_ids]

        def _write(pipe) -> None:
            session_ids = [pipe.hget(key, "sessionId") for key in doc_keys]
            pipe.multi()
            for document_id, session_id in zip(document_ids, session_ids):
                pipe.delete(
                    self._doc_key(document_id),
                    self._events_key(document_id),
                    self._appends_key(document_id),
                )
                if session_id is not None:
                    pipe.zrem(self._index_key(session_id), document_id)

        client.transaction(_write, *doc_keys)

    def close(self) -> None:
        """Close the connection."""
        if self._client is not None:
            try:
                self._client.close()
                logger.info("ValkeySessionStore connection closed")
            except RedisError as e:
                logger.warning("Error closing connection: %s", e)
            finally:
                self._client = None
