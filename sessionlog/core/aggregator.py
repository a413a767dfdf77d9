# ==============================================================================
# Session Aggregator
# ==============================================================================
"""
Upsert of one event into its session log.

Algorithm:
    1. Query the store for documents whose sessionId equals the key
    2. No match  -> create a document holding just this event
    3. >= 1 match -> append the event to the FIRST match (creation order)

The query-then-write sequence is not atomic. Two concurrent upserts for an
unseen session can both create a document; later upserts keep appending to
the first one and the duplicate is left in place (it is removed by the next
flush, which deletes every match).
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sessionlog.core.errors import StoreError
from sessionlog.core.models import EventRecord, StoredEvent

if TYPE_CHECKING:
    from sessionlog.base.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsertResult:
    """Where an event landed."""

    session_id: str
    document_id: str
    created: bool

    def to_outcome(self) -> dict:
        return {
            "success": True,
            "message": f"Event processed successfully for sessionId: {self.session_id}",
            "sessionId": self.session_id,
            "documentId": self.document_id,
            "created": self.created,
        }


class SessionAggregator:
    """
    Folds validated events into per-session documents.

    The store is injected so the aggregator can run against any SessionStore
    implementation, including the in-memory one used by tests.
    """

    def __init__(self, store: "SessionStore"):
        self._store = store

    def to_stored_event(self, record: EventRecord) -> StoredEvent:
        """
        Convert an inbound record into its persisted form.

        Raises:
            TimestampParseError: If createdAt does not parse
        """
        return StoredEvent(
            created_at=self._store.to_store_timestamp(record.created_at),
            source=record.agent_name,
            event=record.event,
        )

    def apply(self, record: EventRecord, append_id: str | None = None) -> UpsertResult:
        """Convert and upsert one record."""
        return self.upsert(record.session_id, self.to_stored_event(record), append_id=append_id)

    def upsert(
        self, session_id: str, event: StoredEvent, append_id: str | None = None
    ) -> UpsertResult:
        """
        Locate or create the session's document and append the event.

        Args:
            session_id: Session key
            event: Event to persist
            append_id: Idempotency token for this append (e.g. the queue message id)

        Returns:
            UpsertResult with the document id and whether it was created

        Raises:
            StoreError: Tagged with session_id, if any store call fails
        """
        try:
            documents = self._store.find_by_session_id(session_id)

            if not documents:
                document_id = self._store.create_document(session_id, event, append_id=append_id)
                logger.info(
                    "Created new document with ID: %s for sessionId: %s", document_id, session_id
                )
                return UpsertResult(session_id=session_id, document_id=document_id, created=True)

            if len(documents) > 1:
                logger.warning(
                    "Found %d documents for sessionId: %s, appending to first (%s); "
                    "duplicates: %s",
                    len(documents),
                    session_id,
                    documents[0].id,
                    ", ".join(d.id for d in documents[1:]),
                )

            target = documents[0]
            self._store.append_event(target.id, event, append_id=append_id)
            logger.info(
                "Updated existing document with ID: %s for sessionId: %s", target.id, session_id
            )
            return UpsertResult(session_id=session_id, document_id=target.id, created=False)

        except StoreError as e:
            if e.session_id is None:
                e.session_id = session_id
            logger.error("Store error while aggregating event: %s", e)
            raise
