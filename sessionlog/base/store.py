# ==============================================================================
# Session Store Abstract Base Class
# ==============================================================================
"""
Abstract interface over the document store holding session logs.

This defines the "what" (find, create, append, delete) not the "how".
Concrete implementations in infrastructure/store/ handle the specifics and
translate native client errors into StoreError.

There is no atomic "upsert by key": the aggregator queries, then creates or
appends, so two concurrent first events can create two documents.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from sessionlog.core.models import SessionDocument, StoredEvent
from sessionlog.core.validator import parse_timestamp


class SessionStore(ABC):
    """Store for per-session append-only event logs."""

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the data store."""
        ...

    @abstractmethod
    def find_by_session_id(self, session_id: str) -> list[SessionDocument]:
        """
        Find every document whose sessionId equals the key.

        Args:
            session_id: Session key

        Returns:
            Matching documents in creation order (empty list if none)
        """
        ...

    @abstractmethod
    def create_document(
        self, session_id: str, event: StoredEvent, append_id: str | None = None
    ) -> str:
        """
        Create a new session document holding a single event.

        Args:
            session_id: Session key
            event: First event of the session
            append_id: Optional idempotency token recorded for the event

        Returns:
            The new document id
        """
        ...

    @abstractmethod
    def append_event(
        self, document_id: str, event: StoredEvent, append_id: str | None = None
    ) -> None:
        """
        Atomically append an event to a document's events list.

        The append must not depend on reading the current list length. A
        second call carrying an append_id the document has already seen is a
        no-op; calls without an append_id always append.

        Args:
            document_id: Target document id
            event: Event to append
            append_id: Optional idempotency token

        Raises:
            DocumentNotFoundError: If the document no longer exists
        """
        ...

    @abstractmethod
    def batch_delete(self, document_ids: list[str]) -> None:
        """
        Delete documents as one atomic unit.

        Either every listed document is deleted or, on failure, none is.

        Args:
            document_ids: Documents to delete
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        ...

    def to_store_timestamp(self, value: str) -> datetime:
        """
        Convert an ISO-8601 string into the store's timestamp representation.

        Raises:
            TimestampParseError: If the value does not parse
        """
        return parse_timestamp(value)
