# ==============================================================================
# In-Memory Session Store
# ==============================================================================
"""
In-process implementation of the SessionStore interface.

Used by the test suite and for local runs (STORE_BACKEND=memory). Documents
live in a dict guarded by a lock, so every single call is atomic; the
find-then-write sequence in the aggregator is still not.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field

from sessionlog.base.store import SessionStore
from sessionlog.core.errors import DocumentNotFoundError
from sessionlog.core.models import SessionDocument, StoredEvent

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    session_id: str
    events: list[StoredEvent] = field(default_factory=list)
    append_ids: set[str] = field(default_factory=set)


class InMemorySessionStore(SessionStore):
    """Dict-backed SessionStore. Insertion order is creation order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: dict[str, _Entry] = {}

    def connect(self) -> None:
        logger.debug("InMemorySessionStore ready")

    def find_by_session_id(self, session_id: str) -> list[SessionDocument]:
        with self._lock:
            return [
                SessionDocument(id=doc_id, session_id=entry.session_id, events=list(entry.events))
                for doc_id, entry in self._documents.items()
                if entry.session_id == session_id
            ]

    def create_document(
        self, session_id: str, event: StoredEvent, append_id: str | None = None
    ) -> str:
        document_id = uuid.uuid4().hex
        entry = _Entry(session_id=session_id, events=[event])
        if append_id is not None:
            entry.append_ids.add(append_id)
        with self._lock:
            self._documents[document_id] = entry
        return document_id

    def append_event(
        self, document_id: str, event: StoredEvent, append_id: str | None = None
    ) -> None:
        with self._lock:
            entry = self._documents.get(document_id)
            if entry is None:
                raise DocumentNotFoundError(document_id)
            if append_id is not None:
                if append_id in entry.append_ids:
                    logger.debug("Ignoring repeated append %s on %s", append_id, document_id)
                    return
                entry.append_ids.add(append_id)
            entry.events.append(event)

    def batch_delete(self, document_ids: list[str]) -> None:
        with self._lock:
            for document_id in document_ids:
                self._documents.pop(document_id, None)

    def close(self) -> None:
        logger.debug("InMemorySessionStore closed")

    # ==========================================================================
    # Additional Methods (beyond ABC)
    # ==========================================================================

    def document_count(self, session_id: str | None = None) -> int:
        """Count documents, optionally only those for one session."""
        with self._lock:
            if session_id is None:
                return len(self._documents)
            return sum(1 for e in self._documents.values() if e.session_id == session_id)
