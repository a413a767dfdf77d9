# ==============================================================================
# Flush Controller
# ==============================================================================
"""
Atomic purge of a session's accumulated log.

A flush arrives as an ordinary record carrying the reserved signature
(agentName "analysis-agent", event "Flush"). It is never stored as an event;
it only deletes.

Every document matching the session key is deleted in one batch, including
duplicates left behind by a create race.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sessionlog.core.errors import StoreError

if TYPE_CHECKING:
    from sessionlog.base.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlushResult:
    """How many documents a flush removed."""

    session_id: str
    deleted_documents: int

    def to_outcome(self) -> dict:
        return {
            "success": True,
            "action": "flush",
            "deletedDocuments": self.deleted_documents,
            "sessionId": self.session_id,
            "message": (
                f"Flushed {self.deleted_documents} document(s) for sessionId: {self.session_id}"
            ),
        }


class FlushController:
    """Deletes every document for a session as a single atomic batch."""

    def __init__(self, store: "SessionStore"):
        self._store = store

    def flush(self, session_id: str) -> FlushResult:
        """
        Delete all documents for a session.

        Args:
            session_id: Session key

        Returns:
            FlushResult with the number of deleted documents (0 if none existed)

        Raises:
            StoreError: Tagged with session_id. A failed batch leaves every
                        document in place.
        """
        try:
            documents = self._store.find_by_session_id(session_id)

            if not documents:
                logger.info("No documents found for sessionId: %s, nothing to flush", session_id)
                return FlushResult(session_id=session_id, deleted_documents=0)

            document_ids = [d.id for d in documents]
            self._store.batch_delete(document_ids)
            logger.info(
                "Flushed %d document(s) for sessionId: %s", len(document_ids), session_id
            )
            return FlushResult(session_id=session_id, deleted_documents=len(document_ids))

        except StoreError as e:
            if e.session_id is None:
                e.session_id = session_id
            logger.error("Store error while flushing session: %s", e)
            raise
