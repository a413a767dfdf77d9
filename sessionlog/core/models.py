# ==============================================================================
# Session Log Domain Models
# ==============================================================================
"""
Pydantic models for inbound event records and persisted session documents.

These models are used for:
- Validating records arriving through the queue and request channels
- Carrying events between the aggregator and the session store adapters
- Serializing documents for CLI output

The inbound command variant (AppendEvent | FlushSession) is decided once,
right after validation, by classify_record().
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Reserved signature that turns an ordinary record into a flush request
FLUSH_AGENT_NAME = "analysis-agent"
FLUSH_EVENT = "Flush"


class EventRecord(BaseModel):
    """
    A single inbound event as published by an agent.

    Attributes:
        session_id: Session key the event accumulates under
        agent_name: Name of the emitting agent (stored as `source`)
        event: Free-text event description
        created_at: ISO-8601 timestamp string, converted by the store adapter
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: str = Field(..., alias="sessionId", min_length=1)
    agent_name: str = Field(..., alias="agentName", min_length=1)
    event: str = Field(..., min_length=1)
    created_at: str = Field(..., alias="createdAt", min_length=1)

    @property
    def is_flush(self) -> bool:
        """True when the record carries the reserved flush signature."""
        return self.agent_name == FLUSH_AGENT_NAME and self.event == FLUSH_EVENT

    def to_message(self) -> dict:
        """Serialize using the camelCase wire names."""
        return self.model_dump(by_alias=True)


class StoredEvent(BaseModel):
    """An event as persisted inside a session document. Never edited."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    created_at: datetime = Field(..., alias="createdAt")
    source: str
    event: str


class SessionDocument(BaseModel):
    """
    The per-session append-only log.

    Lookup is by query on session_id, not by primary key, so more than one
    document can exist for a session after a create race.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    session_id: str = Field(..., alias="sessionId")
    events: list[StoredEvent] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ==============================================================================
# Inbound Commands
# ==============================================================================


@dataclass(frozen=True)
class AppendEvent:
    """Append the record to its session log."""

    record: EventRecord


@dataclass(frozen=True)
class FlushSession:
    """Delete every document accumulated for the session."""

    session_id: str


Command = AppendEvent | FlushSession


def classify_record(record: EventRecord) -> Command:
    """Decide whether a validated record is an ordinary event or a flush."""
    if record.is_flush:
        return FlushSession(session_id=record.session_id)
    return AppendEvent(record=record)
