# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Domain logic with no transport or client-library dependencies.

This module contains:
- Domain models (EventRecord, StoredEvent, SessionDocument, commands)
- Record validation
- Session aggregation (query, then create or append)
- Session flush (query, then atomic batch delete)

Aggregator and flush controller take a SessionStore by injection.
"""

from sessionlog.core.aggregator import SessionAggregator, UpsertResult
from sessionlog.core.errors import (
    DocumentNotFoundError,
    RecordValidationError,
    SessionLogError,
    StoreError,
    TimestampParseError,
    UnsupportedUnitError,
)
from sessionlog.core.flush import FlushController, FlushResult
from sessionlog.core.models import (
    FLUSH_AGENT_NAME,
    FLUSH_EVENT,
    AppendEvent,
    EventRecord,
    FlushSession,
    SessionDocument,
    StoredEvent,
    classify_record,
)
from sessionlog.core.validator import parse_payload, parse_timestamp, validate_record

__all__ = [
    "FLUSH_AGENT_NAME",
    "FLUSH_EVENT",
    "AppendEvent",
    "DocumentNotFoundError",
    "EventRecord",
    "FlushController",
    "FlushResult",
    "FlushSession",
    "RecordValidationError",
    "SessionAggregator",
    "SessionDocument",
    "SessionLogError",
    "StoreError",
    "StoredEvent",
    "TimestampParseError",
    "UnsupportedUnitError",
    "UpsertResult",
    "classify_record",
    "parse_payload",
    "parse_timestamp",
    "validate_record",
]
