# ==============================================================================
# EventRecord Validation
# ==============================================================================
"""
Structural validation of one inbound record.

This is the single gate between "Bad Request" and aggregation. It checks that
the four mandatory fields are present, are strings and are non-empty.

It does NOT check that createdAt parses: that happens when the store adapter
converts the value (to_store_timestamp), which raises TimestampParseError.
Callers treat both errors the same way.
"""

import json
from datetime import UTC, datetime

from pydantic import ValidationError

from sessionlog.core.errors import RecordValidationError, TimestampParseError
from sessionlog.core.models import EventRecord

# Wire names in the order they are reported
REQUIRED_FIELDS = ["sessionId", "agentName", "event", "createdAt"]

_FIELD_NAMES = {
    "session_id": "sessionId",
    "agent_name": "agentName",
    "created_at": "createdAt",
}


def parse_payload(body) -> object:
    """
    Decode a request/message body into a Python object.

    Args:
        body: JSON string or bytes, or an already-parsed object

    Returns:
        The decoded object (not yet validated)

    Raises:
        RecordValidationError: If the body is not valid JSON
    """
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RecordValidationError(f"Body is not valid UTF-8: {e}") from e
    if isinstance(body, str):
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise RecordValidationError(f"Body is not valid JSON: {e.msg}") from e
    return body


def validate_record(payload) -> EventRecord:
    """
    Validate one inbound record.

    Args:
        payload: Decoded record (expected to be a JSON object)

    Returns:
        The validated EventRecord

    Raises:
        RecordValidationError: Naming every missing or malformed field
    """
    if not isinstance(payload, dict):
        raise RecordValidationError(
            "Event payload must be a JSON object", missing_fields=list(REQUIRED_FIELDS)
        )

    try:
        return EventRecord.model_validate(payload)
    except ValidationError as e:
        failed = set()
        for error in e.errors():
            if error["loc"]:
                name = str(error["loc"][0])
                failed.add(_FIELD_NAMES.get(name, name))
        fields = [f for f in REQUIRED_FIELDS if f in failed] or list(REQUIRED_FIELDS)
        raise RecordValidationError.for_fields(fields) from e


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into a timezone-aware UTC datetime.

    Naive timestamps are taken to be UTC.

    Raises:
        TimestampParseError: If the value does not parse
    """
    if not isinstance(value, str):
        raise TimestampParseError(value)
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise TimestampParseError(value) from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
