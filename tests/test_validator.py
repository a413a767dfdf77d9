# ==============================================================================
# Tests for Record Validation
# ==============================================================================
"""
Tests for parse_payload(), validate_record() and parse_timestamp().
"""

from datetime import UTC, datetime

import pytest

from sessionlog.core.errors import RecordValidationError, TimestampParseError
from sessionlog.core.models import FLUSH_AGENT_NAME, FLUSH_EVENT, AppendEvent, FlushSession, classify_record
from sessionlog.core.validator import parse_payload, parse_timestamp, validate_record

# ==============================================================================
# validate_record
# ==============================================================================


class TestValidateRecord:
    """Tests for the structural record gate."""

    def test_valid_record(self, make_payload):
        record = validate_record(make_payload())
        assert record.session_id == "s1"
        assert record.agent_name == "planner"
        assert record.event == "start"
        assert record.created_at == "2024-01-01T00:00:00Z"

    def test_extra_fields_ignored(self, make_payload):
        record = validate_record(make_payload(note="hello"))
        assert record.to_message() == make_payload()

    def test_missing_single_field(self, make_payload):
        payload = make_payload()
        del payload["agentName"]
        with pytest.raises(RecordValidationError) as exc_info:
            validate_record(payload)
        assert exc_info.value.missing_fields == ["agentName"]
        assert str(exc_info.value) == "Missing required fields: agentName"

    def test_missing_fields_reported_in_fixed_order(self):
        with pytest.raises(RecordValidationError) as exc_info:
            validate_record({"event": "start"})
        assert exc_info.value.missing_fields == ["sessionId", "agentName", "createdAt"]

    @pytest.mark.parametrize("value", ["", None, 42, ["a"]])
    def test_empty_or_non_string_field_rejected(self, make_payload, value):
        with pytest.raises(RecordValidationError) as exc_info:
            validate_record(make_payload(session_id=value))
        assert exc_info.value.missing_fields == ["sessionId"]

    @pytest.mark.parametrize("payload", [[], "text", 3, None])
    def test_non_object_payload_rejected(self, payload):
        with pytest.raises(RecordValidationError) as exc_info:
            validate_record(payload)
        assert exc_info.value.missing_fields == ["sessionId", "agentName", "event", "createdAt"]

    def test_unparsable_created_at_passes_structural_gate(self, make_payload):
        record = validate_record(make_payload(created_at="not-a-date"))
        assert record.created_at == "not-a-date"


# ==============================================================================
# parse_payload
# ==============================================================================


class TestParsePayload:
    """Tests for body decoding."""

    def test_json_string(self, make_payload):
        assert parse_payload('{"sessionId": "s1"}') == {"sessionId": "s1"}

    def test_bytes(self):
        assert parse_payload(b'{"a": 1}') == {"a": 1}

    def test_object_passthrough(self, make_payload):
        payload = make_payload()
        assert parse_payload(payload) is payload

    def test_invalid_json(self):
        with pytest.raises(RecordValidationError, match="not valid JSON"):
            parse_payload("{not json")


# ==============================================================================
# parse_timestamp
# ==============================================================================


class TestParseTimestamp:
    """Tests for ISO-8601 timestamp conversion."""

    def test_zulu_suffix(self):
        assert parse_timestamp("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        parsed = parse_timestamp("2024-01-01T02:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=UTC)
        assert parsed.tzinfo == UTC

    def test_naive_taken_as_utc(self):
        assert parse_timestamp("2024-01-01T00:00:00") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_invalid_value(self):
        with pytest.raises(TimestampParseError) as exc_info:
            parse_timestamp("yesterday")
        assert exc_info.value.missing_fields == ["createdAt"]

    def test_timestamp_error_is_validation_error(self):
        assert issubclass(TimestampParseError, RecordValidationError)


# ==============================================================================
# classify_record
# ==============================================================================


class TestClassifyRecord:
    """Tests for flush signature detection."""

    def test_flush_signature(self, make_payload):
        record = validate_record(make_payload(agent_name=FLUSH_AGENT_NAME, event=FLUSH_EVENT))
        assert classify_record(record) == FlushSession(session_id="s1")

    @pytest.mark.parametrize(
        "agent_name,event",
        [
            ("analysis-agent", "flush"),
            ("Analysis-Agent", "Flush"),
            ("planner", "Flush"),
            ("analysis-agent", "start"),
        ],
    )
    def test_near_misses_are_appends(self, make_payload, agent_name, event):
        record = validate_record(make_payload(agent_name=agent_name, event=event))
        command = classify_record(record)
        assert isinstance(command, AppendEvent)
        assert command.record is record
