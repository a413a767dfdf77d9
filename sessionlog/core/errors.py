# ==============================================================================
# Session Log Exceptions
# ==============================================================================
"""
Exception hierarchy for event ingestion.

- RecordValidationError: missing or malformed mandatory field (never retried)
- TimestampParseError: createdAt did not parse (surfaced like validation)
- StoreError: any failure from a session store adapter (retryable)
- DocumentNotFoundError: append targeted a document that no longer exists
- UnsupportedUnitError: inbound unit is neither a queue batch nor a request
"""


class SessionLogError(Exception):
    """Base class for all session log errors."""


class RecordValidationError(SessionLogError):
    """An inbound record failed structural validation."""

    def __init__(self, message: str, missing_fields: list[str] | None = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []

    @classmethod
    def for_fields(cls, fields: list[str]) -> "RecordValidationError":
        return cls(f"Missing required fields: {', '.join(fields)}", missing_fields=fields)


class TimestampParseError(RecordValidationError):
    """createdAt is not a parseable ISO-8601 timestamp."""

    def __init__(self, value: object):
        super().__init__(f"Invalid createdAt timestamp: {value!r}", missing_fields=["createdAt"])
        self.value = value


class StoreError(SessionLogError):
    """A session store call failed (network, permission, conflict)."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id

    def __str__(self) -> str:
        message = super().__str__()
        if self.session_id is None:
            return message
        return f"{message} (sessionId: {self.session_id})"


class DocumentNotFoundError(StoreError):
    """The target session document vanished (typically flushed concurrently)."""

    def __init__(self, document_id: str, session_id: str | None = None):
        super().__init__(f"Session document {document_id} not found", session_id=session_id)
        self.document_id = document_id


class UnsupportedUnitError(SessionLogError):
    """The inbound unit matches no known ingress shape."""

    def __init__(self, message: str = "Unsupported event type"):
        super().__init__(message)
