# ==============================================================================
# Ingress Dispatcher
# ==============================================================================
"""
Routes one inbound unit to the aggregator or the flush controller and builds
the response envelope.

Unit shapes:
- Queue batch:   {"Records": [{"eventSource", "messageId", "body"}, ...]}
- Request:       {"httpMethod": "POST", "body": <JSON string or object>}
- Preflight:     {"httpMethod": "OPTIONS"}

Queue records are processed one by one, in order, and a failing record never
stops its siblings. Records that failed for a retryable reason (store errors)
are listed in batchItemFailures so the queue channel can redeliver just those.
Validation failures are final and never listed.
"""

import logging

from sessionlog.core.aggregator import SessionAggregator
from sessionlog.core.errors import RecordValidationError, UnsupportedUnitError
from sessionlog.core.flush import FlushController
from sessionlog.core.models import AppendEvent, FlushSession, classify_record
from sessionlog.core.validator import parse_payload, validate_record
from sessionlog.utils.config import IngressSettings, get_settings

logger = logging.getLogger(__name__)

QUEUE = "queue"
REQUEST = "request"
PREFLIGHT = "preflight"


def classify_unit(unit) -> str:
    """
    Decide which ingress shape a unit has.

    Returns:
        One of QUEUE, REQUEST, PREFLIGHT

    Raises:
        UnsupportedUnitError: If the unit matches none of them
    """
    if isinstance(unit, dict):
        records = unit.get("Records")
        if isinstance(records, list) and records:
            return QUEUE
        method = unit.get("httpMethod")
        if method == "POST":
            return REQUEST
        if method == "OPTIONS":
            return PREFLIGHT
    raise UnsupportedUnitError()


def cors_headers(settings: IngressSettings, json_body: bool = True) -> dict:
    """Build the CORS headers attached to request-channel responses."""
    headers = {
        "Access-Control-Allow-Origin": settings.cors_allow_origin,
        "Access-Control-Allow-Headers": settings.cors_allow_headers,
        "Access-Control-Allow-Methods": settings.cors_allow_methods,
    }
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


class IngressDispatcher:
    """
    Entry point shared by the queue and request channels.

    Holds no state besides its collaborators; safe to reuse across units.
    """

    def __init__(
        self,
        aggregator: SessionAggregator,
        flush_controller: FlushController,
        settings: IngressSettings | None = None,
    ):
        self._aggregator = aggregator
        self._flush = flush_controller
        self._settings = settings or get_settings().ingress

    @classmethod
    def from_store(cls, store, settings: IngressSettings | None = None) -> "IngressDispatcher":
        """Wire an aggregator and flush controller around one store."""
        return cls(SessionAggregator(store), FlushController(store), settings)

    # ==========================================================================
    # Routing
    # ==========================================================================

    def handle(self, unit) -> dict:
        """
        Process one inbound unit.

        Queue batches return {statusCode, processedRecords, results,
        batchItemFailures}; requests return {statusCode, headers, body}.
        """
        try:
            kind = classify_unit(unit)
        except UnsupportedUnitError as e:
            logger.warning("Unknown event type")
            return {"statusCode": 400, "body": {"error": str(e)}}

        if kind == QUEUE:
            return self.handle_queue_batch(unit["Records"])
        if kind == PREFLIGHT:
            return self.preflight()
        return self.handle_request(unit)

    def process_record(self, payload, append_id: str | None = None) -> dict:
        """
        Validate, classify and apply one decoded record.

        Returns:
            The success outcome dict

        Raises:
            RecordValidationError: Missing/malformed field or bad createdAt
            StoreError: Store failure, tagged with the sessionId
        """
        record = validate_record(payload)

        match classify_record(record):
            case FlushSession(session_id=session_id):
                return self._flush.flush(session_id).to_outcome()
            case AppendEvent(record=event_record):
                return self._aggregator.apply(event_record, append_id=append_id).to_outcome()

    # ==========================================================================
    # Queue Channel
    # ==========================================================================

    def handle_queue_batch(self, records: list) -> dict:
        """Process every record of a queue batch, isolating failures."""
        logger.info("Processing %d queue messages", len(records))

        results = []
        item_failures = []
        for record in records:
            record_id = record.get("messageId") if isinstance(record, dict) else None
            try:
                if not isinstance(record, dict):
                    raise RecordValidationError("Queue record must be an object")
                source = record.get("eventSource")
                if source not in self._settings.queue_event_sources:
                    raise UnsupportedUnitError(f"Unsupported event source: {source}")
                outcome = self.process_record(parse_payload(record.get("body")), append_id=record_id)
                results.append(outcome)
            except (RecordValidationError, UnsupportedUnitError) as e:
                logger.warning("Rejected queue record %s: %s", record_id, e)
                results.append(self._failed_outcome(e, record_id))
            except Exception as e:
                logger.exception("Error processing queue record %s: %s", record_id, e)
                results.append(self._failed_outcome(e, record_id))
                item_failures.append({"itemIdentifier": record_id})

        logger.info(
            "Processing completed: %d records, %d failed, %d retryable",
            len(records),
            sum(1 for r in results if not r["success"]),
            len(item_failures),
        )
        return {
            "statusCode": 200,
            "processedRecords": len(results),
            "results": results,
            "batchItemFailures": item_failures,
        }

    @staticmethod
    def _failed_outcome(error: Exception, record_id: str | None) -> dict:
        return {"success": False, "error": str(error), "recordId": record_id}

    # ==========================================================================
    # Request Channel
    # ==========================================================================

    def handle_request(self, unit: dict) -> dict:
        """Process one POST request unit synchronously."""
        logger.info("Processing request unit")
        try:
            outcome = self.process_record(parse_payload(unit.get("body")))
        except RecordValidationError as e:
            logger.warning("Bad request: %s", e)
            return self._response(400, {"error": "Bad Request", "message": str(e)})
        except Exception as e:
            logger.exception("Error processing request: %s", e)
            return self._response(500, {"error": "Internal Server Error", "message": str(e)})

        return self._response(200, {"message": "Event processed successfully", "result": outcome})

    def preflight(self) -> dict:
        """Fixed response to a CORS preflight."""
        return {
            "statusCode": 200,
            "headers": cors_headers(self._settings, json_body=False),
            "body": "",
        }

    def _response(self, status_code: int, body: dict) -> dict:
        return {
            "statusCode": status_code,
            "headers": cors_headers(self._settings),
            "body": body,
        }
