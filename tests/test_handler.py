# ==============================================================================
# Tests for the Function Handler
# ==============================================================================
"""
Tests for handler(event, context) and the process-wide dispatcher cache.
"""

import json
import threading
import time

import pytest

from sessionlog.core.errors import StoreError
from sessionlog.infrastructure.store import InMemorySessionStore
from sessionlog.ingress import handler as handler_module
from sessionlog.ingress.handler import build_dispatcher, get_dispatcher, handler, reset_handler


class TestHandler:
    """Tests for the function-style entry point."""

    def test_builds_dispatcher_from_settings(self, memory_backend, make_payload):
        response = handler({"httpMethod": "POST", "body": json.dumps(make_payload())})

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["result"]["sessionId"] == "s1"
        assert "s1" in body["result"]["message"]
        assert isinstance(handler_module._store, InMemorySessionStore)

    def test_dispatcher_is_reused(self, memory_backend):
        assert get_dispatcher() is get_dispatcher()

    def test_store_reused_across_calls(self, memory_backend, make_payload):
        handler({"httpMethod": "POST", "body": json.dumps(make_payload())})
        response = handler({"httpMethod": "POST", "body": json.dumps(make_payload(event="plan"))})

        assert json.loads(response["body"])["result"]["created"] is False

    def test_injected_store(self, memory_backend, store, make_payload):
        build_dispatcher(store=store)

        handler({"Records": [{"eventSource": "aws:sqs", "messageId": "m1", "body": json.dumps(make_payload())}]})

        assert store.document_count("s1") == 1

    def test_queue_response_not_encoded(self, memory_backend, make_payload):
        response = handler(
            {"Records": [{"eventSource": "aws:sqs", "messageId": "m1", "body": json.dumps(make_payload())}]}
        )

        assert response["processedRecords"] == 1
        assert isinstance(response["results"], list)

    def test_options_body_empty(self, memory_backend):
        assert handler({"httpMethod": "OPTIONS"})["body"] == ""

    def test_reset_handler_forgets_dispatcher(self, memory_backend):
        first = get_dispatcher()
        reset_handler()
        assert get_dispatcher() is not first

    def test_unsupported_body_encoded(self, memory_backend):
        response = handler({"httpMethod": "GET"})

        assert response["statusCode"] == 400
        assert isinstance(response["body"], str)
        assert json.loads(response["body"]) == {"error": "Unsupported event type"}


class TestUnreachableStore:
    """Tests for a store that cannot be connected on first use."""

    def test_request_gets_error_response(self, unreachable_store, make_payload):
        response = handler({"httpMethod": "POST", "body": json.dumps(make_payload())})

        assert response["statusCode"] == 500
        assert response["headers"]["Access-Control-Allow-Origin"] == "*"
        assert response["headers"]["Content-Type"] == "application/json"
        assert json.loads(response["body"]) == {
            "error": "Internal Server Error",
            "message": "Connection refused",
        }

    def test_queue_batch_raises(self, unreachable_store, make_payload):
        with pytest.raises(StoreError, match="Connection refused"):
            handler({"Records": [{"eventSource": "aws:sqs", "messageId": "m1", "body": json.dumps(make_payload())}]})

    def test_next_call_retries_connect(self, unreachable_store, monkeypatch, make_payload):
        handler({"httpMethod": "POST", "body": json.dumps(make_payload())})
        monkeypatch.setattr(handler_module, "get_session_store", lambda settings: InMemorySessionStore())

        response = handler({"httpMethod": "POST", "body": json.dumps(make_payload())})

        assert response["statusCode"] == 200


class TestConcurrentFirstUse:
    """Tests for many threads hitting a cold handler at once."""

    def test_dispatcher_built_once(self, memory_backend, monkeypatch):
        built = []

        class SlowStore(InMemorySessionStore):
            def connect(self):
                time.sleep(0.05)

        def factory(settings):
            built.append(1)
            return SlowStore()

        monkeypatch.setattr(handler_module, "get_session_store", factory)
        barrier = threading.Barrier(8, timeout=5)
        dispatchers = []

        def worker():
            barrier.wait()
            dispatchers.append(get_dispatcher())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(built) == 1
        assert len(dispatchers) == 8
        assert all(d is dispatchers[0] for d in dispatchers)
