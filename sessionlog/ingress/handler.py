# ==============================================================================
# Function Handler
# ==============================================================================
"""
Function-style entry point: handler(event, context) -> response.

Both channels go through one process-wide dispatcher, built on first use
from settings (STORE_BACKEND selects the session store). Request responses
are returned with a JSON-encoded body, ready for an HTTP gateway; queue
batch responses are returned as-is.
"""

import json
import logging
import threading

from sessionlog.base.store import SessionStore
from sessionlog.core.errors import StoreError
from sessionlog.ingress.dispatcher import IngressDispatcher, cors_headers
from sessionlog.infrastructure.store import get_session_store
from sessionlog.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

_dispatcher: IngressDispatcher | None = None
_store: SessionStore | None = None
_lock = threading.Lock()


def build_dispatcher(
    store: SessionStore | None = None, settings: Settings | None = None
) -> IngressDispatcher:
    """
    Build (or replace) the process-wide dispatcher.

    Args:
        store: Session store to use. If None, one is created from settings
            and connected.
        settings: Application settings. If None, uses get_settings().
    """
    global _dispatcher, _store
    settings = settings or get_settings()
    if store is None:
        store = get_session_store(settings)
        store.connect()

    _store = store
    _dispatcher = IngressDispatcher.from_store(store, settings.ingress)
    logger.info("Dispatcher ready (backend=%s)", settings.store.backend)
    return _dispatcher


def get_dispatcher() -> IngressDispatcher:
    """Return the process-wide dispatcher, building it once on first use."""
    if _dispatcher is None:
        with _lock:
            if _dispatcher is None:
                return build_dispatcher()
    return _dispatcher


def _encode(response: dict) -> dict:
    # Queue batch responses stay structured; everything else goes to an HTTP gateway
    if "processedRecords" in response or not isinstance(response.get("body"), dict):
        return response
    return {**response, "body": json.dumps(response["body"])}


def handler(event, context=None) -> dict:
    """
    Process one inbound unit.

    A store that cannot be reached turns a request unit into a 500 response.
    Queue units re-raise so the platform redelivers the whole batch.
    """
    try:
        dispatcher = get_dispatcher()
    except StoreError as e:
        if not (isinstance(event, dict) and "httpMethod" in event):
            raise
        logger.error("Session store unavailable: %s", e)
        return _encode(
            {
                "statusCode": 500,
                "headers": cors_headers(get_settings().ingress),
                "body": {"error": "Internal Server Error", "message": str(e)},
            }
        )

    return _encode(dispatcher.handle(event))


def reset_handler() -> None:
    """Close the cached store and forget the dispatcher."""
    global _dispatcher, _store
    with _lock:
        if _store is not None:
            _store.close()
        _dispatcher = None
        _store = None
