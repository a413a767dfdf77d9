# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared utilities used across CLI command modules.

This module provides:
- ANSI color codes and status icons
- Store connection helper
- Record building for event commands
"""

from contextlib import contextmanager
from datetime import UTC, datetime

import typer

from sessionlog.base.store import SessionStore
from sessionlog.core.errors import StoreError
from sessionlog.infrastructure.store import get_session_store
from sessionlog.utils.config import get_settings

# ==============================================================================
# ANSI Colors and Icons
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"
    WARN = "!"
    BULLET = "•"
    ARROW = "→"


# Module-level aliases for convenience
C, I = Colors, Icons


# ==============================================================================
# Helpers
# ==============================================================================


def fail(message: str) -> None:
    """Print an error line and exit with status 1."""
    print(f"{C.BRIGHT_RED}{I.CROSS} {message}{C.RESET}")
    raise typer.Exit(1)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_payload(session_id: str, agent_name: str, event: str, created_at: str | None) -> dict:
    """Build a wire-format event record from command options."""
    return {
        "sessionId": session_id,
        "agentName": agent_name,
        "event": event,
        "createdAt": created_at or now_iso(),
    }


@contextmanager
def connected_store():
    """Yield a connected session store for the configured backend, then close it."""
    settings = get_settings()
    store: SessionStore = get_session_store(settings)
    try:
        store.connect()
    except StoreError as e:
        fail(f"Cannot connect to {settings.store.backend} store: {e}")
    try:
        yield store
    finally:
        store.close()


__all__ = [
    "C",
    "Colors",
    "I",
    "Icons",
    "build_payload",
    "connected_store",
    "fail",
    "now_iso",
]
