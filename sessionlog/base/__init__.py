# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the contracts for the ports-and-adapters architecture.

Note: transport bindings (Kafka consumer, function-style handler) are not
abstracted here. They live in consumers/ and ingress/ and only depend on
the dispatcher.
"""

from sessionlog.base.store import SessionStore

__all__ = [
    "SessionStore",
]
