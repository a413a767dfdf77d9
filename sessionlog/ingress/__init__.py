# ==============================================================================
# Ingress
# ==============================================================================
"""
Ingress channels for session events.

- dispatcher.py: routes queue batches, requests and preflights
- handler.py: function-style handler(event, context) entry point

Usage:
    from sessionlog.ingress.handler import handler
"""

from sessionlog.ingress.dispatcher import IngressDispatcher, classify_unit, cors_headers

__all__ = [
    "IngressDispatcher",
    "classify_unit",
    "cors_headers",
]
