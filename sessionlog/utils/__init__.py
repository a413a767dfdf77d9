# ==============================================================================
# Session Log Utilities
# ==============================================================================
"""
Shared utilities: configuration, retry policy, paths and database helpers.
"""

from sessionlog.utils.config import (
    ConsumerSettings,
    IngressSettings,
    KafkaSettings,
    PostgresSettings,
    Settings,
    StoreSettings,
    ValkeySettings,
    get_settings,
)

__all__ = [
    "ConsumerSettings",
    "IngressSettings",
    "KafkaSettings",
    "PostgresSettings",
    "Settings",
    "StoreSettings",
    "ValkeySettings",
    "get_settings",
]
