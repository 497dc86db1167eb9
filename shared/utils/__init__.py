"""
Shared utilities: error taxonomy.
"""

from shared.utils.exceptions import (
    ChatRelayError,
    ConfigurationError,
    ValidationError,
    StoreOperationError,
    SubscriptionSetupError,
    ShutdownTimeoutError,
)

__all__ = [
    "ChatRelayError",
    "ConfigurationError",
    "ValidationError",
    "StoreOperationError",
    "SubscriptionSetupError",
    "ShutdownTimeoutError",
]
