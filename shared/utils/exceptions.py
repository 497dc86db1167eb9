"""
Error taxonomy for the chat relay.

Usage:
    from shared.utils.exceptions import StoreOperationError

    try:
        count = await counter.increment()
    except StoreOperationError as e:
        logger.warning("Counter increment failed", error=str(e))
"""

from typing import Any


class ChatRelayError(Exception):
    """
    Base exception for the chat relay.

    Carries optional structured context so callers can pass it
    straight to the structured logger.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ChatRelayError):
    """Mandatory configuration is missing. Fatal at startup."""


class ValidationError(ChatRelayError):
    """An inbound client payload does not match the wire schema."""


class StoreOperationError(ChatRelayError):
    """
    A Redis command (INCR, DECR, GET, SET, EVAL, PUBLISH) failed.

    Connection accounting may drift when this is raised; callers log it
    instead of rejecting client connections.
    """

    def __init__(self, operation: str, cause: Exception, **context: Any):
        super().__init__(f"{operation} failed: {cause}", operation=operation, **context)
        self.operation = operation
        self.cause = cause


class SubscriptionSetupError(ChatRelayError):
    """Subscribing to a pub/sub channel failed at startup."""

    def __init__(self, channel: str, cause: Exception):
        super().__init__(f"subscribe to {channel} failed: {cause}", channel=channel)
        self.channel = channel
        self.cause = cause


class ShutdownTimeoutError(ChatRelayError):
    """Counter reconciliation did not finish within the grace period."""

    def __init__(self, grace_period: float, pending_delta: int):
        super().__init__(
            f"counter reconciliation exceeded {grace_period}s grace period",
            grace_period=grace_period,
            pending_delta=pending_delta,
        )
        self.grace_period = grace_period
        self.pending_delta = pending_delta
