"""Custom exceptions for the CIP Shopee webhook service."""

from __future__ import annotations


class CipShopeeError(Exception):
    """Base exception for all service errors."""

    pass


# =============================================================================
# Webhook Authentication Errors
# =============================================================================


class WebhookAuthError(CipShopeeError):
    """Base exception for webhook authentication failures."""

    pass


class MissingCredentialsError(WebhookAuthError):
    """Raised when the Authorization header (or the shared secret) is absent."""

    pass


class InvalidSignatureError(WebhookAuthError):
    """Raised when the computed signature does not match the header."""

    pass


class StaleRequestError(WebhookAuthError):
    """Raised when the payload timestamp is outside the tolerance window."""

    def __init__(self, timestamp: int, skew_seconds: float) -> None:
        self.timestamp = timestamp
        self.skew_seconds = skew_seconds
        super().__init__(
            f"Webhook timestamp {timestamp} is {skew_seconds:.0f}s from server time"
        )


# =============================================================================
# Payload Errors
# =============================================================================


class PayloadError(CipShopeeError):
    """Base exception for webhook payload errors."""

    pass


class InvalidPayloadError(PayloadError):
    """Raised when the webhook body is not a JSON object."""

    pass


class InvalidEventPayloadError(PayloadError):
    """Raised when an event is missing fields its handler requires."""

    pass


class UnknownEventCode(PayloadError):  # noqa: N818
    """Event code with no registered handler.

    Never raised to callers; the dispatcher logs it and acknowledges.
    """

    def __init__(self, code: int) -> None:
        self.code = code
        super().__init__(f"Unknown webhook event code: {code}")


# =============================================================================
# Processing Errors
# =============================================================================


class ProcessingError(CipShopeeError):
    """Base exception for event processing errors."""

    pass


class DownstreamFailureError(ProcessingError):
    """Raised when a business collaborator call fails."""

    def __init__(self, collaborator: str, cause: Exception) -> None:
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator} failed: {cause}")


class ShopQueueBusyError(ProcessingError):
    """Raised when a shop's pending queue is at max depth."""

    def __init__(self, shop_id: str, depth: int) -> None:
        self.shop_id = shop_id
        self.depth = depth
        super().__init__(f"Queue for shop {shop_id} is full ({depth} pending)")


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CipShopeeError):
    """Raised when configuration is invalid."""

    pass
