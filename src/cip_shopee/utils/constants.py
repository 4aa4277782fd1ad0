"""Constants used throughout the CIP Shopee service."""

from __future__ import annotations

from enum import IntEnum


# =============================================================================
# Webhook HTTP surface
# =============================================================================

WEBHOOK_ROUTE_PREFIX = "/api/webhook"
WEBHOOK_PATH = "/shopee/webhook"
SIGNATURE_HEADER = "Authorization"

# Base string separator between the cleaned URL and the raw body
SIGNATURE_SEPARATOR = "|"

# =============================================================================
# Timing
# =============================================================================

DEFAULT_TIMESTAMP_TOLERANCE_SECONDS = 15 * 60
DEFAULT_DEDUP_TTL_SECONDS = 24 * 60 * 60
BUSY_RETRY_AFTER_SECONDS = 5

# =============================================================================
# Per-shop serialization
# =============================================================================

DEFAULT_MAX_QUEUE_DEPTH = 100
# Serialization key for events that carry no shop id (e.g. test pushes)
NO_SHOP_KEY = "-"


class EventCode(IntEnum):
    """Shopee push event codes handled by the dispatcher."""

    TEST_PUSH = 0
    SHOP_AUTHORIZATION = 1
    ORDER_STATUS_UPDATE = 4
    SHOP_DEAUTHORIZATION = 5


# =============================================================================
# Redis key schema
# =============================================================================

KEY_SHOP_AUTH = "shop:auth:{shop_id}"  # Hash (authorized, updated_at)
KEY_ORDER = "order:{order_sn}"  # Hash (status, update_time)
KEY_WEBHOOK_SEEN = "webhook:seen:shopee:{delivery_id}"  # String, TTL
