"""Utility modules."""

from cip_shopee.utils.config import Settings, get_settings
from cip_shopee.utils.constants import (
    DEFAULT_MAX_QUEUE_DEPTH,
    DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
    NO_SHOP_KEY,
    SIGNATURE_HEADER,
    WEBHOOK_PATH,
    EventCode,
)
from cip_shopee.utils.logging import get_logger, redact, setup_logging


__all__ = [
    "DEFAULT_MAX_QUEUE_DEPTH",
    "DEFAULT_TIMESTAMP_TOLERANCE_SECONDS",
    "NO_SHOP_KEY",
    "SIGNATURE_HEADER",
    "WEBHOOK_PATH",
    "EventCode",
    "Settings",
    "get_logger",
    "get_settings",
    "redact",
    "setup_logging",
]
