"""Shopee webhook ingestion: validation, per-shop serialization, dispatch."""

from cip_shopee.webhooks.dispatcher import EventDispatcher, OrderSync, ShopAuthorizationStore
from cip_shopee.webhooks.models import (
    DeliveryReceipt,
    DeliveryStatus,
    DispatchResult,
    OutcomeStatus,
    ParsedEvent,
    ProcessingOutcome,
    WebhookEnvelope,
)
from cip_shopee.webhooks.pipeline import WebhookPipeline
from cip_shopee.webhooks.queue import ShopProcessingSlot, ShopSerialQueue
from cip_shopee.webhooks.replay import ReplayGuard
from cip_shopee.webhooks.signature import (
    SignatureValidator,
    build_base_string,
    clean_url,
    compute_signature,
)


__all__ = [
    "DeliveryReceipt",
    "DeliveryStatus",
    "DispatchResult",
    "EventDispatcher",
    "OrderSync",
    "OutcomeStatus",
    "ParsedEvent",
    "ProcessingOutcome",
    "ReplayGuard",
    "ShopAuthorizationStore",
    "ShopProcessingSlot",
    "ShopSerialQueue",
    "SignatureValidator",
    "WebhookEnvelope",
    "WebhookPipeline",
    "build_base_string",
    "clean_url",
    "compute_signature",
]
