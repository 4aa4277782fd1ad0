"""
CIP Shopee - Webhook ingestion service for connected Shopee storefronts.

Usage:
    from cip_shopee import create_app

    app = create_app()  # FastAPI application, run with uvicorn

    # Or use the pipeline pieces directly
    from cip_shopee import SignatureValidator, ShopSerialQueue

    validator = SignatureValidator(secret="partner-key")
    validator.validate(envelope)
"""

__version__ = "0.1.0"
__author__ = "CIP Team"

from cip_shopee.webhooks.dispatcher import EventDispatcher
from cip_shopee.webhooks.pipeline import WebhookPipeline
from cip_shopee.webhooks.queue import ShopSerialQueue
from cip_shopee.webhooks.signature import SignatureValidator


def create_app():  # noqa: ANN201
    """Lazy import of create_app to avoid circular imports."""
    from cip_shopee.api.main import create_app as _create_app

    return _create_app()


__all__ = [
    "EventDispatcher",
    "ShopSerialQueue",
    "SignatureValidator",
    "WebhookPipeline",
    "__version__",
    "create_app",
]
