"""API routes package."""

from cip_shopee.api.routes.health import router as health_router
from cip_shopee.api.routes.stats import create_stats_router
from cip_shopee.api.routes.webhook import create_webhook_router


__all__ = [
    "create_stats_router",
    "create_webhook_router",
    "health_router",
]
