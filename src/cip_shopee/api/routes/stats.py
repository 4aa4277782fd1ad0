"""Webhook pipeline statistics endpoint."""

# No postponed annotations here: see routes/webhook.py.

from fastapi import APIRouter, Request
from slowapi import Limiter

from cip_shopee.api.dependencies import PipelineDep, RequireApiKey
from cip_shopee.api.rate_limiter import ClientIdentity
from cip_shopee.api.schemas import QueueStatsSchema, WebhookStatsResponse
from cip_shopee.utils.config import Settings


def create_stats_router(
    limiter: Limiter, settings: Settings, identity: ClientIdentity
) -> APIRouter:
    """Build the stats router, limited with the general API budget."""
    router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

    @router.get(
        "/stats",
        response_model=WebhookStatsResponse,
        summary="Webhook processing statistics",
        description="Counters and per-shop queue state of the webhook pipeline.",
    )
    @limiter.limit(settings.rate_limit.api_limit(), key_func=identity.client_key)
    async def webhook_stats(
        request: Request,
        pipeline: PipelineDep,
        _api_key: RequireApiKey,
    ) -> WebhookStatsResponse:
        stats = pipeline.stats()
        return WebhookStatsResponse(
            processed=stats["processed"],
            failed=stats["failed"],
            duplicates=stats["duplicates"],
            queue=QueueStatsSchema(**stats["queue"]),
        )

    return router
