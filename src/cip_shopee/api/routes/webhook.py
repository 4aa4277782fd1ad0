"""Shopee push (webhook) endpoint."""

# No postponed annotations here: slowapi wraps the endpoint and FastAPI
# must resolve its parameter types at import time.

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter

from cip_shopee.api.dependencies import PipelineDep
from cip_shopee.api.rate_limiter import ClientIdentity
from cip_shopee.api.schemas import ErrorResponse, WebhookPayload
from cip_shopee.utils.config import Settings
from cip_shopee.utils.constants import WEBHOOK_ROUTE_PREFIX
from cip_shopee.utils.logging import get_logger
from cip_shopee.webhooks.models import WebhookEnvelope


logger = get_logger(__name__)


def create_webhook_router(
    limiter: Limiter, settings: Settings, identity: ClientIdentity
) -> APIRouter:
    """
    Build the webhook router bound to an application's limiter.

    Acknowledgment policy: once the signature is valid and the event is
    queued, the marketplace gets ``200 {}`` whatever processing later
    yields, so a failing collaborator never triggers a redelivery storm.
    With ``WEBHOOK_ACK_ON_FAILURE=false`` the handler instead waits for
    the outcome and answers 500 when processing failed.
    """
    router = APIRouter(prefix=WEBHOOK_ROUTE_PREFIX, tags=["Webhooks"])
    ack_on_failure = settings.webhook.ack_on_failure

    @router.post(
        settings.webhook.path,
        status_code=status.HTTP_200_OK,
        summary="Receive Shopee push notification",
        description="Signed push from Shopee. Body is verified byte-for-byte.",
        openapi_extra={
            "requestBody": {
                "content": {
                    "application/json": {
                        "schema": WebhookPayload.model_json_schema()
                    }
                },
                "required": True,
            }
        },
        responses={
            200: {"description": "Accepted and acknowledged"},
            400: {"model": ErrorResponse, "description": "Malformed body"},
            401: {"model": ErrorResponse, "description": "Missing or invalid signature"},
            403: {"model": ErrorResponse, "description": "Stale timestamp"},
            429: {"description": "Rate limit exceeded"},
            503: {"model": ErrorResponse, "description": "Shop queue busy"},
        },
    )
    @limiter.limit(settings.rate_limit.webhook_limit(), key_func=identity.client_ip)
    async def receive_shopee_webhook(
        request: Request,
        pipeline: PipelineDep,
    ) -> JSONResponse:
        envelope = WebhookEnvelope.create(
            raw_body=await request.body(),
            headers=request.headers,
            url=str(request.url),
        )
        receipt = await pipeline.submit(envelope)

        if not ack_on_failure and receipt.outcome is not None:
            outcome = await receipt.outcome
            if not outcome.succeeded:
                return JSONResponse(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content={"success": False, "error": "Processing failed"},
                )

        return JSONResponse(status_code=status.HTTP_200_OK, content={})

    return router
