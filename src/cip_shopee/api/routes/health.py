"""Health check endpoints."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request, Response, status
from redis.exceptions import RedisError

from cip_shopee import __version__
from cip_shopee.api.dependencies import RedisDep, SettingsDep
from cip_shopee.api.schemas import (
    ComponentHealthSchema,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
)


router = APIRouter(tags=["Health"])


async def _check_redis(redis: Any) -> ComponentHealthSchema:
    try:
        await redis.ping()
    except (RedisError, OSError) as e:
        return ComponentHealthSchema(name="redis", status="unhealthy", message=str(e))
    return ComponentHealthSchema(name="redis", status="healthy")


def _check_partner_key(settings: Any) -> ComponentHealthSchema:
    if settings.webhook.is_configured:
        return ComponentHealthSchema(name="partner_key", status="healthy")
    return ComponentHealthSchema(
        name="partner_key",
        status="unhealthy",
        message="WEBHOOK_PARTNER_KEY is not set; all webhooks are rejected",
    )


def _overall(components: list[ComponentHealthSchema]) -> str:
    statuses = {c.status for c in components}
    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Comprehensive health check",
    description="Detailed health status with all component checks.",
)
async def health_check(
    request: Request, redis: RedisDep, settings: SettingsDep
) -> HealthResponse:
    """
    Return comprehensive health status.

    Includes:
    - Redis connectivity
    - Webhook partner key presence
    - Per-shop queue load
    """
    components = [await _check_redis(redis), _check_partner_key(settings)]

    queue_stats = request.app.state.pipeline.queue.stats()
    components.append(
        ComponentHealthSchema(
            name="shop_queue",
            status="healthy",
            message=f"{queue_stats['active_slots']} shop(s) processing",
        )
    )

    return HealthResponse(
        status=_overall(components),
        version=__version__,
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 2),
        components=components,
    )


@router.get(
    "/health/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Simple check if service is alive (Kubernetes liveness probe).",
)
async def liveness_check() -> LivenessResponse:
    """Return 200 OK while the process is running."""
    return LivenessResponse(timestamp=datetime.now(timezone.utc).isoformat())


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Check if service is ready to accept webhooks (Kubernetes readiness probe).",
)
async def readiness_check(
    response: Response, redis: RedisDep, settings: SettingsDep
) -> ReadinessResponse:
    """
    Readiness probe - is the service ready to handle webhooks?

    Returns 200 if ready, 503 if Redis is unreachable or no partner key is set.
    """
    checks = [await _check_redis(redis), _check_partner_key(settings)]
    ready = all(c.status == "healthy" for c in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        ready=ready,
        checks=checks,
    )


@router.get(
    "/",
    summary="API root",
    description="API information and available endpoints.",
)
async def root(settings: SettingsDep) -> dict[str, Any]:
    """Return API info with HATEOAS links."""
    return {
        "name": "CIP Shopee Webhook API",
        "version": __version__,
        "links": {
            "self": "/",
            "health": "/health",
            "webhook": f"/api/webhook{settings.webhook.path}",
            "stats": "/api/v1/webhooks/stats",
            "docs": "/docs",
        },
    }
