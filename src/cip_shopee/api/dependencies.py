"""FastAPI dependencies for dependency injection.

Long-lived objects (settings, Redis client, pipeline) are built once in
``create_app`` and stored on ``app.state``; these helpers expose them to
route handlers.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from redis.asyncio import ConnectionPool, Redis

from cip_shopee.api.auth import get_api_key
from cip_shopee.utils.config import RedisSettings, Settings
from cip_shopee.utils.logging import get_logger
from cip_shopee.webhooks.pipeline import WebhookPipeline


logger = get_logger(__name__)


def create_redis(settings: RedisSettings) -> Redis:
    """
    Create an async Redis client backed by a connection pool.

    No connection is opened until the first command.
    """
    pool = ConnectionPool.from_url(
        settings.url,
        max_connections=settings.pool_size,
        socket_timeout=settings.pool_timeout,
        decode_responses=True,
    )
    client = Redis(connection_pool=pool)

    logger.info(
        "Redis connection pool initialized",
        pool_size=settings.pool_size,
        url=settings.url.split("@")[-1],  # Hide credentials
    )
    return client


async def close_redis(client: Redis) -> None:
    """Close a Redis client and its connection pool."""
    await client.aclose()
    await client.connection_pool.disconnect()
    logger.info("Redis connection pool closed")


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_pipeline(request: Request) -> WebhookPipeline:
    """Webhook pipeline owned by the application."""
    return request.app.state.pipeline


def get_redis(request: Request) -> Redis:
    """Redis client owned by the application."""
    return request.app.state.redis


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
PipelineDep = Annotated[WebhookPipeline, Depends(get_pipeline)]
RedisDep = Annotated[Redis, Depends(get_redis)]

# API Key dependencies
RequireApiKey = Annotated[str, Depends(get_api_key)]
