"""FastAPI application factory and configuration."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cip_shopee import __version__
from cip_shopee.api.auth import APIKeyManager
from cip_shopee.api.dependencies import close_redis, create_redis
from cip_shopee.api.rate_limiter import ClientIdentity, create_limiter, setup_rate_limiter
from cip_shopee.api.routes import (
    create_stats_router,
    create_webhook_router,
    health_router,
)
from cip_shopee.exceptions import (
    InvalidSignatureError,
    MissingCredentialsError,
    PayloadError,
    ShopQueueBusyError,
    StaleRequestError,
)
from cip_shopee.services import RedisOrderSync, RedisShopAuthorizationStore
from cip_shopee.storage import Database, WebhookEventLogger
from cip_shopee.utils.config import Settings, get_settings
from cip_shopee.utils.constants import BUSY_RETRY_AFTER_SECONDS
from cip_shopee.utils.logging import get_logger
from cip_shopee.webhooks import (
    EventDispatcher,
    ReplayGuard,
    ShopSerialQueue,
    SignatureValidator,
    WebhookPipeline,
)


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from redis.asyncio import Redis

    from cip_shopee.webhooks import OrderSync, ShopAuthorizationStore

logger = get_logger(__name__)


def build_pipeline(
    settings: Settings,
    redis: Redis,
    authorization_store: ShopAuthorizationStore | None = None,
    order_sync: OrderSync | None = None,
    event_logger: WebhookEventLogger | None = None,
) -> WebhookPipeline:
    """Assemble the webhook pipeline from settings and collaborators."""
    webhook = settings.webhook

    replay_guard = (
        ReplayGuard(redis, ttl_seconds=webhook.dedup_ttl_seconds)
        if webhook.dedup_enabled
        else None
    )
    dispatcher = EventDispatcher(
        authorization_store=authorization_store or RedisShopAuthorizationStore(redis),
        order_sync=order_sync or RedisOrderSync(redis),
    )

    return WebhookPipeline(
        validator=SignatureValidator(
            secret=webhook.partner_key,
            tolerance_seconds=webhook.timestamp_tolerance_seconds,
        ),
        queue=ShopSerialQueue(max_depth_per_shop=webhook.max_queue_depth_per_shop),
        dispatcher=dispatcher,
        replay_guard=replay_guard,
        event_logger=event_logger,
    )


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Setup CORS middleware based on configuration."""
    cors_config = settings.cors

    if not cors_config.enabled:
        logger.info("CORS is DISABLED")
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get_origins_list(),
        allow_credentials=False,
        allow_methods=cors_config.get_methods_list(),
        allow_headers=cors_config.get_headers_list(),
        max_age=cors_config.max_age,
    )

    logger.info(
        "CORS ENABLED",
        origins=cors_config.allow_origins,
        methods=cors_config.allow_methods,
    )


def setup_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map webhook errors to HTTP responses."""

    @app.exception_handler(MissingCredentialsError)
    @app.exception_handler(InvalidSignatureError)
    async def signature_error_handler(
        _request: Request, exc: MissingCredentialsError | InvalidSignatureError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": str(exc)},
        )

    @app.exception_handler(StaleRequestError)
    async def stale_request_handler(
        _request: Request, exc: StaleRequestError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"success": False, "error": "Stale request", "detail": str(exc)},
        )

    @app.exception_handler(PayloadError)
    async def payload_error_handler(_request: Request, exc: PayloadError) -> JSONResponse:
        logger.warning("Rejected webhook payload", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Invalid payload", "detail": str(exc)},
        )

    @app.exception_handler(ShopQueueBusyError)
    async def queue_busy_handler(
        _request: Request, exc: ShopQueueBusyError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"success": False, "error": "Shop queue busy", "detail": str(exc)},
            headers={"Retry-After": str(BUSY_RETRY_AFTER_SECONDS)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error("Unhandled exception", error=str(exc), exc_info=True)
        # In production, hide error details
        if settings.is_production and not settings.debug:
            error_detail = "An unexpected error occurred"
        else:
            error_detail = str(exc)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Internal server error",
                "detail": error_detail,
            },
        )


def create_app(
    settings: Settings | None = None,
    *,
    redis: Redis | None = None,
    authorization_store: ShopAuthorizationStore | None = None,
    order_sync: OrderSync | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every piece of mutable state (Redis client, per-shop queue, replay
    guard, rate-limit counters) is built here and owned by the returned
    app; nothing is shared between two apps.

    Args:
        settings: Settings to use (loaded from the environment if omitted)
        redis: Redis client to use instead of one built from settings
        authorization_store: Replaces the Redis-backed shop store
        order_sync: Replaces the Redis-backed order sync
    """
    settings = settings or get_settings()
    owns_redis = redis is None
    if redis is None:
        redis = create_redis(settings.redis)

    database = Database(settings.database.url) if settings.database.enabled else None
    pipeline = build_pipeline(
        settings,
        redis,
        authorization_store=authorization_store,
        order_sync=order_sync,
        event_logger=WebhookEventLogger(database) if database else None,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager."""
        logger.info(
            "Starting CIP Shopee webhook API",
            version=__version__,
            env=settings.env,
            debug=settings.debug,
        )

        for warning in settings.get_security_warnings():
            logger.warning(f"[SECURITY] {warning}")

        if database:
            try:
                await database.init()
            except Exception as e:
                logger.warning(f"Event audit log disabled, database init failed: {e}")
                pipeline.event_logger = None

        yield

        logger.info("Shutting down CIP Shopee webhook API")
        await pipeline.close()
        if database:
            await database.close()
        if owns_redis:
            await close_redis(redis)

    app = FastAPI(
        title="CIP Shopee Webhook API",
        description=f"""
## Shopee push ingestion for CIP Shopee

### Features
- **Webhook**: HMAC-SHA256 verified Shopee pushes, processed one at a time per shop
- **Stats**: Pipeline counters and per-shop queue state

### Rate Limiting
Webhook: {settings.rate_limit.webhook_limit()}. API: {settings.rate_limit.api_limit()}.

### Environment
Running in **{settings.env}** mode.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.settings = settings
    app.state.redis = redis
    app.state.pipeline = pipeline
    app.state.api_key_manager = APIKeyManager(settings.auth.get_keys_list())
    app.state.started_at = time.monotonic()

    if settings.auth.auth_enabled:
        logger.info(
            f"API Authentication ENABLED ({app.state.api_key_manager.key_count} key(s) configured)"
        )
    else:
        logger.info("API Authentication DISABLED")

    setup_cors(app, settings)

    identity = ClientIdentity(settings.rate_limit, settings.auth.key_header_name)
    limiter = create_limiter(settings.rate_limit, identity)
    setup_rate_limiter(app, limiter, settings.rate_limit)

    setup_exception_handlers(app, settings)

    # Register routers (order determines Swagger display order)
    app.include_router(create_webhook_router(limiter, settings, identity))
    app.include_router(create_stats_router(limiter, settings, identity), prefix="/api/v1")
    app.include_router(health_router)

    return app
