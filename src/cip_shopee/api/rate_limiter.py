"""Rate limiter using SlowAPI with fixed-window counters."""

from __future__ import annotations

import hashlib
import ipaddress
from typing import TYPE_CHECKING

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from cip_shopee.exceptions import ConfigurationError
from cip_shopee.utils.logging import get_logger


if TYPE_CHECKING:
    from fastapi import FastAPI, Request

    from cip_shopee.utils.config import RateLimitSettings

logger = get_logger(__name__)

DEFAULT_API_KEY_HEADER = "X-API-Key"


class ClientIdentity:
    """
    Limiter key functions for one application.

    Forwarding headers (X-Forwarded-For, X-Real-IP) are client-controlled,
    so they are only read when proxy trust is enabled and the socket peer
    is one of the trusted proxies. Otherwise clients are keyed by peer.
    """

    def __init__(
        self,
        settings: RateLimitSettings,
        api_key_header: str = DEFAULT_API_KEY_HEADER,
    ) -> None:
        self.trust_proxy_headers = settings.trust_proxy_headers
        self.api_key_header = api_key_header
        try:
            self._trusted_networks = [
                ipaddress.ip_network(proxy, strict=False)
                for proxy in settings.get_trusted_proxies_list()
            ]
        except ValueError as e:
            raise ConfigurationError(f"Invalid trusted proxy entry: {e}") from e

    def _peer_is_trusted(self, peer: str) -> bool:
        if not self._trusted_networks:
            return True
        try:
            address = ipaddress.ip_address(peer)
        except ValueError:
            return False
        return any(address in network for network in self._trusted_networks)

    def client_ip(self, request: Request) -> str:
        """Get the client IP, honouring forwarding headers only from trusted proxies."""
        peer = get_remote_address(request)
        if not self.trust_proxy_headers or not self._peer_is_trusted(peer):
            return peer

        # X-Forwarded-For can contain multiple IPs, first one is the client
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and forwarded_for.split(",")[0].strip():
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip and real_ip.strip():
            return real_ip.strip()

        return peer

    def client_key(self, request: Request) -> str:
        """
        Identify an API client by its API key, falling back to its IP.

        The key is hashed so raw API keys never sit in limiter storage.
        """
        api_key = request.headers.get(self.api_key_header) or request.query_params.get(
            "api_key"
        )
        if api_key:
            digest = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
            return f"key:{digest}"
        return f"ip:{self.client_ip(request)}"


def create_limiter(
    settings: RateLimitSettings, identity: ClientIdentity | None = None
) -> Limiter:
    """
    Create a limiter for one application instance.

    Counters use the fixed-window strategy: each client key gets a fresh
    budget when its window elapses, regardless of request pattern.

    Raises:
        ConfigurationError: If the storage backend is not memory or redis
    """
    identity = identity or ClientIdentity(settings)
    if settings.storage == "redis":
        storage_uri = settings.redis_url
        logger.info("Rate limiter using Redis storage", redis_url=storage_uri.split("@")[-1])
    elif settings.storage == "memory":
        storage_uri = "memory://"
        logger.info("Rate limiter using in-memory storage")
    else:
        raise ConfigurationError(
            f"Unknown rate limit storage {settings.storage!r} (use memory or redis)"
        )

    return Limiter(
        key_func=identity.client_ip,
        storage_uri=storage_uri,
        strategy="fixed-window",
        enabled=settings.enabled,
    )


def setup_rate_limiter(app: FastAPI, limiter: Limiter, settings: RateLimitSettings) -> None:
    """
    Attach a limiter to a FastAPI application.

    Requests over the limit raise RateLimitExceeded, answered with 429
    before the endpoint body runs.
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    if not settings.enabled:
        logger.info("Rate limiting is DISABLED")
        return

    logger.info(
        "Rate limiting ENABLED",
        webhook_limit=settings.webhook_limit(),
        api_limit=settings.api_limit(),
        storage=settings.storage,
    )
