"""API key authentication for operational endpoints."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyQuery

from cip_shopee.utils.logging import get_logger, redact


if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)

# API Key can be passed via the configured header or query parameter
api_key_query = APIKeyQuery(name="api_key", auto_error=False)


class APIKeyManager:
    """
    Manages API key validation and generation.

    One manager is built per application from AuthSettings.
    """

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._valid_keys: set[str] = set(keys)
        if self._valid_keys:
            logger.info(f"Loaded {len(self._valid_keys)} API key(s) from configuration")

    def add_key(self, key: str) -> None:
        """Add a valid API key."""
        self._valid_keys.add(key)

    def remove_key(self, key: str) -> None:
        """Remove an API key."""
        self._valid_keys.discard(key)

    def validate_key(self, key: str | None) -> bool:
        """
        Validate an API key.

        Uses constant-time comparison to prevent timing attacks.
        """
        if not key:
            return False

        return any(
            hmac.compare_digest(key.encode("utf-8"), valid_key.encode("utf-8"))
            for valid_key in self._valid_keys
        )

    @staticmethod
    def generate_key(prefix: str = "cip") -> str:
        """
        Generate a new secure API key.

        Format: {prefix}_{random_hex}
        Example: cip_a1b2c3d4e5f6...
        """
        random_bytes = secrets.token_bytes(32)
        key_hash = hashlib.sha256(random_bytes).hexdigest()[:48]
        return f"{prefix}_{key_hash}"

    @property
    def key_count(self) -> int:
        """Get number of registered API keys."""
        return len(self._valid_keys)


async def get_api_key(
    request: Request,
    api_key_query_value: str | None = Security(api_key_query),
) -> str:
    """
    Extract and validate API key from request.

    API key can be provided via:
    - Header: settings.auth.key_header_name (X-API-Key by default)
    - Query parameter: api_key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = request.app.state.settings

    if not settings.auth.auth_enabled:
        return "auth_disabled"

    header_name = settings.auth.key_header_name
    api_key = request.headers.get(header_name) or api_key_query_value

    if not api_key:
        logger.warning("API request without API key", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"API key is required. Provide via {header_name} header or api_key query parameter.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    manager: APIKeyManager = request.app.state.api_key_manager
    if not manager.validate_key(api_key):
        logger.warning("Invalid API key attempt", key_prefix=redact(api_key))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key
