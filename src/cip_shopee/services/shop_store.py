"""Redis-backed shop authorization store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from cip_shopee.utils.constants import KEY_SHOP_AUTH
from cip_shopee.utils.logging import get_logger


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class RedisShopAuthorizationStore:
    """
    Keeps the authorization state of each connected shop.

    One hash per shop (``shop:auth:{shop_id}``) with the fields
    ``authorized`` ("1"/"0"), ``updated_at`` (ISO timestamp) and
    ``revoked_at`` once the seller disconnects. Redis errors propagate
    so the dispatcher can report them as downstream failures.
    """

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    def _make_key(self, shop_id: int) -> str:
        return KEY_SHOP_AUTH.format(shop_id=shop_id)

    async def record_shop_authorization(self, shop_id: int, success: bool) -> None:
        """Store the outcome of a shop authorization push."""
        now = datetime.now(timezone.utc).isoformat()
        await self._redis.hset(
            self._make_key(shop_id),
            mapping={"authorized": "1" if success else "0", "updated_at": now},
        )
        logger.info("Shop authorization recorded", shop_id=shop_id, success=success)

    async def revoke_shop_authorization(self, shop_id: int) -> None:
        """Mark a shop as no longer authorized."""
        now = datetime.now(timezone.utc).isoformat()
        await self._redis.hset(
            self._make_key(shop_id),
            mapping={"authorized": "0", "updated_at": now, "revoked_at": now},
        )
        logger.info("Shop authorization revoked", shop_id=shop_id)

    async def get(self, shop_id: int) -> dict[str, Any] | None:
        """Get the stored state for a shop, or None if never seen."""
        data = await self._redis.hgetall(self._make_key(shop_id))
        if not data:
            return None
        return {**data, "authorized": data.get("authorized") == "1"}

    async def is_authorized(self, shop_id: int) -> bool:
        """Check if a shop is currently authorized."""
        return await self._redis.hget(self._make_key(shop_id), "authorized") == "1"
