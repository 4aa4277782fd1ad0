"""Replay guard: Redis-based deduplication of webhook deliveries.

- Delivery id is the push ``msg_id`` when present, else the signature
- Key pattern: webhook:seen:shopee:{delivery_id}, with a TTL
- Duplicates are acknowledged but never reprocessed
- If Redis is down the guard fails open and logs the failure
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from cip_shopee.utils.constants import DEFAULT_DEDUP_TTL_SECONDS, KEY_WEBHOOK_SEEN
from cip_shopee.utils.logging import get_logger


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class ReplayGuard:
    """Atomic check-and-mark of delivery ids using SET NX EX."""

    def __init__(
        self,
        redis: Redis,
        ttl_seconds: int = DEFAULT_DEDUP_TTL_SECONDS,
    ) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds

    async def is_duplicate(self, delivery_id: str | None) -> bool:
        """
        Mark a delivery id as seen and report whether it already was.

        Deliveries without an id cannot be deduplicated and always pass.
        """
        if not delivery_id:
            return False

        key = KEY_WEBHOOK_SEEN.format(delivery_id=delivery_id)
        try:
            was_set = await self._redis.set(key, "1", nx=True, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(
                "Redis unavailable for webhook dedup, allowing delivery",
                error=str(e),
            )
            return False

        if not was_set:
            logger.info("Duplicate webhook delivery", delivery_id=delivery_id)
            return True
        return False

    async def forget(self, delivery_id: str | None) -> None:
        """Drop a delivery id so a redelivery is processed again."""
        if not delivery_id:
            return
        try:
            await self._redis.delete(KEY_WEBHOOK_SEEN.format(delivery_id=delivery_id))
        except RedisError as e:
            logger.warning("Failed to clear webhook dedup key", error=str(e))
