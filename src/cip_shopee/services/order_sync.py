"""Redis-backed order status synchronization."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cip_shopee.utils.constants import KEY_ORDER
from cip_shopee.utils.logging import get_logger


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class RedisOrderSync:
    """
    Tracks the latest known status of each order.

    Pushes can arrive late; an update whose ``update_time`` is older than
    the stored one is ignored so the newest status always wins.
    """

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    def _make_key(self, order_sn: str) -> str:
        return KEY_ORDER.format(order_sn=order_sn)

    async def apply_order_update(
        self, order_sn: str, status: str, update_time: int
    ) -> None:
        """Store an order status change unless a newer one is already stored."""
        key = self._make_key(order_sn)
        stored_time = await self._redis.hget(key, "update_time")

        if stored_time is not None and int(stored_time) > update_time:
            logger.info(
                "Ignoring out-of-date order update",
                order_sn=order_sn,
                status=status,
                update_time=update_time,
                stored_update_time=int(stored_time),
            )
            return

        await self._redis.hset(
            key,
            mapping={"status": status, "update_time": str(update_time)},
        )
        logger.info("Order status updated", order_sn=order_sn, status=status)

    async def get_order(self, order_sn: str) -> dict[str, Any] | None:
        """Get the latest status for an order, or None if unknown."""
        data = await self._redis.hgetall(self._make_key(order_sn))
        if not data:
            return None
        return {
            "order_sn": order_sn,
            "status": data["status"],
            "update_time": int(data["update_time"]),
        }
