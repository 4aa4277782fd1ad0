"""Business collaborators consumed by the webhook dispatcher."""

from cip_shopee.services.order_sync import RedisOrderSync
from cip_shopee.services.shop_store import RedisShopAuthorizationStore


__all__ = ["RedisOrderSync", "RedisShopAuthorizationStore"]
