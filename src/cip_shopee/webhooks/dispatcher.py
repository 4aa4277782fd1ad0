"""Webhook event dispatcher: routes validated events to business collaborators.

Event codes:
- 0 TEST_PUSH: connectivity check, acknowledge only
- 1 SHOP_AUTHORIZATION: record the authorization result for a shop
- 4 ORDER_STATUS_UPDATE: forward an order status change to order sync
- 5 SHOP_DEAUTHORIZATION: revoke a shop's authorization
- anything else: logged and acknowledged without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from cip_shopee.exceptions import (
    DownstreamFailureError,
    InvalidEventPayloadError,
    UnknownEventCode,
)
from cip_shopee.utils.constants import EventCode
from cip_shopee.utils.logging import get_logger
from cip_shopee.webhooks.models import DispatchResult


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from cip_shopee.webhooks.models import ParsedEvent

logger = get_logger(__name__)


class ShopAuthorizationStore(Protocol):
    """Persists whether a shop has authorized the app."""

    async def record_shop_authorization(self, shop_id: int, success: bool) -> None: ...

    async def revoke_shop_authorization(self, shop_id: int) -> None: ...


class OrderSync(Protocol):
    """Applies order status changes pushed by the marketplace."""

    async def apply_order_update(
        self, order_sn: str, status: str, update_time: int
    ) -> None: ...


def _require(data: dict[str, Any], key: str, code: int) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise InvalidEventPayloadError(f"Event code {code} is missing '{key}'")
    return value


class EventDispatcher:
    """Routes ParsedEvents by code to the matching handler."""

    def __init__(
        self,
        authorization_store: ShopAuthorizationStore,
        order_sync: OrderSync,
    ) -> None:
        self._authorization_store = authorization_store
        self._order_sync = order_sync
        self._handlers: dict[int, Callable[[ParsedEvent], Awaitable[DispatchResult]]] = {
            EventCode.TEST_PUSH: self._handle_test_push,
            EventCode.SHOP_AUTHORIZATION: self._handle_shop_authorization,
            EventCode.ORDER_STATUS_UPDATE: self._handle_order_update,
            EventCode.SHOP_DEAUTHORIZATION: self._handle_shop_deauthorization,
        }

    @property
    def supported_codes(self) -> list[int]:
        return sorted(self._handlers)

    async def dispatch(self, event: ParsedEvent) -> DispatchResult:
        """
        Handle one event.

        Unknown codes never raise; they are logged and reported as unhandled.

        Raises:
            InvalidEventPayloadError: Event lacks fields its handler needs
            DownstreamFailureError: A collaborator call failed
        """
        handler = self._handlers.get(event.code)
        if handler is None:
            unknown = UnknownEventCode(event.code)
            logger.warning(
                "Unhandled webhook event code",
                code=event.code,
                shop_id=event.shop_id,
                reason=str(unknown),
            )
            return DispatchResult(code=event.code, action="ignored", handled=False)

        return await handler(event)

    async def _call(self, collaborator: str, awaitable: Awaitable[None]) -> None:
        try:
            await awaitable
        except Exception as e:
            raise DownstreamFailureError(collaborator, e) from e

    @staticmethod
    def _shop_id(event: ParsedEvent) -> int:
        raw = event.data.get("shop_id", event.shop_id)
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise InvalidEventPayloadError(
                f"Event code {event.code} has no valid shop_id: {raw!r}"
            ) from e

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _handle_test_push(self, event: ParsedEvent) -> DispatchResult:
        logger.info("Test push received", shop_id=event.shop_id)
        return DispatchResult(code=event.code, action="acknowledged")

    async def _handle_shop_authorization(self, event: ParsedEvent) -> DispatchResult:
        shop_id = self._shop_id(event)
        success = _require(event.data, "success", event.code)
        try:
            success = bool(int(success))
        except (TypeError, ValueError) as e:
            raise InvalidEventPayloadError(
                f"Event code {event.code} has non-integer success flag"
            ) from e

        logger.info("Shop authorization event", shop_id=shop_id, success=success)
        await self._call(
            "authorization_store",
            self._authorization_store.record_shop_authorization(shop_id, success),
        )
        return DispatchResult(code=event.code, action="shop_authorization_recorded")

    async def _handle_order_update(self, event: ParsedEvent) -> DispatchResult:
        order_sn = str(_require(event.data, "ordersn", event.code))
        status = str(_require(event.data, "status", event.code))
        update_time = _require(event.data, "update_time", event.code)
        try:
            update_time = int(update_time)
        except (TypeError, ValueError) as e:
            raise InvalidEventPayloadError(
                f"Event code {event.code} has non-integer update_time"
            ) from e

        logger.info(
            "Order status update",
            shop_id=event.shop_id,
            order_sn=order_sn,
            status=status,
        )
        await self._call(
            "order_sync",
            self._order_sync.apply_order_update(order_sn, status, update_time),
        )
        return DispatchResult(code=event.code, action="order_update_applied")

    async def _handle_shop_deauthorization(self, event: ParsedEvent) -> DispatchResult:
        shop_id = self._shop_id(event)

        logger.info("Shop deauthorization event", shop_id=shop_id)
        await self._call(
            "authorization_store",
            self._authorization_store.revoke_shop_authorization(shop_id),
        )
        return DispatchResult(code=event.code, action="shop_authorization_revoked")
