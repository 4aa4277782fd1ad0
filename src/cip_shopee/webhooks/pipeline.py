"""Webhook ingestion pipeline.

validate -> replay check -> per-shop queue -> dispatch

Submitting an envelope returns a DeliveryReceipt as soon as the event is
accepted into its shop's queue. Processing finishes later; its outcome is
logged, optionally persisted, and available on ``receipt.outcome``.
"""

from __future__ import annotations

import time
from functools import partial
from typing import TYPE_CHECKING

from cip_shopee.exceptions import ShopQueueBusyError
from cip_shopee.utils.constants import SIGNATURE_HEADER
from cip_shopee.utils.logging import get_logger
from cip_shopee.webhooks.models import (
    DeliveryReceipt,
    DeliveryStatus,
    OutcomeStatus,
    ProcessingOutcome,
)


if TYPE_CHECKING:
    from cip_shopee.storage.event_logger import WebhookEventLogger
    from cip_shopee.webhooks.dispatcher import EventDispatcher
    from cip_shopee.webhooks.models import ParsedEvent, WebhookEnvelope
    from cip_shopee.webhooks.queue import ShopSerialQueue
    from cip_shopee.webhooks.replay import ReplayGuard
    from cip_shopee.webhooks.signature import SignatureValidator

logger = get_logger(__name__)


class WebhookPipeline:
    """Wires validator, replay guard, shop queue and dispatcher together."""

    def __init__(
        self,
        validator: SignatureValidator,
        queue: ShopSerialQueue,
        dispatcher: EventDispatcher,
        replay_guard: ReplayGuard | None = None,
        event_logger: WebhookEventLogger | None = None,
    ) -> None:
        self.validator = validator
        self.queue = queue
        self.dispatcher = dispatcher
        self.replay_guard = replay_guard
        self.event_logger = event_logger
        self._processed = 0
        self._failed = 0
        self._duplicates = 0

    async def submit(self, envelope: WebhookEnvelope) -> DeliveryReceipt:
        """
        Validate an envelope and queue its event for processing.

        Raises:
            MissingCredentialsError, InvalidSignatureError: Authentication failed
            StaleRequestError: Timestamp outside tolerance window
            InvalidPayloadError: Body is not a valid event
            ShopQueueBusyError: The event's shop queue is full
        """
        event = self.validator.validate(envelope)
        delivery_id = event.msg_id or envelope.header(SIGNATURE_HEADER)

        if self.replay_guard and await self.replay_guard.is_duplicate(delivery_id):
            self._duplicates += 1
            return DeliveryReceipt(status=DeliveryStatus.DUPLICATE, event=event)

        try:
            handle = self.queue.enqueue(
                event.shop_id, partial(self._process, event, delivery_id)
            )
        except ShopQueueBusyError:
            if self.replay_guard:
                await self.replay_guard.forget(delivery_id)
            raise

        logger.info(
            "Webhook accepted",
            code=event.code,
            shop_id=event.shop_id,
            msg_id=event.msg_id,
            queue_depth=self.queue.depth(event.shop_id),
        )
        return DeliveryReceipt(
            status=DeliveryStatus.ACCEPTED, event=event, outcome=handle
        )

    async def _process(
        self, event: ParsedEvent, delivery_id: str | None
    ) -> ProcessingOutcome:
        started = time.monotonic()
        try:
            result = await self.dispatcher.dispatch(event)
        except Exception as e:
            outcome = ProcessingOutcome(
                status=OutcomeStatus.FAILED,
                code=event.code,
                shop_id=event.shop_id,
                error=f"{type(e).__name__}: {e}",
                duration_ms=(time.monotonic() - started) * 1000,
            )
            self._failed += 1
            logger.error(
                "Webhook processing failed",
                code=event.code,
                shop_id=event.shop_id,
                error=outcome.error,
                exc_info=True,
            )
            # Let a redelivery of this event be processed again
            if self.replay_guard:
                await self.replay_guard.forget(delivery_id)
        else:
            outcome = ProcessingOutcome(
                status=OutcomeStatus.PROCESSED,
                code=event.code,
                shop_id=event.shop_id,
                action=result.action,
                duration_ms=(time.monotonic() - started) * 1000,
            )
            self._processed += 1
            logger.info(
                "Webhook processed",
                code=event.code,
                shop_id=event.shop_id,
                action=result.action,
                handled=result.handled,
                duration_ms=round(outcome.duration_ms, 2),
            )

        if self.event_logger:
            await self.event_logger.log_outcome(event, outcome)
        return outcome

    def stats(self) -> dict[str, int | dict]:
        """Get pipeline counters and queue statistics."""
        return {
            "processed": self._processed,
            "failed": self._failed,
            "duplicates": self._duplicates,
            "queue": self.queue.stats(),
        }

    async def close(self) -> None:
        """Wait for in-flight events to finish."""
        await self.queue.drain()
