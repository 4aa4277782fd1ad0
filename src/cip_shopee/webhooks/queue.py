"""Per-shop serialization queue.

Events for one shop run strictly one at a time in enqueue order, while
different shops proceed concurrently. Each shop owns a slot holding the
completion signal of its most recently enqueued task; a new task waits
on that signal before running and becomes the new tail.

All slot bookkeeping happens synchronously between awaits, so on a single
event loop every enqueue/release is one critical section.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from cip_shopee.exceptions import ShopQueueBusyError
from cip_shopee.utils.constants import DEFAULT_MAX_QUEUE_DEPTH
from cip_shopee.utils.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ShopProcessingSlot:
    """In-flight state for one shop."""

    shop_id: str
    tail: asyncio.Future[None]
    pending: int = 0
    created_at: float = field(default_factory=time.monotonic)


class ShopSerialQueue:
    """
    Keyed FIFO executor with one active task per shop id.

    Features:
    - Strict per-shop ordering
    - Cross-shop concurrency
    - Bounded depth per shop (rejects with ShopQueueBusyError)
    - Failures reach only the failing task's handle
    """

    def __init__(self, max_depth_per_shop: int = DEFAULT_MAX_QUEUE_DEPTH) -> None:
        if max_depth_per_shop < 1:
            raise ValueError("max_depth_per_shop must be at least 1")
        self.max_depth_per_shop = max_depth_per_shop
        self._slots: dict[str, ShopProcessingSlot] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started: set[asyncio.Future[None]] = set()

    def enqueue(
        self,
        shop_id: str,
        task: Callable[[], Awaitable[T]],
    ) -> asyncio.Task[T]:
        """
        Schedule ``task`` behind every earlier task for ``shop_id``.

        Must be called from within a running event loop.

        Returns:
            Completion handle resolving to the task's result or exception

        Raises:
            ShopQueueBusyError: If the shop already has max_depth pending tasks
        """
        loop = asyncio.get_running_loop()
        slot = self._slots.get(shop_id)

        if slot is not None and slot.pending >= self.max_depth_per_shop:
            logger.warning(
                "Shop queue full, rejecting event",
                shop_id=shop_id,
                pending=slot.pending,
            )
            raise ShopQueueBusyError(shop_id, slot.pending)

        done: asyncio.Future[None] = loop.create_future()
        previous: asyncio.Future[None] | None = None

        if slot is None:
            slot = ShopProcessingSlot(shop_id=shop_id, tail=done)
            self._slots[shop_id] = slot
        else:
            previous = slot.tail
            slot.tail = done
            logger.debug(
                "Waiting for previous event of shop",
                shop_id=shop_id,
                pending=slot.pending,
            )
        slot.pending += 1

        handle = loop.create_task(self._run(shop_id, task, previous, done))
        self._tasks.add(handle)
        handle.add_done_callback(
            lambda h: self._on_task_done(h, shop_id, previous, done)
        )
        return handle

    async def _run(
        self,
        shop_id: str,
        task: Callable[[], Awaitable[T]],
        previous: asyncio.Future[None] | None,
        done: asyncio.Future[None],
    ) -> T:
        self._started.add(done)
        try:
            if previous is not None:
                # shield: a cancelled waiter must not cancel the shared signal
                await asyncio.shield(previous)
            return await task()
        finally:
            self._settle(shop_id, previous, done)

    def _on_task_done(
        self,
        handle: asyncio.Task[Any],
        shop_id: str,
        previous: asyncio.Future[None] | None,
        done: asyncio.Future[None],
    ) -> None:
        self._tasks.discard(handle)
        if done in self._started:
            self._started.discard(done)
            return
        # Cancelled before its first step: _run's finally never ran
        self._settle(shop_id, previous, done)

    def _settle(
        self,
        shop_id: str,
        previous: asyncio.Future[None] | None,
        done: asyncio.Future[None],
    ) -> None:
        if previous is not None and not previous.done():
            # Keep the chain intact behind previous
            previous.add_done_callback(lambda _f: self._release(shop_id, done))
        else:
            self._release(shop_id, done)

    def _release(self, shop_id: str, done: asyncio.Future[None]) -> None:
        if not done.done():
            done.set_result(None)

        slot = self._slots.get(shop_id)
        if slot is None:
            return
        slot.pending -= 1
        if slot.pending <= 0 and slot.tail is done:
            del self._slots[shop_id]

    def depth(self, shop_id: str) -> int:
        """Number of running plus waiting tasks for a shop."""
        slot = self._slots.get(shop_id)
        return slot.pending if slot else 0

    def is_busy(self, shop_id: str) -> bool:
        """Check if a shop currently has an active slot."""
        return shop_id in self._slots

    def processing_shops(self) -> list[str]:
        """Shop ids with an active slot."""
        return list(self._slots)

    def stats(self) -> dict[str, Any]:
        """Get queue statistics."""
        return {
            "active_slots": len(self._slots),
            "processing_shops": self.processing_shops(),
            "pending_tasks": sum(s.pending for s in self._slots.values()),
            "max_depth_per_shop": self.max_depth_per_shop,
        }

    async def drain(self) -> None:
        """Wait for every scheduled task to finish (used at shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
