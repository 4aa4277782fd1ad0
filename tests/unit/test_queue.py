"""Unit tests for the per-shop serialization queue."""

from __future__ import annotations

import asyncio

import pytest

from cip_shopee.exceptions import ShopQueueBusyError
from cip_shopee.webhooks.queue import ShopSerialQueue


class TestOrdering:
    """Tests for per-shop ordering and cross-shop concurrency."""

    async def test_same_shop_waits_for_previous_completion(self) -> None:
        queue = ShopSerialQueue()
        completed = 0
        completed_when_b_started: int | None = None
        release_a = asyncio.Event()

        async def task_a() -> str:
            nonlocal completed
            await release_a.wait()
            completed += 1
            return "a"

        async def task_b() -> str:
            nonlocal completed_when_b_started
            completed_when_b_started = completed
            return "b"

        handle_a = queue.enqueue("S1", task_a)
        handle_b = queue.enqueue("S1", task_b)

        await asyncio.sleep(0.05)
        assert completed_when_b_started is None

        release_a.set()
        assert await asyncio.gather(handle_a, handle_b) == ["a", "b"]
        assert completed_when_b_started == 1

    async def test_same_shop_preserves_enqueue_order(self) -> None:
        queue = ShopSerialQueue()
        order: list[int] = []

        def make_task(i: int):
            async def task() -> None:
                # Later tasks sleep less; order must still hold
                await asyncio.sleep(0.001 * (10 - i))
                order.append(i)

            return task

        handles = [queue.enqueue("S1", make_task(i)) for i in range(10)]
        await asyncio.gather(*handles)

        assert order == list(range(10))

    async def test_never_two_active_for_same_shop(self) -> None:
        queue = ShopSerialQueue()
        active = 0
        max_active = 0

        async def task() -> None:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.001)
            active -= 1

        await asyncio.gather(*(queue.enqueue("S1", task) for _ in range(20)))
        assert max_active == 1

    async def test_different_shops_run_concurrently(self) -> None:
        queue = ShopSerialQueue()
        in_flight: set[str] = set()
        both_in_flight = asyncio.Event()
        release = asyncio.Event()

        def make_task(shop_id: str):
            async def task() -> None:
                in_flight.add(shop_id)
                if in_flight == {"S1", "S2"}:
                    both_in_flight.set()
                await release.wait()
                in_flight.discard(shop_id)

            return task

        handles = [queue.enqueue("S1", make_task("S1")), queue.enqueue("S2", make_task("S2"))]

        await asyncio.wait_for(both_in_flight.wait(), timeout=1)
        assert sorted(queue.processing_shops()) == ["S1", "S2"]

        release.set()
        await asyncio.gather(*handles)


class TestFailures:
    """Tests for failure isolation."""

    async def test_failure_reaches_only_its_own_handle(self) -> None:
        queue = ShopSerialQueue()
        ran: list[str] = []

        async def failing() -> None:
            ran.append("a")
            raise RuntimeError("boom")

        async def succeeding() -> str:
            ran.append("b")
            return "ok"

        handle_a = queue.enqueue("S1", failing)
        handle_b = queue.enqueue("S1", succeeding)

        with pytest.raises(RuntimeError, match="boom"):
            await handle_a
        assert await handle_b == "ok"
        assert ran == ["a", "b"]

    async def test_slot_released_after_failure(self) -> None:
        queue = ShopSerialQueue()

        async def failing() -> None:
            raise ValueError("bad")

        handle = queue.enqueue("S1", failing)
        with pytest.raises(ValueError):
            await handle

        assert queue.is_busy("S1") is False
        assert queue.depth("S1") == 0

    async def test_cancelled_waiter_keeps_chain_serialized(self) -> None:
        queue = ShopSerialQueue()
        release_a = asyncio.Event()
        a_done = False
        c_saw_a_done: bool | None = None

        async def task_a() -> None:
            nonlocal a_done
            await release_a.wait()
            a_done = True

        async def task_b() -> None:
            pass

        async def task_c() -> None:
            nonlocal c_saw_a_done
            c_saw_a_done = a_done

        handle_a = queue.enqueue("S1", task_a)
        handle_b = queue.enqueue("S1", task_b)
        handle_c = queue.enqueue("S1", task_c)
        await asyncio.sleep(0)

        handle_b.cancel()
        await asyncio.sleep(0.01)
        assert c_saw_a_done is None

        release_a.set()
        await asyncio.gather(handle_a, handle_c)
        assert c_saw_a_done is True

    async def test_cancel_before_start_releases_slot(self) -> None:
        queue = ShopSerialQueue(max_depth_per_shop=1)

        async def task() -> str:
            return "ran"

        handle = queue.enqueue("S1", task)
        handle.cancel()
        with pytest.raises(asyncio.CancelledError):
            await handle
        await asyncio.sleep(0)

        assert queue.depth("S1") == 0
        assert queue.is_busy("S1") is False
        assert await queue.enqueue("S1", task) == "ran"

    async def test_cancel_before_start_keeps_chain_moving(self) -> None:
        queue = ShopSerialQueue()
        release_a = asyncio.Event()
        order: list[str] = []

        async def task_a() -> None:
            await release_a.wait()
            order.append("a")

        async def task_b() -> None:
            order.append("b")

        async def task_c() -> None:
            order.append("c")

        handle_a = queue.enqueue("S1", task_a)
        handle_b = queue.enqueue("S1", task_b)
        handle_b.cancel()
        handle_c = queue.enqueue("S1", task_c)

        await asyncio.sleep(0.01)
        assert order == []

        release_a.set()
        await asyncio.wait_for(asyncio.gather(handle_a, handle_c), timeout=1)
        await asyncio.sleep(0)

        assert order == ["a", "c"]
        assert handle_b.cancelled()
        assert queue.is_busy("S1") is False


class TestBackpressure:
    """Tests for bounded per-shop depth."""

    async def test_rejects_when_depth_exceeded(self) -> None:
        queue = ShopSerialQueue(max_depth_per_shop=2)
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        handles = [queue.enqueue("S1", blocked), queue.enqueue("S1", blocked)]

        with pytest.raises(ShopQueueBusyError) as exc_info:
            queue.enqueue("S1", blocked)
        assert exc_info.value.shop_id == "S1"
        assert exc_info.value.depth == 2

        # Other shops are unaffected
        handles.append(queue.enqueue("S2", blocked))

        release.set()
        await asyncio.gather(*handles)

    async def test_accepts_again_after_draining(self) -> None:
        queue = ShopSerialQueue(max_depth_per_shop=1)

        async def noop() -> None:
            pass

        await queue.enqueue("S1", noop)
        await queue.enqueue("S1", noop)

    def test_invalid_depth(self) -> None:
        with pytest.raises(ValueError):
            ShopSerialQueue(max_depth_per_shop=0)


class TestStats:
    """Tests for slot bookkeeping and statistics."""

    async def test_slot_lifecycle(self) -> None:
        queue = ShopSerialQueue(max_depth_per_shop=5)
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        assert queue.is_busy("S1") is False
        handles = [queue.enqueue("S1", blocked) for _ in range(3)]

        stats = queue.stats()
        assert stats["active_slots"] == 1
        assert stats["processing_shops"] == ["S1"]
        assert stats["pending_tasks"] == 3
        assert stats["max_depth_per_shop"] == 5

        release.set()
        await asyncio.gather(*handles)

        assert queue.stats()["active_slots"] == 0
        assert queue.depth("S1") == 0

    async def test_drain_waits_for_all_tasks(self) -> None:
        queue = ShopSerialQueue()
        finished: list[str] = []

        def make_task(shop_id: str):
            async def task() -> None:
                await asyncio.sleep(0.01)
                finished.append(shop_id)

            return task

        for shop_id in ("S1", "S1", "S2"):
            queue.enqueue(shop_id, make_task(shop_id))

        await queue.drain()
        assert sorted(finished) == ["S1", "S1", "S2"]
