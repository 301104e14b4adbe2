try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from basecamp_mcp.utils.concurrency import RequestSlots


@pytest.mark.asyncio
async def test_never_more_than_limit_in_flight() -> None:
    slots = RequestSlots(5)
    gate = asyncio.Event()
    active = 0
    peak = 0

    async def worker() -> None:
        nonlocal active, peak
        async with slots.slot():
            active += 1
            peak = max(peak, active)
            await gate.wait()
            active -= 1

    tasks = [asyncio.create_task(worker()) for _ in range(12)]
    await asyncio.sleep(0)

    assert slots.in_flight == 5
    assert slots.waiting == 7

    gate.set()
    await asyncio.gather(*tasks)

    assert peak == 5
    assert slots.in_flight == 0
    assert slots.waiting == 0


@pytest.mark.asyncio
async def test_waiters_are_admitted_in_arrival_order() -> None:
    slots = RequestSlots(1)
    await slots.acquire()
    order: list[int] = []

    async def waiter(index: int) -> None:
        async with slots.slot():
            order.append(index)

    tasks = [asyncio.create_task(waiter(i)) for i in range(4)]
    await asyncio.sleep(0)
    slots.release()
    await asyncio.gather(*tasks)

    assert order == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_cancelled_waiter_gives_up_its_place() -> None:
    slots = RequestSlots(1)
    await slots.acquire()

    task = asyncio.create_task(slots.acquire())
    await asyncio.sleep(0)
    assert slots.waiting == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert slots.waiting == 0
    slots.release()
    assert slots.in_flight == 0


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RequestSlots(0)
