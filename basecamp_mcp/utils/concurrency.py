"""Counting semaphore with FIFO admission and direct slot hand-off."""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque


class RequestSlots:
    """Bound the number of in-flight requests for one gateway instance.

    Releasing a slot while callers are queued passes it straight to the
    oldest waiter, so the in-flight count never dips and admission order
    matches arrival order.
    """

    def __init__(self, limit: int = 5) -> None:
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1.")
        self._limit = limit
        self._in_flight = 0
        self._waiters: Deque[asyncio.Future[None]] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def acquire(self) -> None:
        if self._in_flight < self._limit and not self._waiters:
            self._in_flight += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over before the cancellation landed.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._in_flight <= 0:
            raise RuntimeError("release() called without a matching acquire().")
        self._in_flight -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()


__all__ = ["RequestSlots"]
