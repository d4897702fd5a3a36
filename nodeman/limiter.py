"""
Fixed-capacity gate bounding how many resource tasks run at once.
"""

import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    Counting gate with FIFO admission.

    A finishing task hands its slot straight to the oldest waiter, so a new
    caller can never slip in ahead of the queue or push the count over
    capacity.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._running = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def in_flight(self) -> int:
        return self._running

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Run a task once a slot is free.

        Args:
            task: Zero-argument callable returning an awaitable

        Returns:
            Whatever the task returns; its exception propagates after the slot is freed
        """
        await self._acquire()
        try:
            return await task()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._running < self.capacity and not self._waiters:
            self._running += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over before the cancellation landed.
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot passes to the waiter; the running count stays the same.
                waiter.set_result(None)
                return
        self._running -= 1
