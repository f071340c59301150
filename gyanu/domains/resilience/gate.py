"""
Concurrency Gate - Process-wide ceiling on in-flight model calls.

Callers that find the gate full queue in FIFO order. A released slot is
handed directly to the longest-waiting caller, so a burst of new arrivals
can never overtake the queue.

Usage:
    gate = ConcurrencyGate(capacity=5, timeout=30.0)
    async with gate.slot():
        response = await model.invoke(messages)
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from gyanu.config.errors import GateTimeoutError

from .models import GateMetrics

logger = logging.getLogger(__name__)

__all__ = ["ConcurrencyGate"]


class ConcurrencyGate:
    """Bounded, FIFO-fair admission gate for asyncio tasks."""

    def __init__(self, capacity: int = 5, timeout: float = 30.0) -> None:
        """
        Initialize gate.

        Args:
            capacity: Maximum concurrent holders
            timeout: Default seconds to wait for a slot
        """
        if capacity < 1:
            raise ValueError(f"Gate capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._timeout = timeout
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

        self._peak_active = 0
        self._total_acquired = 0
        self._total_timeouts = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self, timeout: float | None = None) -> None:
        """
        Wait for a free slot.

        Raises:
            GateTimeoutError: No slot was handed over before the deadline
        """
        limit = self._timeout if timeout is None else timeout

        if self._active < self._capacity and not self.waiting:
            self._active += 1
            self._record_acquire()
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("Gate full (%d/%d), queued at position %d", self._active, self._capacity, self.waiting)

        try:
            await asyncio.wait_for(asyncio.shield(waiter), limit)
        except asyncio.TimeoutError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over as the deadline expired
                return
            self._abandon(waiter)
            self._total_timeouts += 1
            logger.warning("Gate timeout after %.1fs (%d active, %d waiting)", limit, self._active, self.waiting)
            raise GateTimeoutError(limit) from None
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                self.release()
            else:
                self._abandon(waiter)
            raise

    def release(self) -> None:
        """Free a slot, handing it to the oldest live waiter if any."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                self._record_acquire()
                return

        if self._active == 0:
            raise RuntimeError("ConcurrencyGate.release() called more times than acquire()")
        self._active -= 1

    @asynccontextmanager
    async def slot(self, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block."""
        await self.acquire(timeout)
        try:
            yield
        finally:
            self.release()

    def metrics(self) -> GateMetrics:
        return GateMetrics(
            capacity=self._capacity,
            active=self._active,
            waiting=self.waiting,
            peak_active=self._peak_active,
            total_acquired=self._total_acquired,
            total_timeouts=self._total_timeouts,
        )

    def _record_acquire(self) -> None:
        self._total_acquired += 1
        self._peak_active = max(self._peak_active, self._active)

    def _abandon(self, waiter: asyncio.Future[None]) -> None:
        waiter.cancel()
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
