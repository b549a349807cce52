import asyncio
import contextlib
import logging
import time
from typing import Optional


class RateLimiter:
    """
    FIFO dispatcher that lets callers through at most `calls_per_second` times a
    second, however many of them wait concurrently.

    A single dispatcher task hands out slots in arrival order. Two dispatches
    start at least `1 / calls_per_second` seconds apart, measured from the start
    of the previous dispatch, so a slow downstream response does not lower the
    rate. Being dispatched is the release: what the caller does afterwards,
    failing included, never holds up the next caller.

    Usage:
        limiter = RateLimiter(5)
        await limiter.acquire()
        response = await client.get(...)
    """

    def __init__(self, calls_per_second: float) -> None:
        if calls_per_second <= 0:
            raise ValueError("`calls_per_second` must be positive")

        self.calls_per_second = calls_per_second
        self.min_interval = 1.0 / calls_per_second

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._last_dispatch: Optional[float] = None
        self._closed = False

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _ensure_dispatcher(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()

        if self._loop is not loop:
            # queue and dispatcher of a previous event loop are unusable here
            if self._loop is not None:
                self.logger.debug("Event loop changed, restarting the dispatcher")
            self._loop = loop
            self._queue = asyncio.Queue()
            self._dispatcher = None

        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = loop.create_task(self._dispatch_loop(self._queue))

        return self._queue

    async def _wait_for_interval(self) -> None:
        if self._last_dispatch is None:
            return

        # the event loop may wake a sleeper slightly early, so re-check
        while True:
            wait = self.min_interval - (time.monotonic() - self._last_dispatch)
            if wait <= 0:
                return
            await asyncio.sleep(wait)

    async def _dispatch_loop(self, queue: asyncio.Queue) -> None:
        while True:
            waiter: asyncio.Future = await queue.get()

            if waiter.done():
                self.logger.debug("Skipping a caller cancelled while queued")
                continue

            try:
                await self._wait_for_interval()
            except asyncio.CancelledError:
                waiter.cancel()
                raise

            if waiter.done():
                continue

            self._last_dispatch = time.monotonic()
            waiter.set_result(None)

    async def acquire(self) -> None:
        """
        Waits for this caller's turn. Cancelling the wait gives the slot to the
        next caller without spending an interval.
        """
        if self._closed:
            raise RuntimeError("RateLimiter is closed")

        queue = self._ensure_dispatcher()

        waiter = asyncio.get_running_loop().create_future()
        queue.put_nowait(waiter)

        await waiter

    @property
    def pending(self) -> int:
        return 0 if self._queue is None else self._queue.qsize()

    async def aclose(self) -> None:
        """Stops the dispatcher. Callers still queued are cancelled."""
        self._closed = True

        if self._dispatcher is not None:
            self._dispatcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._dispatcher
            self._dispatcher = None

        if self._queue is not None:
            while not self._queue.empty():
                waiter = self._queue.get_nowait()
                if not waiter.done():
                    waiter.cancel()

    async def __aenter__(self) -> "RateLimiter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
