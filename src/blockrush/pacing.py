import asyncio
import time
from collections.abc import Awaitable, Callable

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class Ticker:
    """A pacing signal shared by several tasks.

    One slot is released every `1/rate` seconds and handed to whichever
    waiter asks next, so N tasks calling `wait()` together emit at `rate`
    combined. Ticks nobody waited for are not banked.
    """

    def __init__(self, rate: float, *, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.interval = 1.0 / rate
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._next: float | None = None
        self.ticks = 0

    async def wait(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._next is None:
                self._next = now + self.interval
            delay = self._next - now
            if delay > 0:
                await self._sleep(delay)
                now = self._clock()
            self._next = max(self._next, now) + self.interval
            self.ticks += 1


def now_ms() -> int:
    return time.time_ns() // 1_000_000
