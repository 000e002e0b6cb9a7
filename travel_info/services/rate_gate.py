"""Minimum-interval gate shared by the rate-limited geocoding providers."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import structlog

from travel_info.core.config import settings

logger = structlog.get_logger(__name__)


class RateGate:
    """
    Spaces acquisitions at least ``min_interval`` seconds apart.

    The lock is held across "compute wait, sleep, record" so two callers can
    never both read the same stale timestamp and skip the wait.

    Example:
        >>> gate = RateGate(min_interval=1.2)
        >>> await gate.acquire()  # immediate
        >>> await gate.acquire()  # suspends ~1.2s
    """

    def __init__(
        self,
        min_interval: float = settings.GEOCODE_MIN_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._interval = max(min_interval, 0.0)
        self._last_acquired: Optional[float] = None
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def last_acquired(self) -> Optional[float]:
        return self._last_acquired

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._last_acquired is not None:
                wait = self._last_acquired + self._interval - now
                if wait > 0:
                    logger.debug("rate_gate_wait", wait_s=round(wait, 3))
                    await self._sleep(wait)
                    now = self._clock()
            self._last_acquired = now

    def reset(self) -> None:
        """Forget the last acquisition so the next one is immediate."""
        self._last_acquired = None
