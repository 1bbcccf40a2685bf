"""
Trading Gateway - Outbound Rate Limiter.

============================================================
PURPOSE
============================================================
Process-wide gate on outbound call frequency.

GUARANTEE:
    No two returns from throttle() are closer together than
    min_interval_seconds (default 100ms, i.e. 10 calls/s).

The check-and-update of the last call time happens under an
asyncio.Lock, so concurrent callers queue instead of racing
through. Waiting suspends only the calling task.

============================================================
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import RateLimitConfig


logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Minimum-interval rate limiter.

    Clock and sleep are injectable for tests.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Initialize rate limiter.

        Args:
            config: Rate limit configuration
            clock: Monotonic clock in seconds
            sleep: Coroutine function used to wait
        """
        self._config = config or RateLimitConfig()
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()
        self._last_request_at: Optional[float] = None

        # Stats
        self._total_calls = 0
        self._total_waits = 0
        self._total_wait_seconds = 0.0

    @property
    def min_interval(self) -> float:
        return self._config.min_interval_seconds

    def configure(self, config: RateLimitConfig) -> None:
        """Replace the interval; takes effect from the next throttle()."""
        self._config = config

    async def throttle(self) -> None:
        """Wait until the next outbound call is allowed, then claim the slot."""
        async with self._lock:
            if self._last_request_at is not None:
                wait = self._last_request_at + self.min_interval - self._clock()
                if wait > 0:
                    self._total_waits += 1
                    self._total_wait_seconds += wait
                    await self._sleep(wait)

            self._last_request_at = self._clock()
            self._total_calls += 1

    def get_status(self) -> Dict[str, Any]:
        """Get current rate limiter statistics."""
        return {
            "min_interval_seconds": self.min_interval,
            "total_calls": self._total_calls,
            "total_waits": self._total_waits,
            "total_wait_seconds": round(self._total_wait_seconds, 6),
            "last_request_at": self._last_request_at,
        }


# Global rate limiter instance
_shared_rate_limiter: Optional[RateLimiter] = None


def get_shared_rate_limiter(config: Optional[RateLimitConfig] = None) -> RateLimiter:
    """
    Get the process-wide rate limiter.

    A config whose interval differs from the current one replaces it,
    so the limiter follows the most recently built gateway.
    """
    global _shared_rate_limiter
    if _shared_rate_limiter is None:
        _shared_rate_limiter = RateLimiter(config)
        logger.debug(f"Created shared rate limiter ({_shared_rate_limiter.min_interval}s)")
    elif config is not None and config.min_interval_seconds != _shared_rate_limiter.min_interval:
        logger.info(
            f"Shared rate limiter interval {_shared_rate_limiter.min_interval}s "
            f"-> {config.min_interval_seconds}s"
        )
        _shared_rate_limiter.configure(config)
    return _shared_rate_limiter
