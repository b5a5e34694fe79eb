"""Rolling one-minute request/token budgets keyed by Model Identity."""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Optional, Tuple

from ..providers.base import RateLimit
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60.0


class RateLimitRegistry:
    """
    Sliding-window rate limiter shared by concurrent completion calls.

    Each key (``provider.model_key``) owns a window of ``(timestamp, tokens)``
    entries.  ``try_acquire`` is the fast check-and-record step; ``acquire``
    loops over it, sleeping between checks.  The internal lock is only held
    inside ``try_acquire`` and never across an ``await``.

    Token cost is the request's ``max_tokens``, the worst case, since actual
    usage is not known until the response completes.  A cost larger than the
    whole per-minute budget is clamped to it, so such a request is admitted
    once the window is empty instead of waiting forever.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._windows: Dict[str, Deque[Tuple[float, int]]] = {}
        self._lock = threading.Lock()

    def _prune(self, window: Deque[Tuple[float, int]], now: float) -> None:
        while window and now - window[0][0] >= WINDOW_SECONDS:
            window.popleft()

    def try_acquire(self, key: str, limit: RateLimit, tokens: int) -> float:
        """
        Record a request if the budget allows it.

        Returns:
            0.0 if the request was recorded, otherwise the number of seconds
            until enough budget frees up.
        """
        cost = max(0, min(tokens, limit.tpm))
        with self._lock:
            now = self._clock()
            window = self._windows.setdefault(key, deque())
            self._prune(window, now)

            used_tokens = sum(t for _, t in window)
            if len(window) < limit.rpm and used_tokens + cost <= limit.tpm:
                window.append((now, cost))
                return 0.0

            ready_at = now
            excess_requests = len(window) - limit.rpm + 1
            if excess_requests > 0:
                ready_at = max(ready_at, window[excess_requests - 1][0] + WINDOW_SECONDS)

            excess_tokens = used_tokens + cost - limit.tpm
            if excess_tokens > 0:
                freed = 0
                for timestamp, spent in window:
                    freed += spent
                    if freed >= excess_tokens:
                        ready_at = max(ready_at, timestamp + WINDOW_SECONDS)
                        break

            return max(ready_at - now, 0.001)

    async def acquire(self, key: str, limit: RateLimit, tokens: int) -> float:
        """
        Wait until the budget for ``key`` allows one more request, then record it.

        Returns:
            Total seconds spent waiting.
        """
        waited = 0.0
        while True:
            delay = self.try_acquire(key, limit, tokens)
            if delay <= 0:
                return waited
            logger.debug(
                "Rate limit reached for %s (rpm=%s, tpm=%s); waiting %.2fs",
                key,
                limit.rpm,
                limit.tpm,
                delay,
            )
            await self._sleep(delay)
            waited += delay

    def usage(self, key: str) -> Tuple[int, int]:
        """Return ``(requests, tokens)`` recorded for ``key`` in the current window."""
        with self._lock:
            window = self._windows.get(key)
            if not window:
                return 0, 0
            self._prune(window, self._clock())
            return len(window), sum(t for _, t in window)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget recorded usage for ``key``, or for every key."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
