# src/alert/rate_limiter.py
import asyncio
import logging
import time
from collections import deque

logger = logging.getLogger(__name__)


class RateLimiter:
    """滑动窗口限流: 任意 window_seconds 内最多放行 max_requests 次

    等待者按 FIFO 顺序放行 (asyncio.Lock 的等待队列是先进先出的)。
    """

    def __init__(self, max_requests: int = 5, window_seconds: float = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        self._prune(time.monotonic())
        return len(self._timestamps)

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = time.monotonic()
                self._prune(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return

                wait = self.window_seconds - (now - self._timestamps[0])
                logger.debug(f"Rate limit reached, waiting {wait:.1f}s for a slot")
                await asyncio.sleep(wait)
