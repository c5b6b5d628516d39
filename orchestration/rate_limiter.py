"""
Rate Limiter for LLM Calls
Keeps classifier traffic under the Gemini quota.
"""
import time
from dataclasses import dataclass, field
from collections import deque
from threading import Lock
from typing import Callable, Optional

from utils import get_logger

logger = get_logger(__name__)

MINUTE = 60.0
DAY = 86400.0


class RateLimitExceededError(Exception):
    """Raised when API rate limit is exceeded"""
    pass


@dataclass
class RateLimiter:
    """
    Sliding-window limiter for API calls.

    Gemini free tier limits:
    - 15 requests per minute (RPM)
    - 1500 requests per day (RPD)

    The wait is computed under the lock and slept outside it, so one
    throttled caller never blocks the others from reading stats.
    """
    max_requests_per_minute: int = 10  # Conservative limit
    max_requests_per_day: int = 1000   # Conservative limit
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep

    # Track request timestamps
    minute_requests: deque = field(default_factory=deque)
    day_requests: deque = field(default_factory=deque)

    # Thread safety
    lock: Lock = field(default_factory=Lock)

    def _prune(self, now: float) -> None:
        while self.minute_requests and self.minute_requests[0] <= now - MINUTE:
            self.minute_requests.popleft()
        while self.day_requests and self.day_requests[0] <= now - DAY:
            self.day_requests.popleft()

    def acquire(self, deadline: Optional[float] = None) -> float:
        """
        Reserve one request slot, waiting for the minute window if needed.
        Returns the number of seconds waited. Raises RateLimitExceededError
        when the daily quota is spent or the wait would pass the deadline.
        """
        waited = 0.0
        while True:
            with self.lock:
                now = self.clock()
                self._prune(now)

                if len(self.day_requests) >= self.max_requests_per_day:
                    logger.error("Daily rate limit reached! Cannot make more API calls today.")
                    raise RateLimitExceededError("Daily API quota exceeded. Please try again tomorrow.")

                if len(self.minute_requests) < self.max_requests_per_minute:
                    self.minute_requests.append(now)
                    self.day_requests.append(now)
                    return waited

                wait_time = max(0.0, self.minute_requests[0] + MINUTE - now)

            if deadline is not None and self.clock() + wait_time >= deadline:
                raise RateLimitExceededError(f"Rate limit wait of {wait_time:.1f}s exceeds the request deadline")

            logger.warning(f"Rate limit: waiting {wait_time:.1f}s (minute limit)")
            self.sleep(wait_time)
            waited += wait_time

    def get_usage_stats(self) -> dict:
        """Get current usage statistics"""
        with self.lock:
            self._prune(self.clock())
            minute_count = len(self.minute_requests)
            day_count = len(self.day_requests)

        return {
            "requests_this_minute": minute_count,
            "requests_today": day_count,
            "minute_limit": self.max_requests_per_minute,
            "day_limit": self.max_requests_per_day,
            "minute_remaining": max(0, self.max_requests_per_minute - minute_count),
            "day_remaining": max(0, self.max_requests_per_day - day_count),
        }
