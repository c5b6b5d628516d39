"""
Retry policy for LLM calls
Only the provider call is retried; collaborator fetches fail fast.
"""
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from google.genai import errors as genai_errors

from utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


def is_transient(error: Exception) -> bool:
    """Rate limits, server errors and dropped connections are worth retrying"""
    if isinstance(error, genai_errors.APIError):
        return getattr(error, "code", None) in RETRYABLE_STATUS
    return isinstance(error, (ConnectionError, TimeoutError))


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    jitter: float = 0.1
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    def backoff(self, attempt: int) -> float:
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return delay + random.uniform(0, self.jitter)

    def call(self, fn: Callable[[], T], deadline: Optional[float] = None) -> T:
        """
        Call fn, retrying transient errors with capped exponential backoff.
        Gives up early when the next wait would pass the deadline.
        """
        attempt = 1
        while True:
            try:
                return fn()
            except Exception as e:
                if attempt >= self.max_attempts or not is_transient(e):
                    raise
                delay = self.backoff(attempt)
                if deadline is not None and self.clock() + delay >= deadline:
                    logger.warning(f"Not retrying LLM call, deadline too close: {e}")
                    raise
                logger.warning(f"LLM call failed (attempt {attempt}/{self.max_attempts}), retrying in {delay:.2f}s: {e}")
                self.sleep(delay)
                attempt += 1
