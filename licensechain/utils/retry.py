"""Backoff schedule for retried API requests."""

import random
from typing import Optional


MAX_DELAY = 30.0
JITTER = 0.1


def exponential_backoff(attempt: int, base_delay: float = 1.0) -> float:
    """
    Delay before retry number ``attempt`` (1-indexed).

    Doubles from ``base_delay`` up to MAX_DELAY, then spreads the
    result by up to JITTER either way so clients retrying together
    drift apart.
    """
    ceiling = min(base_delay * 2 ** max(attempt - 1, 0), MAX_DELAY)
    return ceiling * random.uniform(1 - JITTER, 1 + JITTER)


def retry_delay(attempt: int, base_delay: float, retry_after: Optional[float] = None) -> float:
    """Backoff delay, stretched to honour a server supplied Retry-After."""
    delay = exponential_backoff(attempt, base_delay)
    if retry_after is None:
        return delay
    return max(delay, min(float(retry_after), MAX_DELAY))
