from __future__ import annotations

import random
from typing import Optional


class RetryStrategy:
    """Decides whether a request should be attempted again and after how long.

    ``should_retry_after`` receives the zero-based attempt index and returns
    the number of seconds to wait before making that attempt, or ``None`` to
    give up. Attempt 0 is the initial request, so most strategies return 0
    for it. Any object exposing the same method can be passed to the client.
    """

    def should_retry_after(self, attempt: int) -> Optional[float]:
        raise NotImplementedError("Subclasses must implement this method")


class JitteredBackoff(RetryStrategy):
    """Exponential backoff: ``2 ** attempt`` seconds minus 1 to 1000 ms of random jitter.

    The jitter keeps every wait strictly below ``2 ** attempt`` seconds and
    staggers clients that failed at the same moment. The first attempt is
    never delayed and ``max_retries`` bounds the total number of attempts.
    """

    def __init__(self, max_retries: int = 5, rng: Optional[random.Random] = None) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self._random = rng or random.Random()

    def should_retry_after(self, attempt: int) -> Optional[float]:
        if attempt >= self.max_retries:
            return None
        if attempt == 0:
            return 0.0
        jitter_ms = self._random.randint(1, 1000)
        return (2**attempt * 1000 - jitter_ms) / 1000

    def __repr__(self) -> str:
        return f"JitteredBackoff(max_retries={self.max_retries})"


class FixedDelay(RetryStrategy):
    """Waits the same delay before every retry; ``max_retries=None`` never gives up."""

    def __init__(self, delay: float, max_retries: Optional[int] = 3) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self.max_retries = max_retries

    def should_retry_after(self, attempt: int) -> Optional[float]:
        if self.max_retries is not None and attempt >= self.max_retries:
            return None
        return 0.0 if attempt == 0 else self.delay

    def __repr__(self) -> str:
        return f"FixedDelay(delay={self.delay}, max_retries={self.max_retries})"


class NoRetry(RetryStrategy):
    def should_retry_after(self, attempt: int) -> Optional[float]:
        return 0.0 if attempt == 0 else None

    def __repr__(self) -> str:
        return "NoRetry()"


__all__ = ["RetryStrategy", "JitteredBackoff", "FixedDelay", "NoRetry"]
