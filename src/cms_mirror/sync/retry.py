"""RetryPolicy: capped exponential backoff with jitter."""

from __future__ import annotations

import random


class RetryPolicy:
    """Configurable retry with exponential backoff and jitter."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 60.0,
        jitter: bool = True,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of attempts (including the first).
            base_delay: Delay in seconds before the first retry.
            max_delay: Cap on delay in seconds.
            jitter: If True, multiply delays by a random factor in [0.5, 1.5].
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed (attempt is 1-based)."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int, hint: float | None = None) -> float:
        """Return the delay in seconds after the given 1-based attempt.

        ``base_delay * 2^(attempt-1)`` capped by ``max_delay``. A server
        *hint* (rate-limit reset) is used instead when it is larger.
        """
        if attempt < 1:
            return 0.0
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        if hint is not None:
            delay = max(delay, min(hint, self.max_delay))
        return float(max(0.0, delay))
