"""Reconnect policy: capped exponential backoff with jitter and a hard ceiling."""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class ReconnectPolicy:
    """Parameters for automatic reconnection.

    Parameters
    ----------
    max_attempts:
        Retries allowed after the first failed connect.  Once exhausted the
        channel stops until a fresh top-level ``connect()``.
    base_delay:
        Delay in seconds before the first retry.
    max_delay:
        Cap applied to the doubled delay.
    jitter:
        Randomization factor in ``[0, 1]``; the delay is spread over
        ``delay * (1 +/- jitter)`` and then capped again.
    connect_timeout:
        Seconds a single connect attempt may take.
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 5.0
    jitter: float = 0.5
    connect_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")

    def delay_for(self, attempt: int, rng: random.Random | None = None) -> float:
        """Seconds to wait before retry number *attempt* (1-based)."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            spread = delay * self.jitter
            delay += (rng or random).uniform(-spread, spread)
        return max(0.0, min(delay, self.max_delay))


NO_RETRY = ReconnectPolicy(max_attempts=0)
