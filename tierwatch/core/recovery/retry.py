"""
Retry Policy

Backoff schedule for reconnecting push feeds.
"""

import random
from dataclasses import dataclass
from typing import Optional


@dataclass
class RetryPolicy:
    """Configuration for reconnect behavior."""

    max_attempts: int = 5
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def get_delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Calculate delay before reconnect attempt ``attempt`` (0-based)."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += (rng or random).uniform(-jitter_range, jitter_range)
        return max(delay, 0)

    def allows(self, attempt: int) -> bool:
        """Whether reconnect attempt ``attempt`` (0-based) is still permitted."""
        return attempt < self.max_attempts

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.reconnect_max_attempts,
            initial_delay_seconds=settings.reconnect_initial_delay_seconds,
            max_delay_seconds=settings.reconnect_max_delay_seconds,
        )
