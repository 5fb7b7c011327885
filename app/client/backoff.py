"""Exponential retry delay for the poll loop."""


class Backoff:
    """After the k-th consecutive failure the delay is ``min(base * 2**(k-1), max)``."""

    def __init__(self, base: float, maximum: float) -> None:
        self.base = base
        self.maximum = maximum
        self.failures = 0

    @property
    def current(self) -> float:
        """Delay before the next attempt."""
        if self.failures == 0:
            return self.base
        return min(self.base * 2 ** (self.failures - 1), self.maximum)

    def fail(self) -> float:
        """Record a failure and return the delay to wait."""
        self.failures += 1
        return self.current

    def reset(self) -> None:
        self.failures = 0
