from dataclasses import dataclass

from .types import RetryConfig


@dataclass
class RetryState:
    attempt: int = 1
    slept_for: float = 0.0

    def next_interval(self, config: RetryConfig) -> float:
        """Backoff before the attempt numbered ``self.attempt``."""
        return min(config.max_period, config.period * (config.multiplier ** (self.attempt - 2)))

    def budget_left(self, config: RetryConfig, interval: float) -> bool:
        return config.max_elapsed is None or self.slept_for + interval <= config.max_elapsed
