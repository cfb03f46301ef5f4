import copy
import time
from typing import Callable, Union

from .errors import RetryableError
from .state import RetryState
from .types import RetryConfig


class Retryer:
    """Decides whether a failed attempt is retried, and sleeps before it is.

    One instance serves exactly one invocation; the dispatcher calls ``clone()`` on the
    configured prototype at the start of every call. The default clone is a deep copy
    of the prototype, so subclasses keeping counters need not override it.
    """

    def continue_or_raise(self, error: RetryableError) -> None:
        raise error

    def clone(self) -> "Retryer":
        return copy.deepcopy(self)

    @property
    def attempts(self) -> int:
        return 1


class NeverRetry(Retryer):
    def clone(self) -> "NeverRetry":
        return self


class DefaultRetryer(Retryer):
    def __init__(
        self,
        config: Union[RetryConfig, None] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RetryConfig()
        self.state = RetryState()
        self._clock = clock
        self._sleep = sleep

    @property
    def attempts(self) -> int:
        return self.state.attempt

    def continue_or_raise(self, error: RetryableError) -> None:
        cfg, state = self.config, self.state
        if state.attempt >= cfg.max_attempts:
            raise error
        if error.retry_after is not None:
            # a server-suggested instant already in the past means "retry now"
            interval = max(0.0, min(error.retry_after - self._clock(), cfg.max_period))
        else:
            interval = RetryState(state.attempt + 1).next_interval(cfg)
        if not state.budget_left(cfg, interval):
            raise error
        state.attempt += 1
        if interval > 0:
            self._sleep(interval)
            state.slept_for += interval

    def clone(self) -> "DefaultRetryer":
        return DefaultRetryer(self.config, clock=self._clock, sleep=self._sleep)


class FactoryRetryer(Retryer):
    """Wrap a zero-argument factory; every clone() is a new factory product."""

    def __init__(self, factory: Callable[[], Retryer]):
        self.factory = factory

    def clone(self) -> Retryer:
        made = self.factory()
        if not isinstance(made, Retryer):
            raise TypeError("Retryer factory must return a Retryer")
        return made


def coerce_retryer(retryer: Union[object, None]) -> Retryer:
    """Turn None | str | RetryConfig | Retryer | callable into a Retryer prototype.

    Accepted inputs:
      - None        -> DefaultRetryer
      - "default"  -> DefaultRetryer
      - "never"    -> NeverRetry
      - RetryConfig -> DefaultRetryer(config)
      - Retryer instance (returned as-is)
      - callable: zero-argument factory (e.g. a Retryer subclass) wrapped in FactoryRetryer
    """
    if retryer is None:
        return DefaultRetryer()
    if isinstance(retryer, Retryer):
        return retryer
    if isinstance(retryer, RetryConfig):
        return DefaultRetryer(retryer)
    if isinstance(retryer, str):
        name = retryer.lower()
        if name == "default":
            return DefaultRetryer()
        if name == "never":
            return NeverRetry()
        raise ValueError(
            "Unknown retryer string. Use 'default' or 'never', or pass a Retryer/factory."
        )
    if callable(retryer):
        return FactoryRetryer(retryer)
    raise TypeError("retryer must be None, 'default'|'never', RetryConfig, Retryer, or a callable")
