import random
from abc import ABC, abstractmethod

from config.base import Settings


class ReconnectPolicy(ABC):
    """Decides how long to wait before the next stream reconnect attempt."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float | None:
        """Return the delay before reconnect attempt number `attempt`.

        Parameters
        ----------
        attempt : int
            1-based count of consecutive failed connections.

        Returns
        -------
        float | None
            Delay in seconds, or None to stop reconnecting.
        """
        pass


class FixedIntervalPolicy(ReconnectPolicy):
    """Retry after the same interval every time."""

    def __init__(self, interval: float = 5.0, max_retries: int | None = None) -> None:
        self.interval = interval
        self.max_retries = max_retries

    def next_delay(self, attempt: int) -> float | None:
        if self.max_retries is not None and attempt > self.max_retries:
            return None
        return self.interval

    def __repr__(self) -> str:
        return f"FixedIntervalPolicy(interval={self.interval}, max_retries={self.max_retries})"


class ExponentialBackoffPolicy(ReconnectPolicy):
    """Bounded exponential backoff with proportional jitter.

    The base delay is `initial * multiplier ** (attempt - 1)` capped at
    `max_interval`; jitter spreads it by up to `jitter` of its value in
    either direction without exceeding `max_interval`.
    """

    def __init__(
        self,
        initial: float = 1.0,
        multiplier: float = 2.0,
        max_interval: float = 60.0,
        jitter: float = 0.1,
        max_retries: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.initial = initial
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.jitter = jitter
        self.max_retries = max_retries
        self._rng = rng or random.Random()

    def next_delay(self, attempt: int) -> float | None:
        if self.max_retries is not None and attempt > self.max_retries:
            return None

        delay = min(self.initial * self.multiplier ** max(attempt - 1, 0), self.max_interval)
        if self.jitter:
            delay *= 1 + self._rng.uniform(-self.jitter, self.jitter)

        return min(max(delay, 0.0), self.max_interval)

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoffPolicy(initial={self.initial}, multiplier={self.multiplier}, "
            f"max_interval={self.max_interval}, max_retries={self.max_retries})"
        )


def build_reconnect_policy(settings: Settings) -> ReconnectPolicy:
    """Create the reconnect policy selected in settings.

    Parameters
    ----------
    settings : Settings
        Application settings.

    Returns
    -------
    ReconnectPolicy
    """
    if settings.reconnect_strategy == "exponential":
        return ExponentialBackoffPolicy(
            initial=settings.reconnect_interval_seconds,
            multiplier=settings.reconnect_multiplier,
            max_interval=settings.reconnect_max_interval_seconds,
            jitter=settings.reconnect_jitter,
            max_retries=settings.reconnect_max_retries,
        )

    return FixedIntervalPolicy(
        interval=settings.reconnect_interval_seconds,
        max_retries=settings.reconnect_max_retries,
    )
