import random
import time
from typing import Callable


class RetryBackoff:
    """Exponential backoff with 10-30% jitter for the retry loop."""

    def __init__(self, retry_delay: float, retry_backoff: float, rand: Callable[[float, float], float] | None = None):
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self._uniform = rand or random.uniform

    def base_delay(self, attempt: int) -> float:
        return self.retry_delay * (self.retry_backoff ** (attempt - 1))

    def delay_for(self, attempt: int) -> float:
        base = self.base_delay(attempt)
        return base + self._uniform(0.1, 0.3) * base


class PolitenessDelay:
    """Random sleep in ``[0, max_delay)`` before a fetch."""

    def __init__(
        self,
        max_delay: float,
        rand: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.max_delay = max_delay
        self._random = rand or random.random
        self._sleep = sleep or time.sleep

    def wait(self) -> float:
        if self.max_delay <= 0:
            return 0.0
        time_to_sleep = self._random() * self.max_delay
        if time_to_sleep > 0:
            self._sleep(time_to_sleep)
        return time_to_sleep
