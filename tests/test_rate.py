import random

import pytest

from crawlkit.rate import PolitenessDelay, RetryBackoff


def test_retry_delay_grows_within_jitter_bounds():
    backoff = RetryBackoff(1.0, 2.0, rand=random.Random(7).uniform)
    for attempt in range(1, 6):
        base = 2.0 ** (attempt - 1)
        delay = backoff.delay_for(attempt)
        assert base * 1.1 <= delay <= base * 1.3


def test_retry_base_delay_non_decreasing():
    for factor in (1.0, 1.5, 3.0):
        backoff = RetryBackoff(0.5, factor)
        delays = [backoff.base_delay(a) for a in range(1, 8)]
        assert delays == sorted(delays)
    fixed = RetryBackoff(0.5, 1.0, rand=lambda a, b: 0.2)
    assert fixed.delay_for(1) == fixed.delay_for(4) == pytest.approx(0.6)


def test_politeness_delay_sleeps_random_fraction():
    sleeps = []
    delay = PolitenessDelay(3.0, rand=lambda: 0.25, sleep=sleeps.append)
    assert delay.wait() == 0.75
    assert sleeps == [0.75]


def test_politeness_delay_disabled():
    sleeps = []
    delay = PolitenessDelay(0.0, rand=lambda: 0.9, sleep=sleeps.append)
    assert delay.wait() == 0.0
    assert sleeps == []
