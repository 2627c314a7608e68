from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest

from fleetsync.config import RetryPolicy
from fleetsync.sync.backoff import backoff_delay, next_attempt_at


def test_delays_double_up_to_the_cap() -> None:
    policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=10.0, jitter=0.0)
    assert [backoff_delay(n, policy) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


def test_no_delay_before_first_failure() -> None:
    assert backoff_delay(0, RetryPolicy()) == 0.0


@pytest.mark.parametrize("attempt", [1, 2, 3, 4])
def test_jitter_stays_within_bounds(attempt: int) -> None:
    policy = RetryPolicy(base_delay=2.0, max_delay=60.0, jitter=0.25)
    rng = random.Random(1234)
    nominal = 2.0 * 2 ** (attempt - 1)
    for _ in range(50):
        delay = backoff_delay(attempt, policy, rng)
        assert nominal * 0.75 <= delay <= nominal * 1.25


def test_jitter_never_exceeds_cap() -> None:
    policy = RetryPolicy(base_delay=8.0, max_delay=10.0, jitter=0.5)
    rng = random.Random(7)
    assert all(backoff_delay(5, policy, rng) <= 10.0 for _ in range(50))


def test_next_attempt_at() -> None:
    now = datetime(2026, 11, 1, 8, 0, tzinfo=UTC)
    policy = RetryPolicy(base_delay=3.0, jitter=0.0)
    assert next_attempt_at(now, 2, policy) == now + timedelta(seconds=6)
