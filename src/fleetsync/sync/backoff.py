"""Exponential backoff with jitter for queued mutations."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from fleetsync.config import RetryPolicy


def backoff_delay(attempt: int, policy: RetryPolicy, rng: random.Random | None = None) -> float:
    """Seconds to wait after the *attempt*-th failure (1-based).

    ``min(max_delay, base_delay * 2**(attempt-1))`` scaled by a uniform
    factor in ``[1 - jitter, 1 + jitter]``, then capped again.
    """
    if attempt < 1:
        return 0.0
    raw = min(policy.max_delay, policy.base_delay * (2 ** (attempt - 1)))
    if policy.jitter:
        rng = rng or random.Random()
        raw *= rng.uniform(1.0 - policy.jitter, 1.0 + policy.jitter)
    return min(policy.max_delay, raw)


def next_attempt_at(now: datetime, attempt: int, policy: RetryPolicy, rng: random.Random | None = None) -> datetime:
    return now + timedelta(seconds=backoff_delay(attempt, policy, rng))
