"""Timestamp freshness checks for signed requests."""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class FreshnessResult:
    """Outcome of a freshness check.

    ``diff_ms`` is ``server_now - claimed`` (negative for future-dated requests).
    """

    fresh: bool
    diff_ms: int


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def check_freshness(claimed_ms: int, server_now_ms: int, ttl_ms: int) -> FreshnessResult:
    """Return whether `claimed_ms` lies within ``ttl_ms`` of the server clock.

    The window is symmetric: a timestamp further than the TTL in the future is
    rejected just like a stale one. Being exactly ``ttl_ms`` away is still fresh.
    """
    diff = server_now_ms - claimed_ms
    return FreshnessResult(fresh=abs(diff) <= ttl_ms, diff_ms=diff)
