"""Factory for rate limiter instances."""

from __future__ import annotations

from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, PolicyConfig
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter, wall_clock_ms


def create_limiter(
    config: PolicyConfig,
    *,
    clock: Callable[[], float] = wall_clock_ms,
    sweep_interval_ms: int = 0,
) -> AbstractRateLimiter:
    """Build an independent limiter bound to one policy.

    The returned object is callable as ``limiter(client_key, now)`` and holds
    its own state; limiters built from separate calls never share counters.

    Args:
        config: Policy to enforce.
        clock: Time source returning epoch milliseconds.
        sweep_interval_ms: Stale-entry sweep interval (0 disables it).

    Returns:
        AbstractRateLimiter: A fresh in-memory fixed-window limiter.
    """
    return InMemoryFixedWindowRateLimiter(
        config,
        clock=clock,
        sweep_interval_ms=sweep_interval_ms,
    )
