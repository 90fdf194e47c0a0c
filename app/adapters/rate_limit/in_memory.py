"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a lock makes look-up, check and mutation one atomic step.
- Windows start at each client's first request, not on aligned boundaries.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    Admit,
    Decision,
    PolicyConfig,
    Reject,
)


def wall_clock_ms() -> float:
    """Return the current UNIX time in milliseconds."""
    return time.time() * 1000


@dataclass
class _ClientWindowState:
    count: int
    window_reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window counter keyed by client.

    A client's window opens on its first request and lasts
    ``policy.window_duration_ms``. Within it at most
    ``policy.max_requests_per_window`` requests are admitted; once ``now``
    passes the window end, the next request opens a fresh window.

    Entries for clients that stop sending requests stay in memory unless
    ``sweep_interval_ms`` is set, in which case entries whose window ended more
    than that long ago are dropped at most once per interval.
    """

    def __init__(
        self,
        policy: PolicyConfig,
        *,
        clock: Callable[[], float] = wall_clock_ms,
        sweep_interval_ms: int = 0,
    ) -> None:
        """Initialize the limiter.

        Args:
            policy: Window length, cap and rejection message.
            clock: Time source returning epoch milliseconds.
            sweep_interval_ms: Minimum time between sweeps of stale entries
                (0 disables sweeping).

        Raises:
            ValueError: If sweep_interval_ms is negative.
        """
        if sweep_interval_ms < 0:
            raise ValueError("sweep_interval_ms must be >= 0")

        self.policy = policy
        self._clock = clock
        self._sweep_interval_ms = sweep_interval_ms
        self._lock = threading.Lock()
        self._state_by_key: dict[str, _ClientWindowState] = {}
        self._last_sweep_at: float | None = None

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryFixedWindowRateLimiter(policy={self.policy.name!r}, "
            f"max={self.policy.max_requests_per_window}, "
            f"window_ms={self.policy.window_duration_ms}, "
            f"tracked_keys={len(self._state_by_key)})"
        )

    @property
    def tracked_keys(self) -> int:
        """Number of client states currently held."""
        with self._lock:
            return len(self._state_by_key)

    def decide(self, client_key: str, now: float | None = None) -> Decision:
        ts = self._clock() if now is None else now

        with self._lock:
            self._maybe_sweep_locked(ts)

            state = self._state_by_key.get(client_key)
            if state is None or ts > state.window_reset_at:
                self._state_by_key[client_key] = _ClientWindowState(
                    count=1,
                    window_reset_at=ts + self.policy.window_duration_ms,
                )
                return Admit()

            if state.count < self.policy.max_requests_per_window:
                state.count += 1
                return Admit()

            retry_after = max(0, math.ceil((state.window_reset_at - ts) / 1000))
            return Reject(retry_after_seconds=retry_after)

    def sweep(self, now: float | None = None) -> int:
        """Drop entries whose window has already ended.

        Args:
            now: Epoch milliseconds; defaults to the limiter's clock.

        Returns:
            Number of entries removed.
        """
        ts = self._clock() if now is None else now
        with self._lock:
            return self._sweep_locked(ts, grace_ms=0)

    def _maybe_sweep_locked(self, now: float) -> None:
        if not self._sweep_interval_ms:
            return
        if self._last_sweep_at is None:
            self._last_sweep_at = now
            return
        if now - self._last_sweep_at < self._sweep_interval_ms:
            return
        self._sweep_locked(now, grace_ms=self._sweep_interval_ms)
        self._last_sweep_at = now

    def _sweep_locked(self, now: float, *, grace_ms: int) -> int:
        # An expired entry would be replaced on its next request anyway.
        stale = [
            key
            for key, state in self._state_by_key.items()
            if now - state.window_reset_at > grace_ms
        ]
        for key in stale:
            del self._state_by_key[key]
        return len(stale)
