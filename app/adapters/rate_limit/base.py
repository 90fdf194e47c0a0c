"""Rate limiter interfaces.

The HTTP layer depends on these types (not the concrete implementation) so
the in-memory limiter can later be swapped for a shared store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable configuration for one limiter instance.

    Attributes:
        window_duration_ms: Length of each fixed window in milliseconds.
        max_requests_per_window: Inclusive cap on admitted requests per window.
        rejection_message: Human-readable text returned on rejection.
        name: Optional policy name, used for logging only.

    Raises:
        ValueError: If window_duration_ms or max_requests_per_window are invalid.
    """

    window_duration_ms: int
    max_requests_per_window: int
    rejection_message: str = "Rate limit exceeded"
    name: str = "default"

    def __post_init__(self) -> None:
        if self.window_duration_ms <= 0:
            raise ValueError("window_duration_ms must be > 0")
        if self.max_requests_per_window < 1:
            raise ValueError("max_requests_per_window must be >= 1")


@dataclass(frozen=True)
class Admit:
    """The request may proceed."""

    allowed: ClassVar[bool] = True


@dataclass(frozen=True)
class Reject:
    """The request must not proceed.

    Attributes:
        retry_after_seconds: Whole seconds until the current window ends.
    """

    retry_after_seconds: int
    allowed: ClassVar[bool] = False


Decision = Union[Admit, Reject]


class AbstractRateLimiter(ABC):
    """Interface for rate limiters bound to a single policy."""

    policy: PolicyConfig

    @abstractmethod
    def decide(self, client_key: str, now: float | None = None) -> Decision:
        """Admit or reject one request for ``client_key``.

        Args:
            client_key: Opaque caller identifier (e.g., network address).
            now: Epoch milliseconds; defaults to the limiter's clock.

        Returns:
            Admit or Reject. Rejection is a normal return value, never raised.
        """
        raise NotImplementedError

    def __call__(self, client_key: str, now: float | None = None) -> Decision:
        return self.decide(client_key, now)
