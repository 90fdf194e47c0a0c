"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory limiter and later move to a shared store without changing the
API layer.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    Admit,
    Decision,
    PolicyConfig,
    Reject,
)
from app.adapters.rate_limit.factory import create_limiter

__all__ = [
    "AbstractRateLimiter",
    "Admit",
    "Decision",
    "PolicyConfig",
    "Reject",
    "create_limiter",
]
