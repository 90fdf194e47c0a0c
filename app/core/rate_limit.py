"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

- Limiters are built once by the app factory and kept in a
  ``RateLimiterRegistry`` on ``app.state``; nothing here is module-global.
- Clients are keyed by network address. Requests without one share the
  literal key ``"unknown"`` and therefore a single budget.
- A rejection stops the request before the route runs and surfaces as
  HTTP 429 through ``RateLimitAppError``.

The app factory mounts ``enforce_general_rate_limit`` on the whole ``/api``
router. ``enforce_ai_rate_limit`` and ``enforce_transcription_rate_limit`` are
for the note-generation and transcription routers, which attach them per
route::

    @router.post("/generate-note", dependencies=[Depends(enforce_ai_rate_limit)])
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from fastapi import FastAPI, Request

from app.adapters.rate_limit import AbstractRateLimiter, PolicyConfig, Reject, create_limiter
from app.core.config import (
    AI_POLICY,
    GENERAL_POLICY,
    TRANSCRIPTION_POLICY,
    RateLimitSettings,
    settings,
)
from app.core.errors import RateLimitAppError
from app.core.logging import hash_client_key

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_KEY = "unknown"


class RateLimiterRegistry:
    """Named, independent limiters owned by one application instance."""

    def __init__(self, limiters: dict[str, AbstractRateLimiter]) -> None:
        self._limiters = dict(limiters)

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> RateLimiterRegistry:
        """Build one limiter per configured policy."""
        return cls(
            {
                name: create_limiter(
                    policy,
                    sweep_interval_ms=rate_limit_settings.sweep_interval_ms,
                )
                for name, policy in rate_limit_settings.policies().items()
            }
        )

    def get(self, name: str) -> AbstractRateLimiter:
        return self._limiters[name]

    def policies(self) -> Iterator[PolicyConfig]:
        for limiter in self._limiters.values():
            yield limiter.policy

    def __contains__(self, name: object) -> bool:
        return name in self._limiters


def install_rate_limiters(app: FastAPI, registry: RateLimiterRegistry | None = None) -> RateLimiterRegistry:
    """Attach a limiter registry to the app, building it from settings if needed."""
    registry = registry or RateLimiterRegistry.from_settings(settings.rate_limit)
    app.state.rate_limiters = registry
    return registry


def get_client_key(request: Request) -> str:
    """Derive the rate limit key for the current request.

    Uses the peer address, or the first ``X-Forwarded-For`` entry when the
    service is configured to trust its proxy.

    Args:
        request: FastAPI request.

    Returns:
        str: Client address, or ``"unknown"`` when none is available.
    """

    if settings.rate_limit.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_KEY


def rate_limit_dependency(policy_name: str) -> Callable[[Request], None]:
    """Create a FastAPI dependency enforcing the named policy.

    Args:
        policy_name: Registry name of the limiter to consult.

    Returns:
        A dependency that raises ``RateLimitAppError`` when the limiter rejects.
    """

    def enforce(request: Request) -> None:
        if not settings.rate_limit.enabled:
            return

        registry: RateLimiterRegistry = request.app.state.rate_limiters
        limiter = registry.get(policy_name)
        client_key = get_client_key(request)

        decision = limiter(client_key)
        if not isinstance(decision, Reject):
            logger.debug(
                "rate_limit.allowed",
                extra={"policy": policy_name, "key_hash": hash_client_key(client_key)},
            )
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "policy": policy_name,
                "key_hash": hash_client_key(client_key),
                "limit": limiter.policy.max_requests_per_window,
                "window_ms": limiter.policy.window_duration_ms,
                "retry_after_s": decision.retry_after_seconds,
                "request_path": request.url.path,
            },
        )
        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message=limiter.policy.rejection_message,
            details={"retry_after": decision.retry_after_seconds},
        )

    enforce.__name__ = f"enforce_{policy_name}_rate_limit"
    return enforce


enforce_general_rate_limit = rate_limit_dependency(GENERAL_POLICY)
enforce_ai_rate_limit = rate_limit_dependency(AI_POLICY)
enforce_transcription_rate_limit = rate_limit_dependency(TRANSCRIPTION_POLICY)
