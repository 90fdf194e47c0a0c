from __future__ import annotations

from fastapi import APIRouter, Request

from app.core.config import settings
from app.core.rate_limit import RateLimiterRegistry
from app.schemas.rate_limits import RateLimitPoliciesResponse, RateLimitPolicyResponse

router = APIRouter(tags=["Rate Limits"])


@router.get("/rate-limits", response_model=RateLimitPoliciesResponse)
def list_rate_limits(request: Request) -> RateLimitPoliciesResponse:
    """List the configured rate limit policies.

    Only policy settings are returned; per-client counters and window
    boundaries are never exposed.
    """

    registry: RateLimiterRegistry = request.app.state.rate_limiters
    return RateLimitPoliciesResponse(
        enabled=settings.rate_limit.enabled,
        policies=[
            RateLimitPolicyResponse(
                name=policy.name,
                window_ms=policy.window_duration_ms,
                max_requests=policy.max_requests_per_window,
            )
            for policy in registry.policies()
        ],
    )
