"""Pydantic schemas for rate limit policy responses."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class RateLimitPolicyResponse(BaseModel):
    """Public view of one configured policy."""

    name: str = Field(..., description="Policy name: general, ai or transcription.")
    window_ms: int = Field(..., description="Fixed window length in milliseconds.")
    max_requests: int = Field(
        ..., description="Requests admitted per client within one window."
    )


class RateLimitPoliciesResponse(BaseModel):
    enabled: bool = Field(..., description="Whether rate limiting is enforced.")
    policies: List[RateLimitPolicyResponse] = Field(default_factory=list)
