from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for load balancers and uptime checks.

    Mounted outside the ``/api`` prefix, so it is never rate limited.
    """

    return {"status": "ok", "service": "tipscribe"}
