# src/billing_core/api/v1/endpoints/guards.py
"""Rate-limit and replay checks exposed to trusted collaborators."""

from __future__ import annotations

from fastapi import APIRouter, status

from billing_core.api.v1.dependencies import AdminUserDep, RateLimiterDep, ReplayGuardDep
from billing_core.schemas.guards import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    ReplayCheckResponse,
    ReplayTokenRequest,
)
from billing_core.services.rate_limit import retry_after_seconds

router = APIRouter(tags=["guards"])


@router.post("/rate-limit/check", response_model=RateLimitCheckResponse)
async def check_rate_limit(
    payload: RateLimitCheckRequest,
    _caller: AdminUserDep,
    limiter: RateLimiterDep,
) -> RateLimitCheckResponse:
    """Count one request against ``key`` and report the decision without raising."""
    decision = limiter.admit(payload.key, payload.limit, payload.window_ms)
    retry_after = None
    if not decision.allowed:
        retry_after = retry_after_seconds(decision.reset_at_ms, limiter.clock.now_ms())
    return RateLimitCheckResponse(
        allowed=decision.allowed,
        reset_at=decision.reset_at_ms,
        remaining=decision.remaining,
        retry_after=retry_after,
    )


@router.post("/replay/check", response_model=ReplayCheckResponse)
async def check_replay(
    payload: ReplayTokenRequest,
    _caller: AdminUserDep,
    guard: ReplayGuardDep,
) -> ReplayCheckResponse:
    return ReplayCheckResponse(seen=guard.seen(payload.token))


@router.post("/replay/record", status_code=status.HTTP_204_NO_CONTENT)
async def record_replay(
    payload: ReplayTokenRequest,
    _caller: AdminUserDep,
    guard: ReplayGuardDep,
) -> None:
    guard.record(payload.token)
