# src/billing_core/api/v1/endpoints/activity.py
"""Presence heartbeat endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response

from billing_core.api.v1.dependencies import CurrentUserDep, RateLimit
from billing_core.db.time import utcnow
from billing_core.schemas.user import HeartbeatRequest, HeartbeatResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["activity"])

heartbeat_rate_limit = RateLimit(
    "presence",
    limit_setting="heartbeat_limit",
    window_setting="heartbeat_window_ms",
    per="user_ip",
    message="Too many presence updates. Please try again later.",
)


@router.post(
    "/heartbeat",
    response_model=HeartbeatResponse,
    dependencies=[Depends(heartbeat_rate_limit)],
)
async def heartbeat(
    user: CurrentUserDep,
    response: Response,
    payload: HeartbeatRequest | None = None,
) -> HeartbeatResponse:
    """Acknowledge a presence ping; storage of presence lives outside this service."""
    if payload is not None and payload.path:
        logger.debug("Heartbeat from %s at %s", user.id, payload.path[:160])
    response.headers["Cache-Control"] = "no-store"
    return HeartbeatResponse(ok=True, timestamp=utcnow().isoformat())
