"""Schemas for the rate-limit and replay RPC surface."""

from pydantic import BaseModel, Field


class RateLimitCheckRequest(BaseModel):
    key: str = Field(..., min_length=1, description="Action scope combined with actor fingerprint")
    limit: int = Field(..., ge=1)
    window_ms: int = Field(..., gt=0)


class RateLimitCheckResponse(BaseModel):
    allowed: bool
    reset_at: int = Field(..., description="Epoch milliseconds when the window rolls over")
    remaining: int
    retry_after: int | None = Field(None, description="Seconds to wait when not allowed")


class ReplayTokenRequest(BaseModel):
    token: str = Field("", description="Opaque single-use callback token")


class ReplayCheckResponse(BaseModel):
    seen: bool
