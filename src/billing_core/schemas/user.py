"""User-related Pydantic schemas."""

from pydantic import BaseModel, Field


class GuestLoginResponse(BaseModel):
    """Token issued to a freshly created guest account."""

    access_token: str
    token_type: str = "bearer"
    user_id: str = Field(..., description="Identifier of the guest account")


class HeartbeatRequest(BaseModel):
    path: str | None = Field(None, max_length=2048)
    locale: str | None = Field(None, max_length=64)
    timezone: str | None = Field(None, max_length=128)


class HeartbeatResponse(BaseModel):
    ok: bool = True
    timestamp: str
