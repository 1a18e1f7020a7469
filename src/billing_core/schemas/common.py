"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned for every handled error."""

    code: str = Field(..., description="Machine-readable ``kind:scope`` code")
    message: str = Field(..., description="Human-readable explanation")
