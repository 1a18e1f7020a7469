"""Billing-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

TOKENS_PER_CREDIT = 100


class EntitlementSnapshot(BaseModel):
    """Point-in-time view of a user's paid entitlement."""

    subscription_id: str | None = None
    plan_id: str | None = None
    plan_name: str | None = None
    tokens_remaining: int = 0
    tokens_total: int = 0
    credits_remaining: int = 0
    credits_total: int = 0
    started_at: datetime | None = None
    expires_at: datetime | None = None

    @classmethod
    def empty(cls) -> EntitlementSnapshot:
        return cls()


class CheckoutRequest(BaseModel):
    """Request to open a checkout for a pricing plan."""

    plan_id: str = Field(..., min_length=1, description="Pricing plan identifier")


class PlanSummary(BaseModel):
    id: str
    name: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutResponse(BaseModel):
    """Gateway order details the client needs to open the payment widget."""

    key: str = Field(..., description="Public gateway key id")
    order_id: str
    amount: int = Field(..., description="Amount in minor currency units")
    currency: str
    plan: PlanSummary


class VerifyPaymentRequest(BaseModel):
    """Client-submitted payment confirmation."""

    order_id: str = Field(..., min_length=1, max_length=64)
    payment_id: str = Field(..., min_length=1, max_length=128)
    signature: str = Field(..., min_length=1, max_length=256)


class VerifyPaymentResponse(BaseModel):
    ok: bool = True
    already_processed: bool = False
    entitlement: EntitlementSnapshot


class TransactionResponse(BaseModel):
    """Ledger entry as exposed to administrators."""

    order_id: str
    user_id: str
    plan_id: str
    status: str
    amount: int
    currency: str
    payment_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionPage(BaseModel):
    items: list[TransactionResponse]
    total: int
    limit: int
    offset: int
