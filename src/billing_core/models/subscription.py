# src/billing_core/models/subscription.py
"""Pricing plans and the subscriptions they entitle."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_core.db.session import Base
from billing_core.db.time import utcnow

SUBSCRIPTION_ACTIVE = "active"


def _new_id() -> str:
    return str(uuid.uuid4())


class PricingPlan(Base):
    """Purchasable plan granting a token allowance for a billing cycle."""

    __tablename__ = "pricing_plan"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False, default="INR")
    token_allowance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    billing_cycle_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UserSubscription(Base):
    """Entitlement activated by a settled payment."""

    __tablename__ = "user_subscription"
    __table_args__ = (Index("user_subscription_user_idx", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pricing_plan.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SUBSCRIPTION_ACTIVE)
    token_allowance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    token_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
