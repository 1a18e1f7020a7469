# src/billing_core/models/payment.py
"""SQLAlchemy model for the payment transaction ledger."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_core.db.session import Base
from billing_core.db.time import utcnow


class TransactionStatus(str, Enum):
    """Lifecycle of a payment order: created -> processing -> paid | failed."""

    CREATED = "created"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


class PaymentTransaction(Base):
    """Durable record of a checkout order mirrored to the payment gateway.

    ``amount`` and ``currency`` are fixed at creation. Status moves only
    forward and is mutated through conditional updates in the ledger service.
    """

    __tablename__ = "payment_transaction"
    __table_args__ = (
        Index("payment_transaction_user_idx", "user_id"),
        Index("payment_transaction_status_idx", "status"),
    )

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pricing_plan.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.CREATED.value
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor currency units
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    notes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    signature: Mapped[str | None] = mapped_column(String(256), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
