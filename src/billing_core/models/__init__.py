# src/billing_core/models/__init__.py
"""SQLAlchemy models for the billing core."""

from .payment import PaymentTransaction, TransactionStatus
from .subscription import PricingPlan, UserSubscription
from .user import User

__all__ = [
    "PaymentTransaction", "TransactionStatus",
    "PricingPlan", "UserSubscription",
    "User",
]
