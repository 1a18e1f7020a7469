# src/billing_core/services/__init__.py
"""Business logic services for the billing core."""

from .checkout import CheckoutService
from .entitlements import EntitlementProvider, SubscriptionEntitlements
from .gateway import GatewayClient, GatewayError, GatewayOrder
from .ledger import TransactionLedger
from .rate_limit import RateLimitDecision, RateLimiter
from .replay import ReplayGuard
from .settlement import SettlementResult, SettlementService

__all__ = [
    "CheckoutService",
    "EntitlementProvider",
    "SubscriptionEntitlements",
    "GatewayClient",
    "GatewayError",
    "GatewayOrder",
    "TransactionLedger",
    "RateLimitDecision",
    "RateLimiter",
    "ReplayGuard",
    "SettlementResult",
    "SettlementService",
]
