# src/billing_core/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .billing import (
    CheckoutRequest,
    CheckoutResponse,
    EntitlementSnapshot,
    TransactionPage,
    TransactionResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from .common import ErrorResponse
from .guards import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    ReplayCheckResponse,
    ReplayTokenRequest,
)
from .user import GuestLoginResponse, HeartbeatRequest, HeartbeatResponse

__all__ = [
    "CheckoutRequest", "CheckoutResponse", "EntitlementSnapshot",
    "TransactionPage", "TransactionResponse",
    "VerifyPaymentRequest", "VerifyPaymentResponse",
    "ErrorResponse",
    "RateLimitCheckRequest", "RateLimitCheckResponse",
    "ReplayCheckResponse", "ReplayTokenRequest",
    "GuestLoginResponse", "HeartbeatRequest", "HeartbeatResponse",
]
