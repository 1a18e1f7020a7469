# src/billing_core/api/v1/endpoints/billing.py
"""Checkout and payment verification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from billing_core.api.v1.dependencies import (
    CheckoutServiceDep,
    CurrentUserDep,
    EntitlementsDep,
    RateLimit,
    SettlementServiceDep,
)
from billing_core.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    EntitlementSnapshot,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from billing_core.schemas.common import ErrorResponse

router = APIRouter(prefix="/billing", tags=["billing"])

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 429, 500)
}

checkout_rate_limit = RateLimit(
    "checkout",
    limit_setting="checkout_limit",
    window_setting="checkout_window_ms",
    per="user",
    message="Too many checkout attempts. Please try again later.",
)
verify_rate_limit = RateLimit(
    "payment_verify",
    limit_setting="payment_verify_limit",
    window_setting="payment_verify_window_ms",
    per="user",
    message="Too many payment confirmations. Please try again later.",
)


@router.post(
    "/orders",
    summary="Open a gateway order for a pricing plan",
    response_model=CheckoutResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(checkout_rate_limit)],
)
async def create_order(
    payload: CheckoutRequest,
    user: CurrentUserDep,
    checkout: CheckoutServiceDep,
) -> CheckoutResponse:
    return await checkout.create_order(user.id, payload.plan_id)


@router.post(
    "/verify",
    summary="Confirm a gateway payment and activate the purchased plan",
    response_model=VerifyPaymentResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(verify_rate_limit)],
)
async def verify_payment(
    payload: VerifyPaymentRequest,
    user: CurrentUserDep,
    settlement: SettlementServiceDep,
) -> VerifyPaymentResponse:
    """Settle the order; repeated confirmations of a paid order are harmless."""
    result = await settlement.verify_and_settle(
        payload.order_id,
        payload.payment_id,
        payload.signature,
        user.id,
    )
    return VerifyPaymentResponse(
        ok=True,
        already_processed=result.already_processed,
        entitlement=result.entitlement,
    )


@router.get("/entitlement", response_model=EntitlementSnapshot)
async def get_entitlement(user: CurrentUserDep, entitlements: EntitlementsDep) -> EntitlementSnapshot:
    return entitlements.get_entitlement_snapshot(user.id)
