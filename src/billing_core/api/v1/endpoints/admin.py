# src/billing_core/api/v1/endpoints/admin.py
"""Administrative ledger listing."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from billing_core.api.v1.dependencies import AdminUserDep, LedgerDep, RateLimit
from billing_core.models.payment import TransactionStatus
from billing_core.schemas.billing import TransactionPage, TransactionResponse

router = APIRouter(prefix="/admin", tags=["admin"])

admin_listing_rate_limit = RateLimit(
    "admin_listing",
    limit_setting="admin_listing_limit",
    window_setting="admin_listing_window_ms",
    per="user",
)


@router.get(
    "/transactions",
    response_model=TransactionPage,
    dependencies=[Depends(admin_listing_rate_limit)],
)
async def list_transactions(
    _admin: AdminUserDep,
    ledger: LedgerDep,
    status: Annotated[TransactionStatus | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> TransactionPage:
    items, total = ledger.list_transactions(
        status=status.value if status is not None else None,
        limit=limit,
        offset=offset,
    )
    return TransactionPage(
        items=[TransactionResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )
