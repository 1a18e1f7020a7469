"""Checkout: open a gateway order and record it in the ledger."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from billing_core.core.clock import Clock, wall_clock
from billing_core.core.errors import BillingError, ErrorKind
from billing_core.models.subscription import PricingPlan
from billing_core.schemas.billing import CheckoutResponse, PlanSummary
from billing_core.services.gateway import GatewayClient, GatewayError
from billing_core.services.ledger import TransactionLedger

logger = logging.getLogger(__name__)


class CheckoutService:
    """Create gateway orders for pricing plans."""

    def __init__(
        self,
        db: Session,
        ledger: TransactionLedger,
        gateway: GatewayClient,
        *,
        clock: Clock | None = None,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.gateway = gateway
        self.clock = clock or wall_clock

    def _load_plan(self, plan_id: str) -> PricingPlan:
        plan = self.db.get(PricingPlan, plan_id)
        if plan is None or plan.deleted_at is not None:
            raise BillingError(ErrorKind.NOT_FOUND, "Pricing plan not found.")
        if not plan.is_active:
            raise BillingError(ErrorKind.BAD_REQUEST, "Selected plan is not currently active.")
        if plan.price_minor < 1:
            raise BillingError(ErrorKind.BAD_REQUEST, "Selected plan has no payable amount.")
        return plan

    async def create_order(self, user_id: str, plan_id: str) -> CheckoutResponse:
        plan = self._load_plan(plan_id)
        try:
            order = await self.gateway.create_order(
                amount=plan.price_minor,
                currency=plan.currency,
                receipt=f"recharge-{self.clock.now_ms()}",
                notes={"planId": plan.id, "userId": user_id},
            )
        except GatewayError as exc:
            logger.error("Failed to create gateway order for plan %s: %s", plan.id, exc)
            raise BillingError(
                ErrorKind.INTERNAL, "Unable to start the payment right now. Please retry."
            ) from exc

        self.ledger.create(
            order_id=order.id,
            user_id=user_id,
            plan_id=plan.id,
            amount=order.amount,
            currency=order.currency,
            notes=order.notes or None,
        )
        logger.info("Opened order %s for plan %s", order.id, plan.id)
        return CheckoutResponse(
            key=self.gateway.key_id,
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            plan=PlanSummary.model_validate(plan),
        )
