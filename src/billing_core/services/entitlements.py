"""Entitlement activation backed by plan subscriptions."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_core.core.errors import BillingError, ErrorKind
from billing_core.db.time import add_days, as_utc, utcnow
from billing_core.models.subscription import (
    SUBSCRIPTION_ACTIVE,
    PricingPlan,
    UserSubscription,
)
from billing_core.schemas.billing import TOKENS_PER_CREDIT, EntitlementSnapshot

logger = logging.getLogger(__name__)


class EntitlementProvider(Protocol):
    """Collaborator that grants and reports paid benefits."""

    def activate_entitlement(self, user_id: str, plan_id: str) -> EntitlementSnapshot: ...

    def get_entitlement_snapshot(self, user_id: str) -> EntitlementSnapshot: ...


class SubscriptionEntitlements:
    """Grant plan allowances as subscriptions.

    Activation only flushes; the caller commits together with the ledger
    update so the credit and the ``paid`` status land atomically.
    """

    def __init__(self, db: Session, *, now: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._now = now

    def _get_plan(self, plan_id: str) -> PricingPlan:
        plan = self.db.get(PricingPlan, plan_id)
        if plan is None or plan.deleted_at is not None:
            raise BillingError(ErrorKind.NOT_FOUND, "Pricing plan not found", scope="pricing_plan")
        if not plan.is_active:
            raise BillingError(
                ErrorKind.BAD_REQUEST,
                "Selected plan is not currently active",
                scope="pricing_plan",
            )
        return plan

    def _active_subscription(self, user_id: str, now: datetime) -> UserSubscription | None:
        query = (
            select(UserSubscription)
            .where(
                UserSubscription.user_id == user_id,
                UserSubscription.status == SUBSCRIPTION_ACTIVE,
                UserSubscription.expires_at > now,
            )
            .order_by(UserSubscription.expires_at.desc())
            .limit(1)
        )
        return self.db.scalars(query).first()

    def _latest_subscription(self, user_id: str) -> UserSubscription | None:
        query = (
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .order_by(UserSubscription.created_at.desc())
            .limit(1)
        )
        return self.db.scalars(query).first()

    def activate_entitlement(self, user_id: str, plan_id: str) -> EntitlementSnapshot:
        """Top up the active subscription or start a new one for ``plan_id``."""
        now = self._now()
        plan = self._get_plan(plan_id)
        allowance = max(0, plan.token_allowance)
        expires_at = add_days(now, max(1, plan.billing_cycle_days))

        active = self._active_subscription(user_id, now)
        if active is not None:
            active.plan_id = plan.id
            active.token_allowance += allowance
            active.token_balance += allowance
            active.expires_at = max(as_utc(active.expires_at), expires_at)
            active.status = SUBSCRIPTION_ACTIVE
            active.updated_at = now
            subscription = active
        else:
            subscription = UserSubscription(
                user_id=user_id,
                plan_id=plan.id,
                status=SUBSCRIPTION_ACTIVE,
                token_allowance=allowance,
                token_balance=allowance,
                tokens_used=0,
                started_at=now,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
            )
            self.db.add(subscription)
        self.db.flush()
        logger.info("Activated plan %s for user %s", plan.id, user_id)
        return self._snapshot(subscription, plan)

    def get_entitlement_snapshot(self, user_id: str) -> EntitlementSnapshot:
        subscription = self._active_subscription(user_id, self._now())
        if subscription is None:
            subscription = self._latest_subscription(user_id)
        if subscription is None:
            return EntitlementSnapshot.empty()
        plan = self.db.get(PricingPlan, subscription.plan_id)
        return self._snapshot(subscription, plan)

    @staticmethod
    def _snapshot(
        subscription: UserSubscription, plan: PricingPlan | None
    ) -> EntitlementSnapshot:
        tokens_remaining = max(0, subscription.token_balance)
        tokens_total = max(0, subscription.token_allowance)
        return EntitlementSnapshot(
            subscription_id=subscription.id,
            plan_id=plan.id if plan is not None else subscription.plan_id,
            plan_name=plan.name if plan is not None and plan.deleted_at is None else None,
            tokens_remaining=tokens_remaining,
            tokens_total=tokens_total,
            credits_remaining=tokens_remaining // TOKENS_PER_CREDIT,
            credits_total=tokens_total // TOKENS_PER_CREDIT,
            started_at=as_utc(subscription.started_at),
            expires_at=as_utc(subscription.expires_at),
        )
