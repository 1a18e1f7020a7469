"""Payment transaction ledger.

All status changes are conditional ``UPDATE`` statements so that concurrent
callers race on the database row rather than on values read earlier.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import ColumnElement, and_, func, or_, select, update
from sqlalchemy.orm import Session

from billing_core.core.settings import settings
from billing_core.db.time import utcnow
from billing_core.models.payment import PaymentTransaction, TransactionStatus

logger = logging.getLogger(__name__)

__all__ = ["TransactionLedger"]


class TransactionLedger:
    """Reads and guarded writes against ``payment_transaction`` rows.

    Args:
        db: Database session.
        lease_seconds: Age after which a ``processing`` claim may be reclaimed;
            0 disables reclaiming.
        now: Time source returning aware UTC datetimes.
    """

    def __init__(
        self,
        db: Session,
        *,
        lease_seconds: int | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.lease_seconds = (
            settings.payment_processing_lease_seconds if lease_seconds is None else lease_seconds
        )
        self._now = now

    def get_by_order_id(self, order_id: str) -> PaymentTransaction | None:
        """Return the transaction, refreshed from the database."""
        return self.db.get(PaymentTransaction, order_id, populate_existing=True)

    def create(
        self,
        *,
        order_id: str,
        user_id: str,
        plan_id: str,
        amount: int,
        currency: str,
        notes: dict[str, Any] | None = None,
    ) -> PaymentTransaction:
        """Record a new ``created`` transaction for a gateway order."""
        now = self._now()
        transaction = PaymentTransaction(
            order_id=order_id,
            user_id=user_id,
            plan_id=plan_id,
            status=TransactionStatus.CREATED.value,
            amount=amount,
            currency=currency,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        return transaction

    def create_processing_claim(self, order_id: str, user_id: str) -> datetime | None:
        """Atomically move the order into ``processing``.

        Succeeds only for ``created`` rows owned by ``user_id``, or for
        ``processing`` rows whose claim has outlived the lease.

        Returns:
            The ``claimed_at`` written for this claim, or None if it was not
            acquired. Later writes by the holder are scoped to that value.
        """
        now = self._now()
        claimable = PaymentTransaction.status == TransactionStatus.CREATED.value
        if self.lease_seconds > 0:
            cutoff = now - timedelta(seconds=self.lease_seconds)
            claimable = or_(
                claimable,
                and_(
                    PaymentTransaction.status == TransactionStatus.PROCESSING.value,
                    PaymentTransaction.claimed_at < cutoff,
                ),
            )
        stmt = (
            update(PaymentTransaction)
            .where(
                PaymentTransaction.order_id == order_id,
                PaymentTransaction.user_id == user_id,
                claimable,
            )
            .values(status=TransactionStatus.PROCESSING.value, claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        if result.rowcount != 1:
            logger.info("Processing claim for order %s was not acquired", order_id)
            return None
        return now

    def _held_claim(self, claimed_at: datetime) -> ColumnElement[bool]:
        return and_(
            PaymentTransaction.status == TransactionStatus.PROCESSING.value,
            PaymentTransaction.claimed_at == claimed_at,
        )

    def mark_paid(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        *,
        claimed_at: datetime | None = None,
        commit: bool = True,
    ) -> bool:
        """Move a ``processing`` order to ``paid``; returns False if it was not processing.

        With ``claimed_at`` the update only applies while that claim is still held.
        """
        condition = (
            PaymentTransaction.status == TransactionStatus.PROCESSING.value
            if claimed_at is None
            else self._held_claim(claimed_at)
        )
        stmt = (
            update(PaymentTransaction)
            .where(PaymentTransaction.order_id == order_id, condition)
            .values(
                status=TransactionStatus.PAID.value,
                payment_id=payment_id,
                signature=signature,
                updated_at=self._now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if commit:
            self.db.commit()
        return result.rowcount == 1

    def mark_failed(self, order_id: str, *, claimed_at: datetime | None = None) -> bool:
        """Mark the order failed unless it already settled.

        Holders of a claim pass its ``claimed_at`` so a claim taken over by
        someone else is left alone. Without it, any unsettled row is failed.
        """
        condition = (
            PaymentTransaction.status != TransactionStatus.PAID.value
            if claimed_at is None
            else self._held_claim(claimed_at)
        )
        stmt = (
            update(PaymentTransaction)
            .where(PaymentTransaction.order_id == order_id, condition)
            .values(status=TransactionStatus.FAILED.value, updated_at=self._now())
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        if result.rowcount != 1:
            logger.info("Order %s was not marked failed; it settled or changed hands", order_id)
            return False
        return True


    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def list_transactions(
        self, *, status: str | None = None, limit: int = 50, offset: int = 0
    ) -> tuple[Sequence[PaymentTransaction], int]:
        """Return a page of transactions, newest first, with the total count."""
        query = select(PaymentTransaction)
        count_query = select(func.count()).select_from(PaymentTransaction)
        if status is not None:
            query = query.where(PaymentTransaction.status == status)
            count_query = count_query.where(PaymentTransaction.status == status)
        query = (
            query.order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.order_id)
            .offset(offset)
            .limit(limit)
        )
        items = self.db.scalars(query).all()
        total = int(self.db.scalar(count_query) or 0)
        return items, total

    def find_stale_claims(self) -> Sequence[PaymentTransaction]:
        """Return ``processing`` rows whose claim is older than the lease."""
        if self.lease_seconds <= 0:
            return []
        cutoff = self._now() - timedelta(seconds=self.lease_seconds)
        query = select(PaymentTransaction).where(
            PaymentTransaction.status == TransactionStatus.PROCESSING.value,
            PaymentTransaction.claimed_at < cutoff,
        )
        return self.db.scalars(query).all()
