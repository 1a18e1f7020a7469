"""Payment verification and settlement.

Drives a ledger entry from ``created`` to ``paid`` after checking the
client-supplied signature and reconciling against the gateway's own order
record. The processing claim is the only gate into entitlement activation, so
concurrent confirmations of the same order credit the user at most once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.security import verify_payment_signature
from billing_core.models.payment import PaymentTransaction, TransactionStatus
from billing_core.schemas.billing import EntitlementSnapshot
from billing_core.services.entitlements import EntitlementProvider
from billing_core.services.gateway import GatewayClient, GatewayError
from billing_core.services.ledger import TransactionLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a successful verification."""

    entitlement: EntitlementSnapshot
    already_processed: bool = False


class SettlementService:
    """Verify gateway confirmations and settle transactions exactly once."""

    def __init__(
        self,
        ledger: TransactionLedger,
        gateway: GatewayClient,
        entitlements: EntitlementProvider,
    ) -> None:
        self.ledger = ledger
        self.gateway = gateway
        self.entitlements = entitlements

    def _already_paid(self, transaction: PaymentTransaction) -> SettlementResult:
        return SettlementResult(
            entitlement=self.entitlements.get_entitlement_snapshot(transaction.user_id),
            already_processed=True,
        )

    async def verify_and_settle(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        caller_user_id: str,
    ) -> SettlementResult:
        """Settle ``order_id`` for ``caller_user_id``.

        Raises:
            BillingError: ``not_found``, ``forbidden``, ``bad_request`` or
                ``internal`` as described by the settlement rules.
        """
        if not (order_id and payment_id and signature):
            raise BillingError(
                ErrorKind.BAD_REQUEST, "Payment confirmation details are required."
            )

        transaction = self.ledger.get_by_order_id(order_id)
        if transaction is None:
            raise BillingError(ErrorKind.NOT_FOUND, "Payment transaction not found.")

        if transaction.user_id != caller_user_id:
            raise BillingError(ErrorKind.FORBIDDEN)

        if transaction.status == TransactionStatus.PAID.value:
            return self._already_paid(transaction)

        if transaction.status == TransactionStatus.FAILED.value:
            raise BillingError(
                ErrorKind.BAD_REQUEST,
                "This payment could not be completed. Please start a new checkout.",
            )

        # A forged confirmation must never move the ledger, so no mark_failed here.
        if not verify_payment_signature(order_id, payment_id, signature, self.gateway.key_secret):
            logger.warning("Rejected payment confirmation with invalid signature for %s", order_id)
            raise BillingError(ErrorKind.BAD_REQUEST, "Invalid payment signature.")

        try:
            order = await self.gateway.fetch_order(order_id)
        except GatewayError as exc:
            logger.error("Could not fetch order %s from gateway: %s", order_id, exc)
            raise BillingError(
                ErrorKind.INTERNAL, "Unable to confirm the payment right now. Please retry."
            ) from exc

        if order.amount != transaction.amount or order.currency != transaction.currency:
            logger.warning(
                "Order %s mismatch: gateway %s %s, ledger %s %s",
                order_id,
                order.amount,
                order.currency,
                transaction.amount,
                transaction.currency,
            )
            self.ledger.mark_failed(order_id)
            raise BillingError(
                ErrorKind.BAD_REQUEST, "Payment details do not match the expected order."
            )

        if not order.is_paid:
            raise BillingError(ErrorKind.BAD_REQUEST, "Payment is not completed yet.")

        claimed_at = self.ledger.create_processing_claim(order_id, caller_user_id)
        if claimed_at is None:
            current = self.ledger.get_by_order_id(order_id)
            if current is not None and current.status == TransactionStatus.PAID.value:
                return self._already_paid(current)
            raise BillingError(
                ErrorKind.BAD_REQUEST,
                "Payment is being processed. Please try again in a few moments.",
            )

        try:
            self.entitlements.activate_entitlement(caller_user_id, transaction.plan_id)
            settled = self.ledger.mark_paid(
                order_id, payment_id, signature, claimed_at=claimed_at, commit=False
            )
            if settled:
                self.ledger.commit()
        except BillingError:
            self.ledger.rollback()
            self.ledger.mark_failed(order_id, claimed_at=claimed_at)
            raise
        except Exception as exc:
            logger.exception("Failed to finalize payment for order %s", order_id)
            self.ledger.rollback()
            self.ledger.mark_failed(order_id, claimed_at=claimed_at)
            raise BillingError(ErrorKind.INTERNAL) from exc

        if not settled:
            # The claim was reclaimed after its lease ran out; the other holder settles.
            self.ledger.rollback()
            raise BillingError(
                ErrorKind.BAD_REQUEST,
                "Payment is being processed. Please try again in a few moments.",
            )

        logger.info("Settled order %s for user %s", order_id, caller_user_id)
        return SettlementResult(
            entitlement=self.entitlements.get_entitlement_snapshot(caller_user_id)
        )
