"""
Operator job for transactions stuck in ``processing``.

A claim that never reached ``paid`` or ``failed`` (for example after a crash
between claim and commit) is listed once its lease has run out. Nothing is
changed unless ``--mark-failed`` is passed, after someone has checked the
gateway and the user's entitlement by hand.
"""

import argparse
import logging

from sqlalchemy.orm import Session

from billing_core.core.settings import settings
from billing_core.db.session import SessionLocal
from billing_core.services.ledger import TransactionLedger

logger = logging.getLogger(__name__)


def report_stale_claims(db: Session, *, mark_failed: bool = False) -> list[str]:
    """List (and optionally fail) transactions whose processing lease expired.

    Args:
        db: Database session
        mark_failed: Move each stale transaction to ``failed``

    Returns:
        Order identifiers of the stale transactions
    """
    ledger = TransactionLedger(db)
    stale = ledger.find_stale_claims()
    # Copied before any commit expires the rows and reloads newer claims.
    listed = [(t.order_id, t.user_id, t.claimed_at) for t in stale]
    order_ids = [order_id for order_id, _, _ in listed]
    for order_id, user_id, claimed_at in listed:
        print(f"stale claim order={order_id} user={user_id} claimed_at={claimed_at}")
        # Scoped to the claim that was listed; a fresh reclaim since then is kept.
        if mark_failed and ledger.mark_failed(order_id, claimed_at=claimed_at):
            logger.warning("Marked stale order %s as failed", order_id)
    print(f"Found {len(order_ids)} stale processing claim(s)")
    return order_ids


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--mark-failed",
        action="store_true",
        help="mark stale processing transactions as failed",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    db = SessionLocal()
    try:
        report_stale_claims(db, mark_failed=args.mark_failed)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
