"""Gateway signature utilities built on keyed SHA-256 digests."""
from __future__ import annotations

import hashlib
import hmac


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``order_id|payment_id`` under ``secret``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str, payment_id: str, signature: str, secret: str
) -> bool:
    """Verify a gateway payment signature.

    Args:
        order_id: Order identifier issued when the checkout was created.
        payment_id: Payment identifier reported by the gateway.
        signature: Hex digest supplied by the client.
        secret: Shared gateway secret.

    Returns:
        True if the signature matches; False otherwise. The comparison runs in
        constant time.
    """
    if not signature:
        return False
    expected = compute_payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
