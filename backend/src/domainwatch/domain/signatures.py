"""
Payment gateway signature utilities.

The gateway signs every completed checkout with the merchant secret so
the backend can tell a genuine confirmation from a forged one. The
signature is an HMAC-SHA256 over "<order_id>|<payment_id>".

Design Decisions:
- Constant-time comparison to avoid timing side channels
- Hex digest, lowercase, as issued by the gateway
- Verification lives with the caller; the renewal transaction trusts
  an already verified confirmation
"""

import hashlib
import hmac


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """
    Compute the expected gateway signature for a payment.

    Args:
        order_id: Gateway order identifier
        payment_id: Gateway payment identifier
        secret: Merchant key secret shared with the gateway

    Returns:
        Hex-encoded HMAC-SHA256 signature
    """
    if not order_id or not payment_id:
        raise ValueError("Cannot sign empty order or payment id")

    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    secret: str,
) -> bool:
    """
    Verify a signature returned by the gateway checkout.

    Returns:
        True if the signature matches, False otherwise
    """
    if not signature:
        return False

    expected = compute_payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.lower().encode())
