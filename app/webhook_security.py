"""
Webhook Security Module

Signature verification for payment gateway callbacks:
- Razorpay webhooks (HMAC-SHA256 of the raw body, hex, X-Razorpay-Signature)
- Razorpay checkout signatures (HMAC-SHA256 of "order_id|payment_id")
- PhonePe X-VERIFY checksums (sha256(content + salt_key) + "###" + salt_index)

All comparisons are constant-time.
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Empty values never match.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def razorpay_checkout_signature(order_id: str, payment_id: str, key_secret: str) -> str:
    return compute_hmac_sha256(key_secret, f"{order_id}|{payment_id}".encode())


def verify_razorpay_checkout_signature(
    order_id: str, payment_id: str, signature: str, key_secret: str
) -> bool:
    expected = razorpay_checkout_signature(order_id, payment_id, key_secret)
    return constant_time_compare(expected, signature)


def phonepe_checksum(content: str, salt_key: str, salt_index: str) -> str:
    """
    PhonePe X-VERIFY value for the given content.

    For pay requests the content is ``base64_payload + "/pg/v1/pay"``, for
    status checks ``"/pg/v1/status/{merchant_id}/{transaction_id}"`` and for
    server callbacks the base64 ``response`` field.
    """
    digest = hashlib.sha256(f"{content}{salt_key}".encode("utf-8")).hexdigest()
    return f"{digest}###{salt_index}"


def verify_phonepe_checksum(content: str, x_verify: str, salt_key: str, salt_index: str) -> bool:
    if not salt_key:
        raise WebhookSignatureError("PhonePe salt key not configured")
    return constant_time_compare(phonepe_checksum(content, salt_key, salt_index), x_verify)


async def verify_razorpay_webhook(
    request: Request, secret: Optional[str], raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify a Razorpay webhook.

    Razorpay uses:
    - Header: 'X-Razorpay-Signature' (hex HMAC-SHA256 of the raw body)

    Args:
        request: FastAPI request object
        secret: Webhook secret from the Razorpay dashboard
        raise_on_failure: If True, raises HTTPException on failure

    Returns:
        Tuple of (is_valid, raw_body)
    """
    # Raw body before any parsing; re-serialised JSON would not match
    raw_body = await request.body()
    signature_header = request.headers.get("X-Razorpay-Signature", "")

    logger.info(f"📥 Razorpay webhook received ({len(raw_body)} bytes)")

    if not secret:
        logger.error("❌ RAZORPAY_WEBHOOK_SECRET not configured")
        if raise_on_failure:
            raise HTTPException(status_code=500, detail="Webhook secret not configured")
        return False, raw_body

    if not signature_header:
        logger.warning("🚫 Razorpay webhook missing signature header")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Missing webhook signature")
        return False, raw_body

    expected_signature = compute_hmac_sha256(secret, raw_body)
    if not constant_time_compare(expected_signature, signature_header):
        logger.warning("🚫 Razorpay webhook signature mismatch")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
        return False, raw_body

    logger.debug("✅ Razorpay webhook signature verified")
    return True, raw_body


def create_webhook_signature(secret: str, payload: bytes) -> str:
    """Create a Razorpay-style webhook signature (used by tests and local tooling)"""
    return compute_hmac_sha256(secret, payload)
