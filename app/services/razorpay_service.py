"""
Razorpay REST client

Orders and payment lookups for wallet recharges; fund accounts and payouts
(RazorpayX) for designer withdrawals. Amounts cross this boundary in paise.
"""

import logging
from typing import Optional

import httpx

from ..config import (
    PLATFORM_CURRENCY,
    RAZORPAY_BASE_URL,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAYX_ACCOUNT_NUMBER,
)
from .gateway import GATEWAY_TIMEOUT, PaymentGatewayError, raise_for_gateway_status

logger = logging.getLogger(__name__)


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


def from_paise(amount: int) -> float:
    return round(amount / 100, 2)


class RazorpayService:
    """Service for Razorpay API operations"""

    def __init__(self):
        self.key_id = RAZORPAY_KEY_ID
        self.key_secret = RAZORPAY_KEY_SECRET
        self.base_url = RAZORPAY_BASE_URL.rstrip("/")
        if not self.is_available():
            logger.warning("RAZORPAY_KEY_ID/RAZORPAY_KEY_SECRET not set; Razorpay calls will fail")

    def is_available(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def _request(self, method: str, path: str, json: Optional[dict] = None, **kwargs) -> dict:
        if not self.is_available():
            raise PaymentGatewayError("Razorpay is not configured")
        try:
            async with httpx.AsyncClient(timeout=GATEWAY_TIMEOUT) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json,
                    auth=(self.key_id, self.key_secret),
                    **kwargs,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Razorpay request failed: {method} {path}: {e}")
            raise PaymentGatewayError(f"Razorpay unreachable: {e}") from e
        return raise_for_gateway_status("Razorpay", response)

    async def create_order(self, amount: float, receipt: str, notes: Optional[dict] = None) -> dict:
        order = await self._request(
            "POST",
            "/orders",
            json={
                "amount": to_paise(amount),
                "currency": PLATFORM_CURRENCY,
                "receipt": receipt[:40],
                "notes": notes or {},
            },
        )
        logger.info(f"✅ Razorpay order created: {order.get('id')} ({amount} {PLATFORM_CURRENCY})")
        return order

    async def fetch_payment(self, payment_id: str) -> dict:
        return await self._request("GET", f"/payments/{payment_id}")

    async def create_contact(self, name: str, email: Optional[str], phone: Optional[str], reference_id: str) -> dict:
        payload = {"name": name, "type": "vendor", "reference_id": reference_id[:40]}
        if email:
            payload["email"] = email
        if phone:
            payload["contact"] = phone
        return await self._request("POST", "/contacts", json=payload)

    async def create_fund_account(self, contact_id: str, holder_name: str, ifsc: str, account_number: str) -> dict:
        fund_account = await self._request(
            "POST",
            "/fund_accounts",
            json={
                "contact_id": contact_id,
                "account_type": "bank_account",
                "bank_account": {
                    "name": holder_name,
                    "ifsc": ifsc,
                    "account_number": account_number,
                },
            },
        )
        logger.info(f"✅ Razorpay fund account created: {fund_account.get('id')}")
        return fund_account

    async def create_payout(
        self,
        fund_account_id: str,
        amount: float,
        reference_id: str,
        narration: str,
        mode: str = "IMPS",
    ) -> dict:
        if not RAZORPAYX_ACCOUNT_NUMBER:
            raise PaymentGatewayError("RAZORPAYX_ACCOUNT_NUMBER not configured")
        payout = await self._request(
            "POST",
            "/payouts",
            json={
                "account_number": RAZORPAYX_ACCOUNT_NUMBER,
                "fund_account_id": fund_account_id,
                "amount": to_paise(amount),
                "currency": PLATFORM_CURRENCY,
                "mode": mode,
                "purpose": "payout",
                "queue_if_low_balance": True,
                "reference_id": reference_id[:40],
                "narration": narration[:30],
            },
            headers={"X-Payout-Idempotency": reference_id},
        )
        logger.info(f"✅ Razorpay payout {payout.get('id')} status={payout.get('status')}")
        return payout


razorpay_service = RazorpayService()
