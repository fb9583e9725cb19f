"""
PhonePe PG client (checksum API)

Pay requests are sent as a base64 JSON payload with an X-VERIFY checksum;
status checks and server callbacks carry their own X-VERIFY values.
"""

import base64
import json
import logging
from typing import Optional

import httpx

from ..config import PHONEPE_BASE_URL, PHONEPE_MERCHANT_ID, PHONEPE_SALT_INDEX, PHONEPE_SALT_KEY
from ..webhook_security import phonepe_checksum
from .gateway import GATEWAY_TIMEOUT, PaymentGatewayError, raise_for_gateway_status
from .razorpay_service import to_paise

logger = logging.getLogger(__name__)

PAY_ENDPOINT = "/pg/v1/pay"


def encode_payload(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_response(encoded: str) -> dict:
    """Decode the base64 JSON ``response`` field PhonePe posts to callbacks"""
    return json.loads(base64.b64decode(encoded).decode("utf-8"))


class PhonePeService:
    """Service for PhonePe API operations"""

    def __init__(self):
        self.base_url = PHONEPE_BASE_URL.rstrip("/")
        self.merchant_id = PHONEPE_MERCHANT_ID
        self.salt_key = PHONEPE_SALT_KEY
        self.salt_index = PHONEPE_SALT_INDEX

    def is_available(self) -> bool:
        return bool(self.merchant_id and self.salt_key)

    def pay_checksum(self, encoded_payload: str) -> str:
        return phonepe_checksum(f"{encoded_payload}{PAY_ENDPOINT}", self.salt_key, self.salt_index)

    def status_path(self, transaction_id: str) -> str:
        return f"/pg/v1/status/{self.merchant_id}/{transaction_id}"

    async def create_payment(
        self,
        transaction_id: str,
        user_id: str,
        amount: float,
        redirect_url: str,
        callback_url: str,
        mobile_number: Optional[str] = None,
    ) -> dict:
        """Create a PAY_PAGE payment; returns the redirect URL and raw response"""
        if not self.is_available():
            raise PaymentGatewayError("PhonePe is not configured")

        payload = {
            "merchantId": self.merchant_id,
            "merchantTransactionId": transaction_id,
            "merchantUserId": user_id,
            "amount": to_paise(amount),
            "redirectUrl": redirect_url,
            "redirectMode": "POST",
            "callbackUrl": callback_url,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        if mobile_number:
            payload["mobileNumber"] = mobile_number

        encoded = encode_payload(payload)
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "X-VERIFY": self.pay_checksum(encoded),
        }
        try:
            async with httpx.AsyncClient(timeout=GATEWAY_TIMEOUT) as client:
                response = await client.post(
                    f"{self.base_url}{PAY_ENDPOINT}", json={"request": encoded}, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ PhonePe pay request failed: {e}")
            raise PaymentGatewayError(f"PhonePe unreachable: {e}") from e

        body = raise_for_gateway_status("PhonePe", response)
        try:
            redirect = body["data"]["instrumentResponse"]["redirectInfo"]["url"]
        except (KeyError, TypeError) as e:
            raise PaymentGatewayError("PhonePe response missing redirect URL", payload=body) from e

        logger.info(f"✅ PhonePe payment created: {transaction_id}")
        return {"payment_url": redirect, "response": body}

    async def check_status(self, transaction_id: str) -> dict:
        """
        Fetch the transaction status.

        Returns the payment payload with a ``code`` key (``PAYMENT_SUCCESS`` on
        success) and ``amount`` in paise.
        """
        if not self.is_available():
            raise PaymentGatewayError("PhonePe is not configured")

        path = self.status_path(transaction_id)
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "X-VERIFY": phonepe_checksum(path, self.salt_key, self.salt_index),
            "X-MERCHANT-ID": self.merchant_id,
        }
        try:
            async with httpx.AsyncClient(timeout=GATEWAY_TIMEOUT) as client:
                response = await client.get(f"{self.base_url}{path}", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ PhonePe status check failed for {transaction_id}: {e}")
            raise PaymentGatewayError(f"PhonePe unreachable: {e}") from e

        body = raise_for_gateway_status("PhonePe", response)
        data = body.get("data") or {}
        if isinstance(data, str):
            data = decode_response(data)
        data.setdefault("code", body.get("code"))
        data.setdefault("message", body.get("message"))
        return data


phonepe_service = PhonePeService()
