"""
Payment service - Wallet recharges and gateway callbacks

Recharges are recorded as a pending ``deposit`` before (or right after) the
gateway is involved and completed once the gateway confirms capture. A
pending deposit never counts towards the balance.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import (
    PHONEPE_SALT_INDEX,
    PHONEPE_SALT_KEY,
    PLATFORM_CURRENCY,
    PLATFORM_NAME,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    UNIVERSAL_PAYMENTS_SANDBOX,
)
from ...models import Profile, WalletTransaction
from ...services.gateway import PaymentGatewayError
from ...services.phonepe_service import decode_response, phonepe_service
from ...services.razorpay_service import from_paise, razorpay_service
from ...utils.time_utils import utcnow
from ...webhook_security import (
    WebhookSignatureError,
    verify_phonepe_checksum,
    verify_razorpay_checkout_signature,
)
from ..notifications.service import create_notification
from ..wallet.repository import WalletRepository
from ..wallet.service import generate_transaction_id, notify_withdrawal_completed

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {
    "upi": "UPI",
    "card": "Credit/Debit Card",
    "netbanking": "Net Banking",
    "wallet": "Digital Wallet",
}

CHECKOUT_THEME_COLOR = "#059669"


def _entity(payload: dict, name: str) -> dict:
    """``payload[name]["entity"]`` from a webhook body, or {} when absent or malformed"""
    section = payload.get(name)
    entity = section.get("entity") if isinstance(section, dict) else None
    return entity if isinstance(entity, dict) else {}


def _sandbox_payment_details(method: str, transaction_id: str, user_details: dict) -> dict:
    if method == "upi":
        details = {"upiId": user_details.get("upiId", "test@upi"), "transactionRef": f"UPI_{transaction_id}"}
    elif method == "card":
        details = {
            "cardLast4": user_details.get("cardLast4", "1234"),
            "cardType": user_details.get("cardType", "Visa"),
            "transactionRef": f"CARD_{transaction_id}",
        }
    elif method == "netbanking":
        details = {"bankName": user_details.get("bankName", "Test Bank"), "transactionRef": f"NET_{transaction_id}"}
    else:
        details = {"walletType": user_details.get("walletType", "Paytm"), "transactionRef": f"WALLET_{transaction_id}"}
    details["status"] = "completed"
    return details


class PaymentService:
    """Service layer for recharges through Razorpay, PhonePe and the sandbox"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository()

    def _record_pending_deposit(self, user_id: str, amount: float, description: str, meta: dict) -> WalletTransaction:
        try:
            return self.repo.insert_transaction(
                self.db,
                user_id=user_id,
                amount=amount,
                transaction_type="deposit",
                status="pending",
                description=description,
                meta=meta,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record pending deposit for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to record transaction") from e

    def _complete_deposit(self, txn: WalletTransaction, description: Optional[str] = None, **meta) -> WalletTransaction:
        if description:
            txn.description = description
        txn = self.repo.update_transaction(self.db, txn, status="completed", **meta)
        create_notification(
            self.db,
            txn.user_id,
            "wallet_recharged",
            "Wallet Recharged",
            f"₹{txn.amount} has been added to your wallet.",
            related_id=txn.id,
            data={"amount": txn.amount},
        )
        logger.info(f"💰 Deposit {txn.id} completed for {txn.user_id} ({txn.amount} {PLATFORM_CURRENCY})")
        return txn

    # ------------------------------------------------------------------
    # Razorpay checkout
    # ------------------------------------------------------------------

    async def create_razorpay_order(self, user: Profile, amount: float) -> dict:
        if not amount or amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid amount")

        receipt = generate_transaction_id("WALLET_RECHARGE")
        description = f"Wallet recharge of ₹{amount:g}"
        try:
            order = await razorpay_service.create_order(
                amount,
                receipt,
                notes={"user_id": user.user_id, "type": "wallet_recharge", "description": description},
            )
        except PaymentGatewayError as e:
            logger.error(f"❌ Razorpay order creation failed for {user.user_id}: {e}")
            raise HTTPException(
                status_code=502, detail={"error": "Failed to create payment order", "details": str(e)}
            ) from e

        self._record_pending_deposit(
            user.user_id,
            amount,
            f"Wallet recharge via Razorpay - {order['id']}",
            {"razorpay_order_id": order["id"], "receipt": receipt, "payment_gateway": "razorpay"},
        )

        return {
            "success": True,
            "order": {
                "id": order["id"],
                "amount": order.get("amount"),
                "currency": order.get("currency", PLATFORM_CURRENCY),
                "receipt": order.get("receipt", receipt),
                "key": RAZORPAY_KEY_ID,
                "name": PLATFORM_NAME,
                "description": description,
                "prefill": {
                    "name": user.full_name or "",
                    "email": user.email or "",
                    "contact": user.phone or "",
                },
                "theme": {"color": CHECKOUT_THEME_COLOR},
            },
        }

    async def verify_razorpay_payment(self, user: Profile, order_id: str, payment_id: str, signature: str) -> dict:
        if not order_id or not payment_id or not signature:
            raise HTTPException(status_code=400, detail="Missing payment verification data")
        if not RAZORPAY_KEY_SECRET:
            raise HTTPException(status_code=500, detail="Razorpay configuration missing")

        if not verify_razorpay_checkout_signature(order_id, payment_id, signature, RAZORPAY_KEY_SECRET):
            logger.warning(f"🚫 Invalid Razorpay checkout signature for order {order_id}")
            raise HTTPException(status_code=400, detail="Invalid payment signature")

        txn = self.repo.find_by_meta(
            self.db, "razorpay_order_id", order_id, transaction_type="deposit", user_id=user.user_id
        )
        if txn and txn.status == "completed":
            logger.info(f"ℹ️ Order {order_id} already completed as {txn.id}")
            return self._verification_response(txn)

        try:
            payment = await razorpay_service.fetch_payment(payment_id)
        except PaymentGatewayError as e:
            logger.error(f"❌ Failed to fetch Razorpay payment {payment_id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to verify payment") from e

        if payment.get("status") != "captured":
            raise HTTPException(status_code=400, detail="Payment not captured")
        if payment.get("order_id") != order_id:
            raise HTTPException(status_code=400, detail="Payment does not belong to this order")

        if not txn or txn.status != "pending":
            raise HTTPException(status_code=404, detail="Transaction not found")

        txn = self._complete_deposit(
            txn,
            description=f"Wallet recharge via Razorpay - Payment {payment_id}",
            razorpay_payment_id=payment_id,
            razorpay_signature=signature,
            payment_method=payment.get("method"),
            payment_status=payment.get("status"),
            verified_at=utcnow().isoformat(),
        )
        return self._verification_response(txn)

    @staticmethod
    def _verification_response(txn: WalletTransaction) -> dict:
        return {
            "success": True,
            "message": "Payment verified successfully",
            "transaction": {"id": txn.id, "amount": txn.amount, "status": txn.status},
        }

    # ------------------------------------------------------------------
    # Razorpay webhook
    # ------------------------------------------------------------------

    def handle_razorpay_event(self, event: dict) -> dict:
        """Apply a verified webhook event; unknown events are acknowledged"""
        if not isinstance(event, dict) or not isinstance(event.get("payload") or {}, dict):
            raise HTTPException(status_code=400, detail="Invalid webhook payload")
        event_type = event.get("event")
        payload = event.get("payload") or {}
        payment = _entity(payload, "payment")
        payout = _entity(payload, "payout")
        processed_at = utcnow().isoformat()

        logger.info(f"📥 Razorpay event: {event_type}")

        if event_type == "payment.captured" and payment:
            txn = self.repo.find_by_meta(
                self.db, "razorpay_order_id", payment.get("order_id"), transaction_type="deposit", status="pending"
            )
            if txn:
                self._complete_deposit(
                    txn,
                    description=f"Wallet recharge via Razorpay - Payment {payment.get('id')}",
                    razorpay_payment_id=payment.get("id"),
                    payment_method=payment.get("method"),
                    payment_status=payment.get("status"),
                    webhook_processed_at=processed_at,
                )
                return {"success": True, "transactionId": txn.id}

        elif event_type == "payout.processed" and payout:
            txn = self.repo.find_by_meta(
                self.db, "razorpay_payout_id", payout.get("id"), transaction_type="withdrawal"
            )
            if txn and txn.status == "pending":
                txn.description = f"Withdrawal completed - Payout {payout.get('id')}"
                self.repo.update_transaction(
                    self.db,
                    txn,
                    status="completed",
                    payout_status=payout.get("status"),
                    webhook_processed_at=processed_at,
                )
                notify_withdrawal_completed(self.db, txn)
                logger.info(f"✅ Withdrawal {txn.id} completed by payout {payout.get('id')}")
                return {"success": True, "transactionId": txn.id}

        elif event_type == "payment.failed" and payment:
            txn = self.repo.find_by_meta(
                self.db, "razorpay_order_id", payment.get("order_id"), transaction_type="deposit", status="pending"
            )
            if txn:
                txn.description = f"Transaction failed - {event_type}"
                self.repo.update_transaction(
                    self.db,
                    txn,
                    status="failed",
                    razorpay_payment_id=payment.get("id"),
                    payment_status=payment.get("status"),
                    webhook_processed_at=processed_at,
                )
                logger.info(f"❌ Deposit {txn.id} marked failed")
                return {"success": True, "transactionId": txn.id}

        elif event_type in ("payout.failed", "payout.reversed") and payout:
            txn = self.repo.find_by_meta(
                self.db, "razorpay_payout_id", payout.get("id"), transaction_type="withdrawal"
            )
            if txn and txn.status != "failed":
                txn.description = f"Transaction failed - {event_type}"
                self.repo.update_transaction(
                    self.db,
                    txn,
                    status="failed",
                    payout_status=payout.get("status"),
                    webhook_processed_at=processed_at,
                )
                create_notification(
                    self.db,
                    txn.user_id,
                    "withdrawal_failed",
                    "Withdrawal Failed",
                    f"Your withdrawal of ₹{txn.amount} could not be completed. The amount is back in your wallet.",
                    related_id=txn.id,
                    data={"amount": txn.amount, "event": event_type},
                )
                logger.info(f"❌ Withdrawal {txn.id} marked failed ({event_type})")
                return {"success": True, "transactionId": txn.id}

        else:
            logger.info(f"ℹ️ Unhandled Razorpay event type: {event_type}")

        return {"success": True}

    # ------------------------------------------------------------------
    # PhonePe
    # ------------------------------------------------------------------

    async def initiate_phonepe_payment(
        self, user: Profile, amount: float, redirect_url: str, callback_url: str
    ) -> dict:
        if not amount or amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid amount")

        transaction_id = generate_transaction_id("TXN")
        try:
            result = await phonepe_service.create_payment(
                transaction_id=transaction_id,
                user_id=user.user_id,
                amount=amount,
                redirect_url=redirect_url,
                callback_url=callback_url,
                mobile_number=user.phone,
            )
        except PaymentGatewayError as e:
            logger.error(f"❌ PhonePe payment creation failed for {user.user_id}: {e}")
            raise HTTPException(
                status_code=502, detail={"error": "Failed to create payment session", "details": str(e)}
            ) from e

        self._record_pending_deposit(
            user.user_id,
            amount,
            f"Wallet top-up via PhonePe - {transaction_id}",
            {
                "phonepe_transaction_id": transaction_id,
                "phonepe_merchant_id": phonepe_service.merchant_id,
                "payment_gateway": "phonepe",
            },
        )
        return {"success": True, "paymentUrl": result["payment_url"], "transactionId": transaction_id}

    def apply_phonepe_result(self, transaction_id: str, data: dict) -> dict:
        """Complete or fail the pending PhonePe deposit from a gateway status payload"""
        txn = self.repo.find_by_meta(
            self.db, "phonepe_transaction_id", transaction_id, transaction_type="deposit"
        )
        if not txn:
            raise HTTPException(status_code=404, detail="Transaction not found")

        if txn.status != "pending":
            logger.info(f"ℹ️ PhonePe transaction {transaction_id} already {txn.status}")
            return {"success": txn.status == "completed", "amount": txn.amount, "transactionId": transaction_id}

        code = data.get("code")
        if code == "PAYMENT_SUCCESS":
            if data.get("amount") is not None:
                txn.amount = from_paise(int(data["amount"]))
            self._complete_deposit(txn, phonepe_response=data, verified_at=utcnow().isoformat())
            return {"success": True, "amount": txn.amount, "transactionId": transaction_id}

        self.repo.update_transaction(
            self.db, txn, status="failed", phonepe_response=data, failed_at=utcnow().isoformat()
        )
        logger.info(f"❌ PhonePe transaction {transaction_id} failed: {code}")
        return {
            "success": False,
            "error": data.get("message") or "Payment failed",
            "transactionId": transaction_id,
        }

    async def check_phonepe_status(self, user: Profile, transaction_id: str) -> dict:
        txn = self.repo.find_by_meta(
            self.db, "phonepe_transaction_id", transaction_id, transaction_type="deposit", user_id=user.user_id
        )
        if not txn:
            raise HTTPException(status_code=404, detail="Transaction not found")

        try:
            data = await phonepe_service.check_status(transaction_id)
        except PaymentGatewayError as e:
            logger.error(f"❌ PhonePe status check failed for {transaction_id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to verify payment") from e

        return self.apply_phonepe_result(transaction_id, data)

    def handle_phonepe_callback(self, encoded_response: str, x_verify: Optional[str]) -> dict:
        try:
            valid = verify_phonepe_checksum(encoded_response, x_verify, PHONEPE_SALT_KEY, PHONEPE_SALT_INDEX)
        except WebhookSignatureError as e:
            logger.error(f"❌ PhonePe callback rejected: {e}")
            raise HTTPException(status_code=500, detail="PhonePe not configured") from e
        if not valid:
            logger.warning("🚫 PhonePe callback checksum mismatch")
            raise HTTPException(status_code=401, detail="Invalid callback signature")

        try:
            decoded = decode_response(encoded_response)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid callback payload") from e

        if not isinstance(decoded, dict):
            raise HTTPException(status_code=400, detail="Invalid callback payload")
        data = decoded.get("data")
        data = dict(data) if isinstance(data, dict) else {}
        data.setdefault("code", decoded.get("code"))
        data.setdefault("message", decoded.get("message"))
        transaction_id = data.get("merchantTransactionId")
        if not transaction_id:
            raise HTTPException(status_code=400, detail="Transaction ID required")

        logger.info(f"📥 PhonePe callback for {transaction_id}: {data.get('code')}")
        return self.apply_phonepe_result(transaction_id, data)

    # ------------------------------------------------------------------
    # Sandbox multi-method recharge
    # ------------------------------------------------------------------

    def universal_payment(self, user: Profile, amount: float, method: str, user_details: Optional[dict]) -> dict:
        if not UNIVERSAL_PAYMENTS_SANDBOX:
            raise HTTPException(status_code=503, detail="Universal payments are not enabled")
        if not amount or amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid amount")
        if method not in PAYMENT_METHODS:
            raise HTTPException(
                status_code=400,
                detail={"error": "Invalid payment method", "availableMethods": list(PAYMENT_METHODS)},
            )

        user_details = user_details or {}
        transaction_id = generate_transaction_id("UNI_TXN")
        txn = self._record_pending_deposit(
            user.user_id,
            amount,
            f"Wallet top-up via {PAYMENT_METHODS[method]} - {transaction_id}",
            {
                "transaction_id": transaction_id,
                "payment_method": method,
                "payment_gateway": "universal",
                "user_details": user_details,
            },
        )

        # Recharges are credited at face value; no taxes
        details = _sandbox_payment_details(method, transaction_id, user_details)
        self._complete_deposit(
            txn,
            payment_result=details,
            transaction_type="wallet_recharge",
            completed_at=utcnow().isoformat(),
        )

        return {
            "success": True,
            "transactionId": transaction_id,
            "paymentMethod": method,
            "amount": amount,
            "redirectUrl": (
                f"/customer-dashboard/wallet?payment_success=true&amount={amount:g}"
                f"&txn_id={transaction_id}&method={method}"
            ),
            "message": f"{PAYMENT_METHODS[method]} payment processed successfully",
            "paymentDetails": details,
        }
