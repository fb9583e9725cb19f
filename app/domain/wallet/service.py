"""
Wallet service - Ledger operations

Every money movement is a pair of independently committed inserts into
wallet_transactions. If the second insert fails the first is deleted as a
compensating action; that delete is best effort and is logged when it fails.
"""

import logging
import secrets
import string
import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_MAX_WITHDRAWAL, DEFAULT_MIN_WITHDRAWAL, PLATFORM_CURRENCY
from ...models import ActiveSession, Profile, WalletTransaction
from ...services.gateway import PaymentGatewayError
from ...services.razorpay_service import razorpay_service
from ...shared.validators import mask_account_number
from ...utils.time_utils import utcnow
from ..bank_accounts.repository import BankAccountRepository
from ..notifications.service import create_notification
from .repository import WalletRepository

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_transaction_id(prefix: str) -> str:
    """PREFIX_<epoch-ms>_<9 base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def session_charge(session: ActiveSession, duration_minutes: Optional[float] = None) -> tuple[float, float]:
    """
    Amount and billed minutes for a session.

    Booking sessions bill the agreed total. Live sessions bill the hourly rate
    over the time between accept and end; a requested duration can only
    shorten that.
    """
    if session.booking is not None:
        return round(session.booking.total_amount or 0, 2), round((session.booking.duration_hours or 0) * 60, 2)

    if session.started_at is None or session.ended_at is None:
        return 0.0, 0.0

    minutes = max(0.0, (session.ended_at - session.started_at).total_seconds() / 60)
    if duration_minutes is not None:
        minutes = min(minutes, duration_minutes)
    hourly_rate = session.designer.hourly_rate or 0
    return round(hourly_rate * minutes / 60, 2), round(minutes, 2)


def insufficient_balance(balance: float, required: float, error: str = "Insufficient balance") -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "error": error,
            "currentBalance": balance,
            "requiredAmount": required,
            "shortfall": round(required - balance, 2),
        },
    )


class WalletService:
    """Service layer for balances, payments and withdrawals"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository()
        self.bank_repo = BankAccountRepository()

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> float:
        try:
            return self.repo.get_balance(self.db, user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Balance check failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to check wallet balance") from e

    def ensure_sufficient_balance(self, user_id: str, amount: float, error: str = "Insufficient balance") -> float:
        """Balance guard; raises 400 with the shortfall"""
        balance = self.get_balance(user_id)
        if balance < amount:
            logger.info(f"💸 Insufficient balance for {user_id}: {balance} < {amount}")
            raise insufficient_balance(balance, amount, error)
        return balance

    def list_transactions(self, user_id: str, limit: int = 50) -> list[WalletTransaction]:
        return self.repo.list_transactions(self.db, user_id, limit)

    # ------------------------------------------------------------------
    # Paired inserts
    # ------------------------------------------------------------------

    def _insert_pair(self, debit: dict, credit: dict, credit_error: str) -> tuple[WalletTransaction, WalletTransaction]:
        try:
            debit_txn = self.repo.insert_transaction(self.db, **debit)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Debit insert failed for {debit.get('user_id')}: {e}")
            raise HTTPException(status_code=500, detail="Failed to process customer payment") from e

        debit_id = debit_txn.id

        try:
            credit_txn = self.repo.insert_transaction(self.db, **credit)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Credit insert failed for {credit.get('user_id')}: {e}; rolling back {debit_id}")
            try:
                self.repo.delete_transaction(self.db, debit_id)
            except SQLAlchemyError as rollback_error:
                self.db.rollback()
                logger.critical(
                    f"🚨 Compensating delete failed for transaction {debit_id}: {rollback_error}"
                )
            raise HTTPException(status_code=500, detail=credit_error) from e

        return debit_txn, credit_txn

    # ------------------------------------------------------------------
    # Customer -> designer payment
    # ------------------------------------------------------------------

    def process_payment(
        self,
        customer: Profile,
        amount: float,
        designer_user_id: str,
        booking_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        if not amount or amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid amount")
        if not designer_user_id:
            raise HTTPException(status_code=400, detail="Designer ID required")

        self.ensure_sufficient_balance(customer.user_id, amount)

        designer_profile = self.db.query(Profile).filter(Profile.user_id == designer_user_id).first()
        if not designer_profile:
            raise HTTPException(status_code=404, detail="Designer not found")

        label = description or "design services"
        customer_txn, designer_txn = self._insert_pair(
            debit={
                "user_id": customer.user_id,
                "amount": amount,
                "transaction_type": "payment",
                "status": "completed",
                "description": description or f"Payment to {designer_profile.name}",
                "booking_id": booking_id,
                "meta": {"designer_id": designer_user_id, "payment_type": "designer_payment"},
            },
            credit={
                "user_id": designer_user_id,
                "amount": amount,
                "transaction_type": "deposit",
                "status": "completed",
                "description": f"Payment from customer for {label}",
                "booking_id": booking_id,
                "meta": {"customer_id": customer.user_id, "payment_type": "designer_earning"},
            },
            credit_error="Failed to process designer payment",
        )

        create_notification(
            self.db,
            designer_user_id,
            "payment_received",
            "Payment Received",
            f"You received ₹{amount} from a customer for {label}",
            related_id=booking_id,
            data={
                "amount": amount,
                "customer_id": customer.user_id,
                "booking_id": booking_id,
                "transaction_id": designer_txn.id,
            },
        )
        logger.info(f"✅ Payment of {amount} {PLATFORM_CURRENCY} from {customer.user_id} to {designer_user_id}")

        return {
            "success": True,
            "customerTransactionId": customer_txn.id,
            "designerTransactionId": designer_txn.id,
            "amount": amount,
            "newBalance": self.get_balance(customer.user_id),
        }

    # ------------------------------------------------------------------
    # Session completion payment
    # ------------------------------------------------------------------

    def process_session_payment(
        self,
        caller_user_id: str,
        session_id: str,
        amount: float,
        customer_id: Optional[str] = None,
        designer_user_id: Optional[str] = None,
        session_type: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> dict:
        """
        Charge an ended session to its customer and credit its designer.

        The parties come from the stored session. Ids passed by the caller
        must agree with it, and the amount may not exceed the session charge.
        """
        if not session_id or not amount:
            raise HTTPException(status_code=400, detail="Missing required parameters")
        if amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid amount")

        session = self.db.query(ActiveSession).filter(ActiveSession.session_id == session_id).first()
        if not session:
            raise HTTPException(status_code=404, detail="Session not found")

        session_customer_id = session.customer_id
        session_designer_id = session.designer.user_id
        if (customer_id and customer_id != session_customer_id) or (
            designer_user_id and designer_user_id != session_designer_id
        ):
            logger.warning(f"⚠️ Session {session_id} payment with mismatched parties from {caller_user_id}")
            raise HTTPException(status_code=400, detail="Customer or designer does not match this session")
        customer_id, designer_user_id = session_customer_id, session_designer_id

        if caller_user_id not in (customer_id, designer_user_id):
            raise HTTPException(status_code=403, detail="Not a participant of this session")
        if session.status != "ended":
            raise HTTPException(status_code=400, detail="Session has not ended yet")

        charge, billed_minutes = session_charge(session)
        if amount > charge:
            raise HTTPException(
                status_code=400,
                detail={"error": "Amount exceeds the session charge", "maximumAmount": charge},
            )
        session_type = session_type or session.session_type
        if duration is None:
            duration = billed_minutes

        existing = self.repo.find_by_meta(
            self.db, "session_id", session_id, transaction_type="payment", status="completed"
        )
        if existing:
            raise HTTPException(
                status_code=400,
                detail={"error": "Session payment already processed", "transactionId": existing.id},
            )

        self.ensure_sufficient_balance(customer_id, amount, error="Insufficient customer balance")

        label = session_type or "Design Session"
        customer_ref = generate_transaction_id("SESSION_PAY")
        designer_ref = generate_transaction_id("SESSION_EARN")
        shared = {"session_id": session_id, "session_type": session_type, "duration": duration}

        customer_txn, designer_txn = self._insert_pair(
            debit={
                "user_id": customer_id,
                "amount": amount,
                "transaction_type": "payment",
                "status": "completed",
                "description": f"Session payment - {label}",
                "meta": {
                    **shared,
                    "transaction_id": customer_ref,
                    "designer_id": designer_user_id,
                    "payment_type": "session_completion",
                },
            },
            credit={
                "user_id": designer_user_id,
                "amount": amount,
                "transaction_type": "deposit",
                "status": "completed",
                "description": f"Session earnings - {label}",
                "meta": {
                    **shared,
                    "transaction_id": designer_ref,
                    "customer_id": customer_id,
                    "earnings_type": "session_completion",
                },
            },
            credit_error="Failed to process designer earnings",
        )

        session.payment_processed = True
        session.payment_processed_at = utcnow()
        self.db.commit()

        create_notification(
            self.db,
            customer_id,
            "session_payment",
            "Session Payment Processed",
            f"₹{amount} has been deducted from your wallet for the completed session.",
            data={"amount": amount, "session_id": session_id, "transaction_id": customer_ref},
        )
        create_notification(
            self.db,
            designer_user_id,
            "session_earnings",
            "Session Earnings Added",
            f"₹{amount} has been added to your wallet for the completed session.",
            data={"amount": amount, "session_id": session_id, "transaction_id": designer_ref},
        )
        logger.info(f"✅ Session {session_id} charged {amount} {PLATFORM_CURRENCY}")

        return {
            "success": True,
            "customerTransaction": {"id": customer_txn.id, "amount": amount, "type": "payment"},
            "designerTransaction": {"id": designer_txn.id, "amount": amount, "type": "earnings"},
            "sessionId": session_id,
            "message": "Session payment processed successfully",
        }

    # ------------------------------------------------------------------
    # Withdrawal
    # ------------------------------------------------------------------

    def get_withdrawal_limits(self) -> tuple[float, float]:
        min_amount = self.repo.get_setting(self.db, "minimum_withdrawal_amount")
        max_amount = self.repo.get_setting(self.db, "maximum_withdrawal_amount")
        return (
            float(min_amount) if min_amount else DEFAULT_MIN_WITHDRAWAL,
            float(max_amount) if max_amount else DEFAULT_MAX_WITHDRAWAL,
        )

    async def _ensure_fund_account(self, user: Profile, account) -> str:
        """RazorpayX fund account for a bank account, created once and cached in its metadata"""
        meta = account.meta or {}
        if meta.get("razorpay_fund_account_id"):
            return meta["razorpay_fund_account_id"]

        contact_id = meta.get("razorpay_contact_id")
        if not contact_id:
            contact = await razorpay_service.create_contact(
                name=account.account_holder_name,
                email=account.email or user.email,
                phone=account.phone or user.phone,
                reference_id=user.user_id,
            )
            contact_id = contact["id"]

        fund_account = await razorpay_service.create_fund_account(
            contact_id=contact_id,
            holder_name=account.account_holder_name,
            ifsc=account.ifsc_code,
            account_number=account.account_number,
        )
        self.bank_repo.set_metadata(
            self.db,
            account,
            razorpay_contact_id=contact_id,
            razorpay_fund_account_id=fund_account["id"],
        )
        return fund_account["id"]

    def _fail_withdrawal(self, txn: WalletTransaction, withdrawal_id: str, error: Exception) -> None:
        logger.error(f"❌ Payout failed for withdrawal {withdrawal_id}: {error}")
        self.db.rollback()
        self.repo.update_transaction(
            self.db, txn, status="failed", failure_reason=str(error), failed_at=utcnow().isoformat()
        )

    async def process_withdrawal(
        self, user: Profile, amount: float, bank_account_id: str, description: Optional[str] = None
    ) -> dict:
        if not amount or amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid amount")
        if not bank_account_id:
            raise HTTPException(status_code=400, detail="Bank account ID required")

        min_amount, max_amount = self.get_withdrawal_limits()
        if amount < min_amount:
            raise HTTPException(status_code=400, detail=f"Minimum withdrawal amount is ₹{min_amount:g}")
        if amount > max_amount:
            raise HTTPException(status_code=400, detail=f"Maximum withdrawal amount is ₹{max_amount:g}")

        balance = self.ensure_sufficient_balance(user.user_id, amount)

        account = self.bank_repo.get_account(self.db, bank_account_id, user.user_id)
        if not account:
            raise HTTPException(status_code=404, detail="Bank account not found")
        if not account.is_verified:
            raise HTTPException(status_code=400, detail="Bank account is not verified")

        last4 = account.account_number[-4:]
        withdrawal_id = generate_transaction_id("WDR")
        try:
            txn = self.repo.insert_transaction(
                self.db,
                user_id=user.user_id,
                amount=amount,
                transaction_type="withdrawal",
                status="pending",
                description=description or f"Withdrawal to {account.bank_name} - {last4}",
                meta={
                    "withdrawal_id": withdrawal_id,
                    "bank_account_id": account.id,
                    "bank_details": {
                        "bank_name": account.bank_name,
                        "account_number": mask_account_number(account.account_number),
                        "ifsc_code": account.ifsc_code,
                        "account_holder_name": account.account_holder_name,
                    },
                },
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Withdrawal insert failed for {user.user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create withdrawal request") from e

        try:
            fund_account_id = await self._ensure_fund_account(user, account)
            payout = await razorpay_service.create_payout(
                fund_account_id=fund_account_id,
                amount=amount,
                reference_id=withdrawal_id,
                narration="Designer earnings",
            )
        except PaymentGatewayError as e:
            self._fail_withdrawal(txn, withdrawal_id, e)
            raise HTTPException(
                status_code=502, detail={"error": "Failed to create payout", "withdrawalId": withdrawal_id}
            ) from e
        except Exception as e:
            # Pending withdrawals reserve balance; none may stay pending without a payout
            self._fail_withdrawal(txn, withdrawal_id, e)
            raise HTTPException(
                status_code=500, detail={"error": "Failed to create payout", "withdrawalId": withdrawal_id}
            ) from e

        payout_status = payout.get("status")
        new_status = "completed" if payout_status == "processed" else "pending"
        self.repo.update_transaction(
            self.db,
            txn,
            status=new_status,
            razorpay_payout_id=payout.get("id"),
            razorpay_fund_account_id=fund_account_id,
            payout_status=payout_status,
        )
        if new_status == "completed":
            notify_withdrawal_completed(self.db, txn)

        logger.info(f"✅ Withdrawal {withdrawal_id} for {user.user_id}: payout {payout.get('id')} ({payout_status})")
        return {
            "success": True,
            "withdrawalId": withdrawal_id,
            "transactionId": txn.id,
            "amount": amount,
            "status": new_status,
            "payout": {"id": payout.get("id"), "status": payout_status},
            "bankAccount": {
                "bank_name": account.bank_name,
                "account_number": last4,
                "ifsc_code": account.ifsc_code,
            },
            "estimatedTime": "2-4 business days",
            "newBalance": round(balance - amount, 2),
        }


def notify_withdrawal_completed(db: Session, txn: WalletTransaction) -> None:
    bank = (txn.meta or {}).get("bank_details", {})
    create_notification(
        db,
        txn.user_id,
        "withdrawal_completed",
        "Withdrawal Completed",
        f"₹{txn.amount} has been transferred to your {bank.get('bank_name', 'bank')} account "
        f"ending in {bank.get('account_number', '')[-4:]}",
        related_id=txn.id,
        data={"amount": txn.amount, "withdrawal_id": (txn.meta or {}).get("withdrawal_id")},
    )
