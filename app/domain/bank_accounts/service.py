"""Bank account service - Payout accounts and their verification"""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import OTP_MAX_ATTEMPTS, OTP_TTL_MINUTES
from ...models import BankAccount, BankAccountVerification, Profile
from ...services.otp_delivery import OTPDeliveryError, deliver_otp
from ...utils.time_utils import utcnow
from .repository import BankAccountRepository
from .schemas import BankAccountCreate, BankAccountUpdate

logger = logging.getLogger(__name__)

AUTO_VERIFY_MIN_ACCOUNT_DIGITS = 10


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def hash_otp(account_id: str, otp: str) -> str:
    return hashlib.sha256(f"{account_id}:{otp}".encode("utf-8")).hexdigest()


class BankAccountService:
    """Service layer for bank account business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BankAccountRepository()

    def list_accounts(self, user: Profile) -> list[BankAccount]:
        return self.repo.list_accounts(self.db, user.user_id)

    def get_account(self, user: Profile, account_id: str) -> BankAccount:
        account = self.repo.get_account(self.db, account_id, user.user_id)
        if not account:
            raise HTTPException(status_code=404, detail="Bank account not found")
        return account

    def create_account(self, user: Profile, data: BankAccountCreate) -> BankAccount:
        """The first account a user adds becomes primary"""
        is_first = self.repo.count_accounts(self.db, user.user_id) == 0
        account = BankAccount(
            user_id=user.user_id,
            bank_name=data.bankName,
            account_holder_name=data.accountHolderName,
            account_number=data.accountNumber,
            ifsc_code=data.ifscCode,
            account_type=data.accountType,
            phone=data.phone or user.phone,
            email=data.email or user.email,
            is_primary=is_first,
            meta={},
        )
        account = self.repo.save(self.db, account)
        logger.info(f"🏦 Bank account {account.id} added for {user.user_id} (primary={is_first})")
        return account

    def update_account(self, user: Profile, account_id: str, data: BankAccountUpdate) -> BankAccount:
        account = self.get_account(user, account_id)

        identity_changed = (
            (data.accountNumber is not None and data.accountNumber != account.account_number)
            or (data.ifscCode is not None and data.ifscCode != account.ifsc_code)
        )

        updates = {
            "bank_name": data.bankName,
            "account_holder_name": data.accountHolderName,
            "account_number": data.accountNumber,
            "ifsc_code": data.ifscCode,
            "account_type": data.accountType,
            "phone": data.phone,
            "email": data.email,
        }
        for key, value in updates.items():
            if value is not None:
                setattr(account, key, value)

        if identity_changed:
            account.is_verified = False
            account.verified_at = None
            account.verification_method = None
            # Cached payout destination points at the old account
            meta = dict(account.meta or {})
            meta.pop("razorpay_fund_account_id", None)
            account.meta = meta
            logger.info(f"🔄 Bank account {account.id} details changed; verification reset")

        return self.repo.save(self.db, account)

    def delete_account(self, user: Profile, account_id: str) -> dict:
        account = self.get_account(user, account_id)
        was_primary = account.is_primary
        self.repo.delete(self.db, account)

        if was_primary:
            remaining = self.repo.list_accounts(self.db, user.user_id)
            if remaining:
                remaining[0].is_primary = True
                self.db.commit()
        return {"message": "Bank account deleted"}

    def set_primary(self, user: Profile, account_id: str) -> BankAccount:
        account = self.get_account(user, account_id)
        self.repo.clear_primary(self.db, user.user_id)
        account.is_primary = True
        return self.repo.save(self.db, account)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def send_otp(self, user: Profile, account_id: str, method: str) -> dict:
        account = self.get_account(user, account_id)
        if account.is_verified:
            raise HTTPException(status_code=400, detail="Bank account is already verified")

        otp = generate_otp()
        self.repo.supersede_pending(self.db, account.id)
        verification = BankAccountVerification(
            bank_account_id=account.id,
            otp_hash=hash_otp(account.id, otp),
            method=method,
            expires_at=utcnow() + timedelta(minutes=OTP_TTL_MINUTES),
            attempts=0,
            status="pending",
        )
        self.db.add(verification)
        self.db.commit()

        try:
            await deliver_otp(
                method,
                otp,
                email=account.email or user.email,
                phone=account.phone or user.phone,
                account_hint=account.account_number[-4:],
            )
        except OTPDeliveryError as e:
            logger.error(f"❌ OTP delivery via {method} failed for account {account.id}: {e}")
            self.db.delete(verification)
            self.db.commit()
            raise HTTPException(
                status_code=502,
                detail={"error": "Failed to send OTP", "message": "Please try again or contact support"},
            ) from e

        logger.info(f"📨 OTP sent via {method} for bank account {account.id}")
        message = (
            "OTP sent to your registered mobile number"
            if method == "sms"
            else "OTP sent to your registered email address"
        )
        return {
            "success": True,
            "message": message,
            "method": method,
            "expiresIn": OTP_TTL_MINUTES * 60,
        }

    def verify_otp(self, user: Profile, account_id: str, otp: str) -> dict:
        account = self.get_account(user, account_id)
        verification = self.repo.get_pending_verification(self.db, account.id)
        if not verification:
            raise HTTPException(status_code=400, detail="No pending verification found")

        if verification.expires_at < utcnow():
            raise HTTPException(status_code=400, detail="OTP has expired. Please request a new one.")

        if verification.attempts >= OTP_MAX_ATTEMPTS:
            raise HTTPException(
                status_code=400, detail="Too many failed attempts. Please request a new OTP."
            )

        if not hmac.compare_digest(verification.otp_hash, hash_otp(account.id, otp)):
            verification.attempts += 1
            self.db.commit()
            logger.warning(
                f"⚠️ Invalid OTP for bank account {account.id} "
                f"(attempt {verification.attempts}/{OTP_MAX_ATTEMPTS})"
            )
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Invalid OTP",
                    "attemptsLeft": max(0, OTP_MAX_ATTEMPTS - verification.attempts),
                },
            )

        now = utcnow()
        account.is_verified = True
        account.verified_at = now
        account.verification_method = "otp"
        verification.status = "completed"
        verification.verified_at = now
        self.db.commit()

        logger.info(f"✅ Bank account {account.id} verified by OTP")
        return {"success": True, "message": "Bank account verified successfully!", "verified": True}

    def auto_verify(self, user: Profile, account_id: str) -> dict:
        account = self.get_account(user, account_id)
        if account.is_verified:
            return {"success": True, "message": "Bank account is already verified", "verified": True}

        if not account.ifsc_code or len(account.account_number or "") < AUTO_VERIFY_MIN_ACCOUNT_DIGITS:
            logger.info(f"ℹ️ Automatic verification rejected for bank account {account.id}")
            raise HTTPException(
                status_code=400,
                detail={
                    "success": False,
                    "message": "Automatic verification failed. Please use OTP verification.",
                    "error": "Invalid bank account details",
                },
            )

        account.is_verified = True
        account.verified_at = utcnow()
        account.verification_method = "auto"
        self.db.commit()

        logger.info(f"✅ Bank account {account.id} verified automatically")
        return {
            "success": True,
            "message": "Bank account verified automatically!",
            "verified": True,
            "method": "auto",
        }
