"""Bank account repository - Database operations for payout accounts"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import BankAccount, BankAccountVerification


class BankAccountRepository:
    """Repository for bank_accounts and their OTP verifications"""

    @staticmethod
    def list_accounts(db: Session, user_id: str) -> list[BankAccount]:
        return (
            db.query(BankAccount)
            .filter(BankAccount.user_id == user_id)
            .order_by(BankAccount.is_primary.desc(), BankAccount.created_at)
            .all()
        )

    @staticmethod
    def get_account(db: Session, account_id: str, user_id: str) -> Optional[BankAccount]:
        return (
            db.query(BankAccount)
            .filter(BankAccount.id == account_id, BankAccount.user_id == user_id)
            .first()
        )

    @staticmethod
    def count_accounts(db: Session, user_id: str) -> int:
        return db.query(BankAccount).filter(BankAccount.user_id == user_id).count()

    @staticmethod
    def clear_primary(db: Session, user_id: str) -> None:
        db.query(BankAccount).filter(
            BankAccount.user_id == user_id, BankAccount.is_primary.is_(True)
        ).update({BankAccount.is_primary: False}, synchronize_session=False)

    @staticmethod
    def save(db: Session, account: BankAccount) -> BankAccount:
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    @staticmethod
    def delete(db: Session, account: BankAccount) -> None:
        db.delete(account)
        db.commit()

    @staticmethod
    def set_metadata(db: Session, account: BankAccount, **updates) -> BankAccount:
        account.meta = {**(account.meta or {}), **updates}
        db.commit()
        db.refresh(account)
        return account

    @staticmethod
    def get_pending_verification(db: Session, account_id: str) -> Optional[BankAccountVerification]:
        return (
            db.query(BankAccountVerification)
            .filter(
                BankAccountVerification.bank_account_id == account_id,
                BankAccountVerification.status == "pending",
            )
            .order_by(BankAccountVerification.created_at.desc())
            .first()
        )

    @staticmethod
    def supersede_pending(db: Session, account_id: str) -> None:
        db.query(BankAccountVerification).filter(
            BankAccountVerification.bank_account_id == account_id,
            BankAccountVerification.status == "pending",
        ).update({BankAccountVerification.status: "superseded"}, synchronize_session=False)
