"""Wallet repository - Ledger queries and inserts"""

from typing import Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from ...models import PlatformSetting, WalletTransaction

CREDIT_TYPES = ("deposit", "refund")
RESERVING_WITHDRAWAL_STATUSES = ("completed", "pending")


class WalletRepository:
    """Repository for wallet_transactions"""

    @staticmethod
    def get_balance(db: Session, user_id: str) -> float:
        """
        Completed deposits and refunds, minus completed payments, minus
        withdrawals that are completed or still pending.
        """
        signed_amount = case(
            (
                and_(
                    WalletTransaction.transaction_type.in_(CREDIT_TYPES),
                    WalletTransaction.status == "completed",
                ),
                WalletTransaction.amount,
            ),
            (
                and_(
                    WalletTransaction.transaction_type == "payment",
                    WalletTransaction.status == "completed",
                ),
                -WalletTransaction.amount,
            ),
            (
                and_(
                    WalletTransaction.transaction_type == "withdrawal",
                    WalletTransaction.status.in_(RESERVING_WITHDRAWAL_STATUSES),
                ),
                -WalletTransaction.amount,
            ),
            else_=0,
        )
        total = (
            db.query(func.coalesce(func.sum(signed_amount), 0))
            .filter(WalletTransaction.user_id == user_id)
            .scalar()
        )
        return round(float(total or 0), 2)

    @staticmethod
    def list_transactions(db: Session, user_id: str, limit: int = 50) -> list[WalletTransaction]:
        return (
            db.query(WalletTransaction)
            .filter(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id)
            .limit(limit)
            .all()
        )

    @staticmethod
    def insert_transaction(db: Session, **fields) -> WalletTransaction:
        """Insert and commit a single ledger row"""
        txn = WalletTransaction(**fields)
        db.add(txn)
        db.commit()
        db.refresh(txn)
        return txn

    @staticmethod
    def delete_transaction(db: Session, transaction_id: str) -> int:
        deleted = (
            db.query(WalletTransaction)
            .filter(WalletTransaction.id == transaction_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def find_by_meta(
        db: Session,
        key: str,
        value: str,
        transaction_type: Optional[str] = None,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Optional[WalletTransaction]:
        query = db.query(WalletTransaction).filter(WalletTransaction.meta[key].as_string() == value)
        if transaction_type:
            query = query.filter(WalletTransaction.transaction_type == transaction_type)
        if status:
            query = query.filter(WalletTransaction.status == status)
        if user_id:
            query = query.filter(WalletTransaction.user_id == user_id)
        return query.order_by(WalletTransaction.created_at.desc()).first()

    @staticmethod
    def update_transaction(
        db: Session, txn: WalletTransaction, status: Optional[str] = None, **meta_updates
    ) -> WalletTransaction:
        if status:
            txn.status = status
        if meta_updates:
            # Reassign so the JSON column is flagged dirty
            txn.meta = {**(txn.meta or {}), **meta_updates}
        db.commit()
        db.refresh(txn)
        return txn

    @staticmethod
    def get_setting(db: Session, key: str):
        row = (
            db.query(PlatformSetting)
            .filter(PlatformSetting.setting_key == key, PlatformSetting.is_active.is_(True))
            .first()
        )
        if row is None:
            return None
        value = row.setting_value
        if isinstance(value, dict):
            value = value.get("value")
        return value
