"""Availability repository - Database operations for slots and special days"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Designer, DesignerSlot, DesignerSpecialDay


class AvailabilityRepository:
    """Repository for designer schedule database operations"""

    @staticmethod
    def get_designer(db: Session, designer_id: str) -> Optional[Designer]:
        return db.query(Designer).filter(Designer.id == designer_id).first()

    @staticmethod
    def get_special_day(db: Session, owner_keys: list[str], date: str) -> Optional[DesignerSpecialDay]:
        """
        Special day for a date, trying each owner key in order.

        Rows are keyed by either the designer id or the designer's user id;
        the first key with a match wins.
        """
        for key in owner_keys:
            row = (
                db.query(DesignerSpecialDay)
                .filter(DesignerSpecialDay.designer_id == key, DesignerSpecialDay.date == date)
                .first()
            )
            if row:
                return row
        return None

    @staticmethod
    def get_active_slots(db: Session, owner_keys: list[str], day_of_week: int) -> list[DesignerSlot]:
        """Active slots for a weekday, trying each owner key in order"""
        for key in owner_keys:
            rows = (
                db.query(DesignerSlot)
                .filter(
                    DesignerSlot.designer_id == key,
                    DesignerSlot.day_of_week == day_of_week,
                    DesignerSlot.is_active.is_(True),
                )
                .order_by(DesignerSlot.start_time)
                .all()
            )
            if rows:
                return rows
        return []

    @staticmethod
    def list_slots(db: Session, owner_keys: list[str]) -> list[DesignerSlot]:
        return (
            db.query(DesignerSlot)
            .filter(DesignerSlot.designer_id.in_(owner_keys))
            .order_by(DesignerSlot.day_of_week, DesignerSlot.start_time)
            .all()
        )

    @staticmethod
    def get_slot(db: Session, slot_id: str, owner_keys: list[str]) -> Optional[DesignerSlot]:
        return (
            db.query(DesignerSlot)
            .filter(DesignerSlot.id == slot_id, DesignerSlot.designer_id.in_(owner_keys))
            .first()
        )

    @staticmethod
    def list_special_days(db: Session, owner_keys: list[str]) -> list[DesignerSpecialDay]:
        return (
            db.query(DesignerSpecialDay)
            .filter(DesignerSpecialDay.designer_id.in_(owner_keys))
            .order_by(DesignerSpecialDay.date)
            .all()
        )

    @staticmethod
    def get_special_day_by_id(db: Session, special_day_id: str, owner_keys: list[str]) -> Optional[DesignerSpecialDay]:
        return (
            db.query(DesignerSpecialDay)
            .filter(
                DesignerSpecialDay.id == special_day_id,
                DesignerSpecialDay.designer_id.in_(owner_keys),
            )
            .first()
        )

    @staticmethod
    def save(db: Session, row):
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete(db: Session, row) -> None:
        db.delete(row)
        db.commit()
