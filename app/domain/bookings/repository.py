"""Booking repository - Database operations for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, Designer

OPEN_STATUSES = ("pending", "confirmed")


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_by_id(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_designer(db: Session, designer_id: str) -> Optional[Designer]:
        return db.query(Designer).filter(Designer.id == designer_id).first()

    @staticmethod
    def get_designer_by_user(db: Session, user_id: str) -> Optional[Designer]:
        return db.query(Designer).filter(Designer.user_id == user_id).first()

    @staticmethod
    def list_for_customer(db: Session, customer_id: str, status: Optional[str] = None) -> list[Booking]:
        query = db.query(Booking).filter(Booking.customer_id == customer_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.scheduled_date.desc()).all()

    @staticmethod
    def list_for_designer(db: Session, designer_id: str, status: Optional[str] = None) -> list[Booking]:
        query = db.query(Booking).filter(Booking.designer_id == designer_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.scheduled_date.desc()).all()

    @staticmethod
    def find_stale(db: Session, cutoff: datetime) -> list[Booking]:
        """Open bookings scheduled before ``cutoff`` (naive UTC)"""
        return (
            db.query(Booking)
            .filter(Booking.status.in_(OPEN_STATUSES), Booking.scheduled_date < cutoff)
            .order_by(Booking.scheduled_date)
            .all()
        )

    @staticmethod
    def designer_user_ids(db: Session, designer_ids: list[str]) -> dict[str, str]:
        if not designer_ids:
            return {}
        rows = db.query(Designer.id, Designer.user_id).filter(Designer.id.in_(designer_ids)).all()
        return {row.id: row.user_id for row in rows if row.user_id}

    @staticmethod
    def save(db: Session, booking: Booking) -> Booking:
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
