"""Session repository - Active sessions, reviews and complaints"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import ActiveSession, CustomerComplaint, Designer, SessionReview


class SessionRepository:
    """Repository for session database operations"""

    @staticmethod
    def get_by_session_id(db: Session, session_id: str) -> Optional[ActiveSession]:
        return db.query(ActiveSession).filter(ActiveSession.session_id == session_id).first()

    @staticmethod
    def get_open_for_booking(db: Session, booking_id: str) -> Optional[ActiveSession]:
        return (
            db.query(ActiveSession)
            .filter(ActiveSession.booking_id == booking_id, ActiveSession.status.in_(("waiting", "active")))
            .first()
        )

    @staticmethod
    def designer_is_busy(db: Session, designer_id: str) -> bool:
        return (
            db.query(ActiveSession)
            .filter(ActiveSession.designer_id == designer_id, ActiveSession.status == "active")
            .count()
            > 0
        )

    @staticmethod
    def list_for_user(db: Session, user_id: str, designer_id: Optional[str] = None) -> list[ActiveSession]:
        condition = ActiveSession.customer_id == user_id
        if designer_id:
            condition = or_(condition, ActiveSession.designer_id == designer_id)
        return db.query(ActiveSession).filter(condition).order_by(ActiveSession.created_at.desc()).all()

    @staticmethod
    def get_review(db: Session, session_id: str, customer_id: str) -> Optional[SessionReview]:
        return (
            db.query(SessionReview)
            .filter(SessionReview.session_id == session_id, SessionReview.customer_id == customer_id)
            .first()
        )

    @staticmethod
    def rating_summary(db: Session, designer_id: str) -> tuple[float, int]:
        avg, count = (
            db.query(func.avg(SessionReview.rating), func.count(SessionReview.id))
            .filter(SessionReview.designer_id == designer_id)
            .one()
        )
        return round(float(avg or 0), 2), int(count or 0)

    @staticmethod
    def list_reviews_for_designer(db: Session, designer_id: str, limit: int = 50) -> list[SessionReview]:
        return (
            db.query(SessionReview)
            .filter(SessionReview.designer_id == designer_id)
            .order_by(SessionReview.review_date.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_complaints(db: Session, customer_id: str) -> list[CustomerComplaint]:
        return (
            db.query(CustomerComplaint)
            .filter(CustomerComplaint.customer_id == customer_id)
            .order_by(CustomerComplaint.created_at.desc())
            .all()
        )

    @staticmethod
    def get_designer(db: Session, designer_id: str) -> Optional[Designer]:
        return db.query(Designer).filter(Designer.id == designer_id).first()

    @staticmethod
    def get_designer_by_user(db: Session, user_id: str) -> Optional[Designer]:
        return db.query(Designer).filter(Designer.user_id == user_id).first()

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
