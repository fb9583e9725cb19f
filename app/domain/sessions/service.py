"""
Session service - Live consultation sessions

A session is opened by the customer (from a confirmed booking, or instantly
with an online designer), accepted by the designer and ended by either side.
Ending a session that actually started charges it through the wallet.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import ActiveSession, CustomerComplaint, Profile, SessionReview
from ...utils.time_utils import utcnow
from ..availability.service import check_designer_booking_availability
from ..bookings.repository import BookingRepository
from ..notifications.service import create_notification
from ..wallet.service import WalletService, generate_transaction_id, session_charge
from .repository import SessionRepository
from .schemas import ComplaintCreate, ReviewCreate

logger = logging.getLogger(__name__)


class SessionService:
    """Service layer for sessions, reviews and complaints"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SessionRepository()
        self.booking_repo = BookingRepository()

    def _get_session(self, user: Profile, session_id: str) -> ActiveSession:
        session = self.repo.get_by_session_id(self.db, session_id)
        if not session or not self._is_participant(user, session):
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    @staticmethod
    def _is_designer(user: Profile, session: ActiveSession) -> bool:
        return session.designer is not None and session.designer.user_id == user.user_id

    def _is_participant(self, user: Profile, session: ActiveSession) -> bool:
        return session.customer_id == user.user_id or self._is_designer(user, session)

    def list_sessions(self, user: Profile) -> list[ActiveSession]:
        designer = self.repo.get_designer_by_user(self.db, user.user_id)
        return self.repo.list_for_user(self.db, user.user_id, designer.id if designer else None)

    def get_session(self, user: Profile, session_id: str) -> ActiveSession:
        return self._get_session(user, session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(self, customer: Profile, booking_id: Optional[str], designer_id: Optional[str]) -> ActiveSession:
        if booking_id:
            booking = self.booking_repo.get_by_id(self.db, booking_id)
            if not booking or booking.customer_id != customer.user_id:
                raise HTTPException(status_code=404, detail="Booking not found")
            if booking.status != "confirmed":
                raise HTTPException(status_code=400, detail="Only confirmed bookings can be started")
            existing = self.repo.get_open_for_booking(self.db, booking.id)
            if existing:
                return existing
            designer = booking.designer
            session_type = "scheduled"
        elif designer_id:
            designer = self.repo.get_designer(self.db, designer_id)
            if not designer:
                raise HTTPException(status_code=404, detail="Designer not found")
            availability = check_designer_booking_availability(self.db, designer.id)
            if not availability.is_available:
                raise HTTPException(
                    status_code=409,
                    detail={"error": "Designer is not available right now", "reason": availability.reason},
                )
            session_type = "live"
        else:
            raise HTTPException(status_code=400, detail="bookingId or designerId required")

        if designer.user_id == customer.user_id:
            raise HTTPException(status_code=400, detail="You cannot start a session with yourself")
        if self.repo.designer_is_busy(self.db, designer.id):
            raise HTTPException(status_code=409, detail="Designer is currently in another session")

        session = ActiveSession(
            session_id=generate_transaction_id("SESSION"),
            booking_id=booking_id,
            customer_id=customer.user_id,
            designer_id=designer.id,
            session_type=session_type,
            status="waiting",
        )
        session = self.repo.save(self.db, session)
        logger.info(f"📞 Session {session.session_id} requested by {customer.user_id} ({session_type})")

        create_notification(
            self.db,
            designer.user_id,
            "session_request",
            "Session Request",
            f"{customer.name} wants to start a {session_type} session with you",
            related_id=session.id,
            data={"session_id": session.session_id, "booking_id": booking_id},
        )
        return session

    def accept_session(self, user: Profile, session_id: str) -> ActiveSession:
        session = self._get_session(user, session_id)
        if not self._is_designer(user, session):
            raise HTTPException(status_code=403, detail="Only the designer can accept this session")
        if session.status != "waiting":
            raise HTTPException(status_code=400, detail=f"Cannot accept a session that is {session.status}")

        session.status = "active"
        session.started_at = utcnow()
        session = self.repo.save(self.db, session)
        logger.info(f"✅ Session {session.session_id} started")

        create_notification(
            self.db,
            session.customer_id,
            "session_accepted",
            "Session Accepted",
            "Your designer has joined the session",
            related_id=session.id,
            data={"session_id": session.session_id},
        )
        return session

    def end_session(self, user: Profile, session_id: str, duration_minutes: Optional[float] = None) -> dict:
        session = self._get_session(user, session_id)
        if session.status == "ended":
            raise HTTPException(status_code=400, detail="Session already ended")

        was_started = session.status == "active"
        session.status = "ended"
        session.ended_at = utcnow()
        session = self.repo.save(self.db, session)
        logger.info(f"🔚 Session {session.session_id} ended by {user.user_id}")

        if session.booking is not None and was_started:
            session.booking.status = "completed"
            self.db.commit()

        result = {"session": session, "payment": None}
        if not was_started or session.payment_processed:
            return result

        if duration_minutes is not None and not self._is_designer(user, session):
            logger.info(f"Ignoring duration reported by customer for session {session.session_id}")
            duration_minutes = None
        amount, minutes = session_charge(session, duration_minutes)
        if amount <= 0:
            return result

        try:
            result["payment"] = WalletService(self.db).process_session_payment(
                caller_user_id=user.user_id,
                session_id=session.session_id,
                amount=amount,
                customer_id=session.customer_id,
                designer_user_id=session.designer.user_id,
                session_type=session.session_type,
                duration=minutes,
            )
        except HTTPException as e:
            # Session stays ended; the charge can be retried through the wallet
            logger.warning(f"⚠️ Session {session.session_id} ended but payment failed: {e.detail}")
            result["payment"] = {"success": False, "error": e.detail, "amount": amount}

        self.db.refresh(session)
        return result

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def submit_review(self, customer: Profile, session_id: str, data: ReviewCreate) -> SessionReview:
        session = self._get_session(customer, session_id)
        if session.customer_id != customer.user_id:
            raise HTTPException(status_code=403, detail="Only the customer can review this session")
        if session.status != "ended":
            raise HTTPException(status_code=400, detail="Session has not ended yet")
        if self.repo.get_review(self.db, session.session_id, customer.user_id):
            raise HTTPException(status_code=409, detail="You have already reviewed this session")

        designer = session.designer
        review = SessionReview(
            session_id=session.session_id,
            customer_id=customer.user_id,
            designer_id=designer.id,
            designer_name=designer.profile.name if designer.profile else designer.specialty,
            rating=data.rating,
            review_text=data.reviewText,
        )
        try:
            review = self.repo.save(self.db, review)
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="You have already reviewed this session") from None

        designer.average_rating, designer.reviews_count = self.repo.rating_summary(self.db, designer.id)
        self.db.commit()
        logger.info(
            f"🌟 Review for designer {designer.id}: {data.rating}/5 "
            f"(avg {designer.average_rating} over {designer.reviews_count})"
        )

        create_notification(
            self.db,
            designer.user_id,
            "new_review",
            "New Review",
            f"You received a {data.rating}-star review",
            related_id=review.id,
            data={"rating": data.rating, "session_id": session.session_id},
        )
        return review

    # ------------------------------------------------------------------
    # Complaints
    # ------------------------------------------------------------------

    def file_complaint(self, customer: Profile, session_id: str, data: ComplaintCreate) -> CustomerComplaint:
        session = self._get_session(customer, session_id)
        if session.customer_id != customer.user_id:
            raise HTTPException(status_code=403, detail="Only the customer can file a complaint")

        complaint = CustomerComplaint(
            session_id=session.session_id,
            booking_id=session.booking_id,
            customer_id=customer.user_id,
            designer_id=session.designer_id,
            complaint_type=data.complaintType,
            title=data.title,
            description=data.description,
            priority=data.priority,
            status="open",
        )
        complaint = self.repo.save(self.db, complaint)
        logger.info(f"📝 Complaint {complaint.id} filed for session {session.session_id} ({data.priority})")
        return complaint

    def list_complaints(self, customer: Profile) -> list[CustomerComplaint]:
        return self.repo.list_complaints(self.db, customer.user_id)
