"""
Booking service - Scheduled consultations

Status flow:
    pending -> confirmed | declined | cancelled
    confirmed -> cancelled | completed
Rescheduling an open booking re-checks availability and resets it to pending.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Booking, Profile
from ...utils.time_utils import to_platform_local, to_storage_utc, utcnow
from ..availability.service import check_designer_availability_for_datetime
from ..notifications.service import create_notification
from ..wallet.service import WalletService
from .repository import OPEN_STATUSES, BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


def _display_time(dt: datetime) -> str:
    return to_platform_local(dt.replace(tzinfo=timezone.utc)).strftime("%d %b %Y, %I:%M %p")


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_booking(self, user: Profile, booking_id: str) -> Booking:
        """Participants only; anyone else gets 404"""
        booking = self.repo.get_by_id(self.db, booking_id)
        if not booking or not self._is_participant(user, booking):
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def list_bookings(self, user: Profile, role: str, status: Optional[str] = None) -> list[Booking]:
        if role == "designer":
            designer = self.repo.get_designer_by_user(self.db, user.user_id)
            if not designer:
                raise HTTPException(status_code=403, detail="Designer account required")
            return self.repo.list_for_designer(self.db, designer.id, status)
        return self.repo.list_for_customer(self.db, user.user_id, status)

    @staticmethod
    def _is_designer(user: Profile, booking: Booking) -> bool:
        return booking.designer is not None and booking.designer.user_id == user.user_id

    def _is_participant(self, user: Profile, booking: Booking) -> bool:
        return booking.customer_id == user.user_id or self._is_designer(user, booking)

    def _ensure_available(self, designer_id: str, scheduled_at: datetime) -> None:
        result = check_designer_availability_for_datetime(self.db, designer_id, scheduled_at)
        if not result.is_available:
            logger.info(f"📅 Designer {designer_id} unavailable at {scheduled_at.isoformat()}: {result.reason}")
            raise HTTPException(
                status_code=409,
                detail={"error": "Designer is not available at the requested time", "reason": result.reason},
            )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_booking(self, customer: Profile, data: BookingCreate) -> Booking:
        designer = self.repo.get_designer(self.db, data.designerId)
        if not designer:
            raise HTTPException(status_code=404, detail="Designer not found")
        if designer.user_id == customer.user_id:
            raise HTTPException(status_code=400, detail="You cannot book yourself")

        scheduled_utc = to_storage_utc(data.scheduledDate)
        if scheduled_utc <= utcnow():
            raise HTTPException(status_code=400, detail="Scheduled time must be in the future")

        self._ensure_available(designer.id, data.scheduledDate)

        total = data.totalAmount
        if total is None:
            total = round((designer.hourly_rate or 0) * data.durationHours, 2)

        if total > 0:
            WalletService(self.db).ensure_sufficient_balance(customer.user_id, total)

        booking = Booking(
            customer_id=customer.user_id,
            designer_id=designer.id,
            service=data.service,
            description=data.description,
            requirements=data.requirements,
            scheduled_date=scheduled_utc,
            duration_hours=data.durationHours,
            total_amount=total,
            status="pending",
        )
        booking = self.repo.save(self.db, booking)
        logger.info(f"✅ Booking {booking.id} created: {customer.user_id} -> designer {designer.id}")

        create_notification(
            self.db,
            designer.user_id,
            "booking_request",
            "New Booking Request",
            f"{customer.name} requested a {booking.service} session on {_display_time(scheduled_utc)}",
            related_id=booking.id,
            data={"booking_id": booking.id, "customer_id": customer.user_id, "amount": total},
        )
        return booking

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _designer_booking(self, user: Profile, booking_id: str) -> Booking:
        booking = self.get_booking(user, booking_id)
        if not self._is_designer(user, booking):
            raise HTTPException(status_code=403, detail="Only the designer can respond to this booking")
        return booking

    def accept_booking(self, user: Profile, booking_id: str) -> Booking:
        booking = self._designer_booking(user, booking_id)
        if booking.status != "pending":
            raise HTTPException(status_code=400, detail=f"Cannot accept a {booking.status} booking")

        booking.status = "confirmed"
        booking.channel_name = booking.channel_name or f"booking_{booking.id}"
        booking = self.repo.save(self.db, booking)
        logger.info(f"✅ Booking {booking.id} confirmed")

        create_notification(
            self.db,
            booking.customer_id,
            "booking_confirmed",
            "Booking Confirmed",
            f"Your {booking.service} session on {_display_time(booking.scheduled_date)} has been confirmed",
            related_id=booking.id,
        )
        return booking

    def decline_booking(self, user: Profile, booking_id: str, reason: Optional[str] = None) -> Booking:
        booking = self._designer_booking(user, booking_id)
        if booking.status != "pending":
            raise HTTPException(status_code=400, detail=f"Cannot decline a {booking.status} booking")

        booking.status = "declined"
        booking = self.repo.save(self.db, booking)
        logger.info(f"🚫 Booking {booking.id} declined")

        create_notification(
            self.db,
            booking.customer_id,
            "booking_declined",
            "Booking Declined",
            f"Your {booking.service} session request was declined" + (f": {reason}" if reason else ""),
            related_id=booking.id,
        )
        return booking

    def cancel_booking(self, user: Profile, booking_id: str, reason: Optional[str] = None) -> Booking:
        booking = self.get_booking(user, booking_id)
        if booking.status not in OPEN_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot cancel a {booking.status} booking")

        booking.status = "cancelled"
        booking = self.repo.save(self.db, booking)
        logger.info(f"🚫 Booking {booking.id} cancelled by {user.user_id}")

        other = booking.designer.user_id if booking.customer_id == user.user_id else booking.customer_id
        create_notification(
            self.db,
            other,
            "booking_cancelled",
            "Booking Cancelled",
            f"The {booking.service} session on {_display_time(booking.scheduled_date)} was cancelled"
            + (f": {reason}" if reason else ""),
            related_id=booking.id,
        )
        return booking

    def reschedule_booking(self, user: Profile, booking_id: str, scheduled_at: datetime) -> Booking:
        booking = self.get_booking(user, booking_id)
        if booking.status not in OPEN_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot reschedule a {booking.status} booking")

        scheduled_utc = to_storage_utc(scheduled_at)
        if scheduled_utc <= utcnow():
            raise HTTPException(status_code=400, detail="Scheduled time must be in the future")

        self._ensure_available(booking.designer_id, scheduled_at)

        booking.scheduled_date = scheduled_utc
        booking.status = "pending"
        booking = self.repo.save(self.db, booking)
        logger.info(f"🔄 Booking {booking.id} rescheduled to {scheduled_utc.isoformat()}")

        other = booking.designer.user_id if booking.customer_id == user.user_id else booking.customer_id
        create_notification(
            self.db,
            other,
            "booking_rescheduled",
            "Booking Rescheduled",
            f"The {booking.service} session was moved to {_display_time(scheduled_utc)}",
            related_id=booking.id,
        )
        return booking
