"""
Automatic expiry of bookings whose date has passed

Open bookings (pending or confirmed) scheduled before 00:00 today in the
platform timezone are cancelled. Each affected customer and designer gets a
single notification carrying their count.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...utils.time_utils import platform_day_start_utc, utcnow
from ..notifications.service import create_notification
from .repository import BookingRepository

logger = logging.getLogger(__name__)


def expire_stale_bookings(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Cancel stale bookings and notify the people involved.

    Returns:
        dict: ``expired_count`` and ``notifications_sent``
    """
    repo = BookingRepository()
    cutoff = platform_day_start_utc(now)
    logger.info(f"🕐 Expiring bookings scheduled before {cutoff.isoformat()} UTC")

    try:
        stale = repo.find_stale(db, cutoff)
        if not stale:
            logger.info("✅ No expired bookings to cancel")
            return {"expired_count": 0, "notifications_sent": 0}

        for booking in stale:
            booking.status = "cancelled"
            booking.updated_at = utcnow()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Error cancelling expired bookings: {e}")
        raise

    logger.info(f"✅ Cancelled {len(stale)} expired bookings")

    designer_users = repo.designer_user_ids(db, list({b.designer_id for b in stale}))

    # user_id -> [count, first related booking]
    per_user: dict[str, list] = {}
    for booking in stale:
        affected = [booking.customer_id, designer_users.get(booking.designer_id)]
        for user_id in filter(None, affected):
            entry = per_user.setdefault(user_id, [0, booking.id])
            entry[0] += 1

    sent = 0
    for user_id, (count, related_id) in per_user.items():
        notification = create_notification(
            db,
            user_id,
            "booking_cancelled",
            "Sessions Expired",
            f"{count} scheduled session(s) have been automatically cancelled as the date has passed.",
            related_id=related_id,
        )
        if notification is not None:
            sent += 1

    logger.info(f"📬 Created {sent} expiry notifications")
    return {"expired_count": len(stale), "notifications_sent": sent}
