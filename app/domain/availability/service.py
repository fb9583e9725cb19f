"""
Availability service - Decides whether a designer can be booked

A per-date special day overrides the weekly slots. Weekly slots are half-open
[start, end) intervals OR-ed together; special-day hours include both ends.
Times are compared at minute resolution in the platform timezone. Online
status is reported but does not gate availability. Database problems yield a
conservative "unavailable" result instead of an error.
"""

import logging
from datetime import datetime, time
from typing import Optional, Sequence

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Designer, DesignerSlot, DesignerSpecialDay
from ...utils.time_utils import day_of_week, parse_hhmm, platform_tz, to_platform_local
from .repository import AvailabilityRepository
from .schemas import AvailabilityCheckResult, SlotCreate, SlotUpdate, SpecialDayUpsert

logger = logging.getLogger(__name__)

REASON_DESIGNER_UNVERIFIED = "Unable to verify designer status"
REASON_NO_SCHEDULE = "No availability schedule found for this day"
REASON_SCHEDULE_FETCH_FAILED = "Error fetching availability schedule"
REASON_CHECK_FAILED = "Error checking availability"

_REASONS = {
    False: {
        "special_closed": "Designer is not available today (special day)",
        "special_hours": "Current time is outside special day hours",
        "slot_hours": "Current time is outside scheduled hours",
    },
    True: {
        "special_closed": "Designer is not available on this date (special day)",
        "special_hours": "Scheduled time is outside special day hours",
        "slot_hours": "Scheduled time is outside scheduled hours",
    },
}


def _minute(value: time) -> time:
    return value.replace(second=0, microsecond=0)


def special_day_decides(special_day) -> bool:
    """A special day settles the question unless it is open without hours"""
    if special_day is None:
        return False
    if not special_day.is_available:
        return True
    return bool(special_day.start_time and special_day.end_time)


def evaluate_availability(
    local_time: time,
    special_day,
    slots: Sequence,
    is_online: bool,
    scheduled: bool = False,
) -> AvailabilityCheckResult:
    """
    Pure availability decision.

    Args:
        local_time: Time of day in the platform timezone
        special_day: Row with is_available / start_time / end_time, or None
        slots: Active weekly slots for the weekday (start_time / end_time)
        is_online: Reported as-is
        scheduled: Selects "Scheduled ..." reason wording instead of "Current ..."
    """
    reasons = _REASONS[scheduled]
    t = _minute(local_time)

    if special_day is not None:
        if not special_day.is_available:
            return AvailabilityCheckResult(False, reasons["special_closed"], False, is_online)

        start = parse_hhmm(special_day.start_time)
        end = parse_hhmm(special_day.end_time)
        if start and end:
            inside = start <= t <= end
            return AvailabilityCheckResult(
                inside, None if inside else reasons["special_hours"], inside, is_online
            )

    if not slots:
        return AvailabilityCheckResult(False, REASON_NO_SCHEDULE, False, is_online)

    for slot in slots:
        start = parse_hhmm(slot.start_time)
        end = parse_hhmm(slot.end_time)
        if start is None or end is None:
            logger.warning(f"⚠️ Skipping slot with malformed hours: {slot.start_time}-{slot.end_time}")
            continue
        if start <= t < end:
            return AvailabilityCheckResult(True, None, True, is_online)

    return AvailabilityCheckResult(False, reasons["slot_hours"], False, is_online)


def _owner_keys(designer: Designer) -> list[str]:
    keys = [designer.id]
    if designer.user_id and designer.user_id != designer.id:
        keys.append(designer.user_id)
    return keys


def _check(db: Session, designer_id: str, local_dt: datetime, scheduled: bool) -> AvailabilityCheckResult:
    repo = AvailabilityRepository()
    is_online = False
    try:
        try:
            designer = repo.get_designer(db, designer_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching designer {designer_id}: {e}")
            db.rollback()
            designer = None
        if designer is None:
            return AvailabilityCheckResult(False, REASON_DESIGNER_UNVERIFIED, False, False)

        is_online = bool(designer.is_online)
        keys = _owner_keys(designer)
        special_day = repo.get_special_day(db, keys, local_dt.date().isoformat())

        slots: list[DesignerSlot] = []
        if not special_day_decides(special_day):
            try:
                slots = repo.get_active_slots(db, keys, day_of_week(local_dt))
            except SQLAlchemyError as e:
                logger.error(f"❌ Error fetching slots for designer {designer_id}: {e}")
                db.rollback()
                return AvailabilityCheckResult(False, REASON_SCHEDULE_FETCH_FAILED, False, is_online)

        result = evaluate_availability(local_dt.time(), special_day, slots, is_online, scheduled)
        logger.debug(
            f"🔍 Availability for {designer_id} at {local_dt.isoformat()}: "
            f"{result.is_available} ({result.reason})"
        )
        return result

    except Exception as e:
        logger.error(f"❌ Error checking availability for designer {designer_id}: {e}")
        db.rollback()
        return AvailabilityCheckResult(False, REASON_CHECK_FAILED, False, is_online)


def check_designer_booking_availability(
    db: Session, designer_id: str, now: Optional[datetime] = None
) -> AvailabilityCheckResult:
    """Availability right now, in the platform timezone"""
    local_now = datetime.now(platform_tz()) if now is None else to_platform_local(now)
    return _check(db, designer_id, local_now, scheduled=False)


def check_designer_availability_for_datetime(
    db: Session, designer_id: str, scheduled_at: datetime
) -> AvailabilityCheckResult:
    """Availability at a target timestamp; naive values are taken as platform-local"""
    return _check(db, designer_id, to_platform_local(scheduled_at), scheduled=True)


class AvailabilityService:
    """Service layer for a designer managing their own schedule"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()

    # Weekly slots

    def list_slots(self, designer: Designer) -> list[DesignerSlot]:
        return self.repo.list_slots(self.db, _owner_keys(designer))

    def list_public_slots(self, designer_id: str) -> list[DesignerSlot]:
        designer = self.repo.get_designer(self.db, designer_id)
        if not designer:
            raise HTTPException(status_code=404, detail="Designer not found")
        return [s for s in self.list_slots(designer) if s.is_active]

    def create_slot(self, designer: Designer, data: SlotCreate) -> DesignerSlot:
        slot = DesignerSlot(
            designer_id=designer.id,
            day_of_week=data.dayOfWeek,
            start_time=data.startTime,
            end_time=data.endTime,
            is_active=data.isActive,
        )
        slot = self.repo.save(self.db, slot)
        logger.info(f"✅ Slot created for designer {designer.id}: day {slot.day_of_week} {slot.start_time}-{slot.end_time}")
        return slot

    def update_slot(self, designer: Designer, slot_id: str, data: SlotUpdate) -> DesignerSlot:
        slot = self.repo.get_slot(self.db, slot_id, _owner_keys(designer))
        if not slot:
            raise HTTPException(status_code=404, detail="Slot not found")

        start = data.startTime if data.startTime is not None else slot.start_time
        end = data.endTime if data.endTime is not None else slot.end_time
        if start[:5] >= end[:5]:
            raise HTTPException(status_code=400, detail="startTime must be before endTime")

        slot.start_time = start
        slot.end_time = end
        if data.isActive is not None:
            slot.is_active = data.isActive
        return self.repo.save(self.db, slot)

    def delete_slot(self, designer: Designer, slot_id: str) -> dict:
        slot = self.repo.get_slot(self.db, slot_id, _owner_keys(designer))
        if not slot:
            raise HTTPException(status_code=404, detail="Slot not found")
        self.repo.delete(self.db, slot)
        return {"message": "Slot deleted"}

    # Special days

    def list_special_days(self, designer: Designer) -> list[DesignerSpecialDay]:
        return self.repo.list_special_days(self.db, _owner_keys(designer))

    def upsert_special_day(self, designer: Designer, data: SpecialDayUpsert) -> DesignerSpecialDay:
        """One special day per date; an existing row for the date is replaced"""
        row = self.repo.get_special_day(self.db, _owner_keys(designer), data.date)
        if row is None:
            row = DesignerSpecialDay(designer_id=designer.id, date=data.date)
        row.is_available = data.isAvailable
        row.start_time = data.startTime if data.isAvailable else None
        row.end_time = data.endTime if data.isAvailable else None
        row.reason = data.reason
        return self.repo.save(self.db, row)

    def delete_special_day(self, designer: Designer, special_day_id: str) -> dict:
        row = self.repo.get_special_day_by_id(self.db, special_day_id, _owner_keys(designer))
        if not row:
            raise HTTPException(status_code=404, detail="Special day not found")
        self.repo.delete(self.db, row)
        return {"message": "Special day deleted"}
