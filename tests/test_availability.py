from datetime import datetime, time, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.availability import service as availability
from app.domain.availability.repository import AvailabilityRepository
from app.domain.availability.service import (
    REASON_DESIGNER_UNVERIFIED,
    REASON_NO_SCHEDULE,
    REASON_SCHEDULE_FETCH_FAILED,
    check_designer_availability_for_datetime,
    check_designer_booking_availability,
    evaluate_availability,
)
from app.models import DesignerSlot, DesignerSpecialDay

# 2030-01-07 is a Monday (day_of_week == 1)
MONDAY = "2030-01-07"


def slot(start, end):
    return SimpleNamespace(start_time=start, end_time=end)


def special(is_available, start=None, end=None):
    return SimpleNamespace(is_available=is_available, start_time=start, end_time=end)


def add_slot(db, owner, day, start, end, active=True):
    row = DesignerSlot(designer_id=owner, day_of_week=day, start_time=start, end_time=end, is_active=active)
    db.add(row)
    db.commit()
    return row


# ---------------------------------------------------------------------------
# Pure decision
# ---------------------------------------------------------------------------


def test_online_designer_within_weekly_slot_is_available():
    result = evaluate_availability(time(10, 30), None, [slot("09:00", "17:00")], is_online=True)
    assert result.is_available
    assert result.is_in_schedule
    assert result.is_online
    assert result.reason is None


def test_online_designer_outside_weekly_slot_is_unavailable():
    result = evaluate_availability(time(18, 0), None, [slot("09:00", "17:00")], is_online=True)
    assert not result.is_available
    assert result.reason == "Current time is outside scheduled hours"
    assert result.is_online


def test_slot_end_is_exclusive():
    assert not evaluate_availability(time(17, 0), None, [slot("09:00", "17:00")], True).is_available
    assert evaluate_availability(time(16, 59, 59), None, [slot("09:00", "17:00")], True).is_available


def test_multiple_slots_are_ored():
    slots = [slot("09:00", "11:00"), slot("14:00", "16:00")]
    assert evaluate_availability(time(15, 0), None, slots, True).is_available
    assert not evaluate_availability(time(12, 0), None, slots, True).is_available


def test_no_slots_reports_missing_schedule():
    result = evaluate_availability(time(10, 0), None, [], True)
    assert not result.is_available
    assert result.reason == REASON_NO_SCHEDULE


def test_closed_special_day_overrides_slots():
    result = evaluate_availability(time(10, 0), special(False), [slot("09:00", "17:00")], True)
    assert not result.is_available
    assert result.reason == "Designer is not available today (special day)"


def test_special_day_hours_include_end_minute():
    day = special(True, "10:00", "12:00")
    assert evaluate_availability(time(12, 0), day, [], True).is_available
    assert not evaluate_availability(time(12, 1), day, [], True).is_available


def test_special_day_hours_replace_weekly_slots():
    result = evaluate_availability(time(9, 30), special(True, "10:00", "12:00"), [slot("09:00", "17:00")], True)
    assert not result.is_available
    assert result.reason == "Current time is outside special day hours"


def test_open_special_day_without_hours_falls_back_to_slots():
    result = evaluate_availability(time(10, 0), special(True), [slot("09:00", "17:00")], True)
    assert result.is_available


def test_scheduled_wording():
    result = evaluate_availability(time(20, 0), None, [slot("09:00", "17:00")], False, scheduled=True)
    assert result.reason == "Scheduled time is outside scheduled hours"
    assert not result.is_online


def test_offline_designer_inside_schedule_is_still_available():
    result = evaluate_availability(time(10, 0), None, [slot("09:00", "17:00")], is_online=False)
    assert result.is_available
    assert not result.is_online


# ---------------------------------------------------------------------------
# Database-backed checks
# ---------------------------------------------------------------------------


def test_datetime_check_uses_platform_local_time(db, designer):
    add_slot(db, designer.id, 1, "09:00", "17:00")

    # Naive values are platform-local
    assert check_designer_availability_for_datetime(db, designer.id, datetime(2030, 1, 7, 10, 0)).is_available

    # 04:30 UTC is 10:00 in Asia/Kolkata
    aware = datetime(2030, 1, 7, 4, 30, tzinfo=timezone.utc)
    assert check_designer_availability_for_datetime(db, designer.id, aware).is_available

    # 12:00 UTC is 17:30 local
    late = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)
    result = check_designer_availability_for_datetime(db, designer.id, late)
    assert not result.is_available
    assert result.reason == "Scheduled time is outside scheduled hours"


def test_slots_keyed_by_user_id_are_found(db, designer):
    add_slot(db, designer.user_id, 1, "09:00", "17:00")
    assert check_designer_availability_for_datetime(db, designer.id, datetime(2030, 1, 7, 10, 0)).is_available


def test_inactive_slots_are_ignored(db, designer):
    add_slot(db, designer.id, 1, "09:00", "17:00", active=False)
    result = check_designer_availability_for_datetime(db, designer.id, datetime(2030, 1, 7, 10, 0))
    assert not result.is_available
    assert result.reason == REASON_NO_SCHEDULE


def test_special_day_row_overrides_weekly_schedule(db, designer):
    add_slot(db, designer.id, 1, "09:00", "17:00")
    db.add(DesignerSpecialDay(designer_id=designer.id, date=MONDAY, is_available=False, reason="Holiday"))
    db.commit()

    result = check_designer_availability_for_datetime(db, designer.id, datetime(2030, 1, 7, 10, 0))
    assert not result.is_available
    assert result.reason == "Designer is not available on this date (special day)"


def test_unknown_designer_is_unavailable(db):
    result = check_designer_booking_availability(db, "missing-designer")
    assert not result.is_available
    assert result.reason == REASON_DESIGNER_UNVERIFIED


def test_slot_query_failure_is_reported_conservatively(db, designer, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(AvailabilityRepository, "get_active_slots", staticmethod(broken))
    result = check_designer_availability_for_datetime(db, designer.id, datetime(2030, 1, 7, 10, 0))
    assert not result.is_available
    assert result.reason == REASON_SCHEDULE_FETCH_FAILED
    assert result.is_online


def test_unexpected_failure_is_reported_conservatively(db, designer, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(availability, "evaluate_availability", broken)
    result = check_designer_availability_for_datetime(db, designer.id, datetime(2030, 1, 7, 10, 0))
    assert not result.is_available
    assert result.reason == availability.REASON_CHECK_FAILED


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


def test_designer_manages_slots_and_public_check(client, auth, designer):
    auth.login(designer.profile)

    response = client.post("/availability/slots", json={"dayOfWeek": 1, "startTime": "09:00", "endTime": "17:00"})
    assert response.status_code == 201
    slot_id = response.json()["id"]

    response = client.get(f"/availability/designers/{designer.id}/check", params={"at": "2030-01-07T10:00:00"})
    assert response.status_code == 200
    body = response.json()
    assert body["isAvailable"] is True
    assert body["isInSchedule"] is True

    response = client.patch(f"/availability/slots/{slot_id}", json={"isActive": False})
    assert response.status_code == 200
    assert response.json()["isActive"] is False

    response = client.get(f"/availability/designers/{designer.id}/check", params={"at": "2030-01-07T10:00:00"})
    assert response.json()["isAvailable"] is False


def test_slot_with_inverted_range_is_rejected(client, auth, designer):
    auth.login(designer.profile)
    response = client.post("/availability/slots", json={"dayOfWeek": 1, "startTime": "17:00", "endTime": "09:00"})
    assert response.status_code == 422


def test_customer_cannot_manage_slots(client, auth, customer):
    auth.login(customer)
    response = client.get("/availability/slots")
    assert response.status_code == 403


def test_special_day_upsert_replaces_existing_override(client, auth, designer):
    auth.login(designer.profile)

    first = client.put("/availability/special-days", json={"date": MONDAY, "isAvailable": False})
    assert first.status_code == 200
    second = client.put(
        "/availability/special-days",
        json={"date": MONDAY, "isAvailable": True, "startTime": "10:00", "endTime": "12:00"},
    )
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]

    days = client.get("/availability/special-days").json()
    assert len(days) == 1
    assert days[0]["startTime"] == "10:00"


@pytest.mark.parametrize("value", ["2030-02-31", "2030-13-01", "07-01-2030"])
def test_special_day_rejects_impossible_dates(client, auth, db, designer, value):
    auth.login(designer.profile)
    response = client.put("/availability/special-days", json={"date": value, "isAvailable": False})
    assert response.status_code == 422
    assert db.query(DesignerSpecialDay).count() == 0
