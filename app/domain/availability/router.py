"""Availability router - Schedule management and availability checks"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_designer
from ...database import get_db
from ...models import Designer
from .schemas import (
    AvailabilityResponse,
    SlotCreate,
    SlotResponse,
    SlotUpdate,
    SpecialDayResponse,
    SpecialDayUpsert,
)
from .service import (
    AvailabilityService,
    check_designer_availability_for_datetime,
    check_designer_booking_availability,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def _slot_response(slot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        dayOfWeek=slot.day_of_week,
        startTime=slot.start_time,
        endTime=slot.end_time,
        isActive=slot.is_active,
    )


def _special_day_response(row) -> SpecialDayResponse:
    return SpecialDayResponse(
        id=row.id,
        date=row.date,
        isAvailable=row.is_available,
        startTime=row.start_time,
        endTime=row.end_time,
        reason=row.reason,
    )


# ============================================================================
# PUBLIC CHECKS
# ============================================================================


@router.get("/designers/{designer_id}/check", response_model=AvailabilityResponse)
async def check_availability(
    designer_id: str,
    at: Optional[datetime] = Query(None, description="ISO timestamp; omit for now"),
    db: Session = Depends(get_db),
):
    """Check whether a designer can be booked now or at a given time"""
    if at is None:
        result = check_designer_booking_availability(db, designer_id)
    else:
        result = check_designer_availability_for_datetime(db, designer_id, at)
    return AvailabilityResponse.from_result(result)


@router.get("/designers/{designer_id}/slots", response_model=list[SlotResponse])
async def get_designer_slots(
    designer_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return [_slot_response(s) for s in service.list_public_slots(designer_id)]


# ============================================================================
# DESIGNER SCHEDULE MANAGEMENT
# ============================================================================


@router.get("/slots", response_model=list[SlotResponse])
async def list_my_slots(
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    return [_slot_response(s) for s in service.list_slots(designer)]


@router.post("/slots", response_model=SlotResponse, status_code=201)
async def create_slot(
    data: SlotCreate,
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    return _slot_response(service.create_slot(designer, data))


@router.patch("/slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: str,
    data: SlotUpdate,
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    return _slot_response(service.update_slot(designer, slot_id, data))


@router.delete("/slots/{slot_id}")
async def delete_slot(
    slot_id: str,
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.delete_slot(designer, slot_id)


@router.get("/special-days", response_model=list[SpecialDayResponse])
async def list_special_days(
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    return [_special_day_response(r) for r in service.list_special_days(designer)]


@router.put("/special-days", response_model=SpecialDayResponse)
async def upsert_special_day(
    data: SpecialDayUpsert,
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Create or replace the override for a date"""
    return _special_day_response(service.upsert_special_day(designer, data))


@router.delete("/special-days/{special_day_id}")
async def delete_special_day(
    special_day_id: str,
    designer: Designer = Depends(get_current_designer),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.delete_special_day(designer, special_day_id)
