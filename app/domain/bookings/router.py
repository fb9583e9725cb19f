"""Booking router - Customer bookings and designer responses"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import BookingCancel, BookingCreate, BookingReschedule, BookingResponse
from .service import BookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    role: Literal["customer", "designer"] = Query("customer"),
    status: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings where the caller is the customer, or the designer with ``role=designer``"""
    return [BookingResponse.from_model(b) for b in service.list_bookings(current_user, role, status)]


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(service.create_booking(current_user, data))


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(service.get_booking(current_user, booking_id))


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(service.accept_booking(current_user, booking_id))


@router.post("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: str,
    data: Optional[BookingCancel] = None,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    reason = data.reason if data else None
    return BookingResponse.from_model(service.decline_booking(current_user, booking_id, reason))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    data: Optional[BookingCancel] = None,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    reason = data.reason if data else None
    return BookingResponse.from_model(service.cancel_booking(current_user, booking_id, reason))


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: str,
    data: BookingReschedule,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(
        service.reschedule_booking(current_user, booking_id, data.scheduledDate)
    )
