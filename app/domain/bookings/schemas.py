"""Booking schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class BookingCreate(BaseModel):
    """
    Schema for booking a designer.

    ``scheduledDate`` may carry an offset; without one it is read as
    platform-local time. ``totalAmount`` defaults to hourly rate x duration.
    """

    designerId: str
    service: str
    scheduledDate: datetime
    durationHours: float = 1
    description: Optional[str] = None
    requirements: Optional[str] = None
    totalAmount: Optional[float] = None

    @field_validator("durationHours")
    @classmethod
    def validate_duration(cls, v):
        if v <= 0 or v > 12:
            raise ValueError("Duration must be between 0 and 12 hours")
        return v

    @field_validator("totalAmount")
    @classmethod
    def validate_total(cls, v):
        if v is not None and v < 0:
            raise ValueError("Invalid amount")
        return v

    @field_validator("service")
    @classmethod
    def validate_service(cls, v):
        if not v or not v.strip():
            raise ValueError("Service is required")
        return v.strip()


class BookingReschedule(BaseModel):
    scheduledDate: datetime


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingResponse(BaseModel):
    id: str
    customerId: str
    designerId: str
    designerUserId: Optional[str] = None
    service: str
    description: Optional[str] = None
    requirements: Optional[str] = None
    scheduledDate: datetime
    durationHours: float
    totalAmount: float
    status: str
    channelName: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            customerId=booking.customer_id,
            designerId=booking.designer_id,
            designerUserId=booking.designer.user_id if booking.designer else None,
            service=booking.service,
            description=booking.description,
            requirements=booking.requirements,
            scheduledDate=booking.scheduled_date,
            durationHours=booking.duration_hours,
            totalAmount=booking.total_amount,
            status=booking.status,
            channelName=booking.channel_name,
            createdAt=booking.created_at,
        )
