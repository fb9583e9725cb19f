"""Session schemas - Live sessions, reviews and complaints"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator


class SessionStart(BaseModel):
    """Either a confirmed booking or a designer for an instant live session"""

    bookingId: Optional[str] = None
    designerId: Optional[str] = None


class SessionEnd(BaseModel):
    # Designer-reported billed minutes for live sessions, capped at the measured time
    durationMinutes: Optional[float] = None

    @field_validator("durationMinutes")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v < 0:
            raise ValueError("Duration cannot be negative")
        return v


class SessionResponse(BaseModel):
    id: str
    sessionId: str
    bookingId: Optional[str] = None
    customerId: str
    designerId: str
    sessionType: str
    status: str
    startedAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None
    paymentProcessed: bool

    @classmethod
    def from_model(cls, session) -> "SessionResponse":
        return cls(
            id=session.id,
            sessionId=session.session_id,
            bookingId=session.booking_id,
            customerId=session.customer_id,
            designerId=session.designer_id,
            sessionType=session.session_type,
            status=session.status,
            startedAt=session.started_at,
            endedAt=session.ended_at,
            paymentProcessed=session.payment_processed,
        )


class ReviewCreate(BaseModel):
    rating: int
    reviewText: Optional[str] = None

    @field_validator("rating")
    @classmethod
    def validate_rating(cls, v):
        if v < 1 or v > 5:
            raise ValueError("Rating must be between 1 and 5")
        return v


class ReviewResponse(BaseModel):
    id: str
    sessionId: str
    designerId: str
    designerName: str
    rating: int
    reviewText: Optional[str] = None
    reviewDate: Optional[datetime] = None

    @classmethod
    def from_model(cls, review) -> "ReviewResponse":
        return cls(
            id=review.id,
            sessionId=review.session_id,
            designerId=review.designer_id,
            designerName=review.designer_name,
            rating=review.rating,
            reviewText=review.review_text,
            reviewDate=review.review_date,
        )


class ComplaintCreate(BaseModel):
    complaintType: str
    title: str
    description: str
    priority: Literal["low", "medium", "high"] = "medium"

    @field_validator("complaintType", "title", "description")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Field is required")
        return v.strip()


class ComplaintResponse(BaseModel):
    id: str
    sessionId: str
    bookingId: Optional[str] = None
    designerId: str
    complaintType: str
    title: str
    description: str
    priority: str
    status: str
    resolution: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, complaint) -> "ComplaintResponse":
        return cls(
            id=complaint.id,
            sessionId=complaint.session_id,
            bookingId=complaint.booking_id,
            designerId=complaint.designer_id,
            complaintType=complaint.complaint_type,
            title=complaint.title,
            description=complaint.description,
            priority=complaint.priority,
            status=complaint.status,
            resolution=complaint.resolution,
            createdAt=complaint.created_at,
        )
