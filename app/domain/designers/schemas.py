"""Designer schemas - Public profiles and self-service updates"""

from typing import Optional

from pydantic import BaseModel, field_validator


class DesignerProfileCreate(BaseModel):
    specialty: str
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: list[str] = []
    experienceYears: Optional[int] = None
    hourlyRate: float = 0
    availableForUrgent: bool = False

    @field_validator("hourlyRate")
    @classmethod
    def validate_rate(cls, v):
        if v < 0:
            raise ValueError("Hourly rate cannot be negative")
        return round(v, 2)

    @field_validator("specialty")
    @classmethod
    def validate_specialty(cls, v):
        if not v or not v.strip():
            raise ValueError("Specialty is required")
        return v.strip()


class DesignerProfileUpdate(BaseModel):
    specialty: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[list[str]] = None
    experienceYears: Optional[int] = None
    hourlyRate: Optional[float] = None
    availableForUrgent: Optional[bool] = None

    @field_validator("hourlyRate")
    @classmethod
    def validate_rate(cls, v):
        if v is not None and v < 0:
            raise ValueError("Hourly rate cannot be negative")
        return v


class OnlineStatusUpdate(BaseModel):
    isOnline: bool


class DesignerResponse(BaseModel):
    id: str
    userId: str
    name: str
    avatarUrl: Optional[str] = None
    specialty: str
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: list[str] = []
    experienceYears: Optional[int] = None
    hourlyRate: float
    isOnline: bool
    availableForUrgent: bool
    verificationStatus: str
    averageRating: float
    reviewsCount: int

    @classmethod
    def from_model(cls, designer) -> "DesignerResponse":
        profile = designer.profile
        return cls(
            id=designer.id,
            userId=designer.user_id,
            name=profile.name if profile else "Designer",
            avatarUrl=profile.avatar_url if profile else None,
            specialty=designer.specialty,
            bio=designer.bio,
            location=designer.location,
            skills=designer.skills or [],
            experienceYears=designer.experience_years,
            hourlyRate=designer.hourly_rate or 0,
            isOnline=bool(designer.is_online),
            availableForUrgent=bool(designer.available_for_urgent),
            verificationStatus=designer.verification_status,
            averageRating=designer.average_rating or 0,
            reviewsCount=designer.reviews_count or 0,
        )
