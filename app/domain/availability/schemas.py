"""Availability domain schemas - Pydantic models for validation"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_date_string, validate_hhmm


@dataclass
class AvailabilityCheckResult:
    is_available: bool
    reason: Optional[str] = None
    is_in_schedule: bool = False
    is_online: bool = False


class AvailabilityResponse(BaseModel):
    isAvailable: bool
    reason: Optional[str] = None
    isInSchedule: bool
    isOnline: bool

    @classmethod
    def from_result(cls, result: AvailabilityCheckResult) -> "AvailabilityResponse":
        return cls(
            isAvailable=result.is_available,
            reason=result.reason,
            isInSchedule=result.is_in_schedule,
            isOnline=result.is_online,
        )


class SlotCreate(BaseModel):
    """Schema for creating a weekly slot"""

    dayOfWeek: int
    startTime: str
    endTime: str
    isActive: bool = True

    @field_validator("dayOfWeek")
    @classmethod
    def validate_day(cls, v):
        if v < 0 or v > 6:
            raise ValueError("dayOfWeek must be between 0 (Sunday) and 6 (Saturday)")
        return v

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)

    @model_validator(mode="after")
    def validate_range(self):
        if self.startTime >= self.endTime:
            raise ValueError("startTime must be before endTime")
        return self


class SlotUpdate(BaseModel):
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isActive: Optional[bool] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)


class SlotResponse(BaseModel):
    id: str
    dayOfWeek: int
    startTime: str
    endTime: str
    isActive: bool


class SpecialDayUpsert(BaseModel):
    """Per-date override; hours are optional when available"""

    date: str
    isAvailable: bool = False
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return validate_date_string(v)

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)

    @model_validator(mode="after")
    def validate_hours(self):
        if bool(self.startTime) != bool(self.endTime):
            raise ValueError("startTime and endTime must be given together")
        if self.startTime and self.startTime >= self.endTime:
            raise ValueError("startTime must be before endTime")
        return self


class SpecialDayResponse(BaseModel):
    id: str
    date: str
    isAvailable: bool
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    reason: Optional[str] = None
