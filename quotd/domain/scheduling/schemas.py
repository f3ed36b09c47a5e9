"""Scheduling domain schemas - value objects and Pydantic models for validation"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    COMPLETED = "completed"


# Only these statuses occupy a technician's time
ACTIVE_STATUSES = (AppointmentStatus.TENTATIVE.value, AppointmentStatus.CONFIRMED.value)


class JobStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


class TravelStatus(str, Enum):
    OK = "ok"
    ZERO_RESULTS = "zero_results"
    NOT_FOUND = "not_found"
    ERROR = "error"


FALLBACK_TRAVEL_MINUTES = 30


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored times are naive UTC; aware inputs are converted, naive ones assumed UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Location(BaseModel):
    latitude: float
    longitude: float

    def as_param(self) -> str:
        return f"{self.latitude},{self.longitude}"


class TravelEstimate(BaseModel):
    """Drive time between two points. Non-ok estimates carry the conservative fallback."""

    duration_minutes: int
    distance_meters: int = 0
    status: TravelStatus = TravelStatus.OK
    error: Optional[str] = None

    @classmethod
    def fallback(cls, status: TravelStatus, error: str) -> "TravelEstimate":
        return cls(
            duration_minutes=FALLBACK_TRAVEL_MINUTES,
            distance_meters=0,
            status=status,
            error=error,
        )

    @property
    def is_fallback(self) -> bool:
        return self.status != TravelStatus.OK


class LineItemInput(BaseModel):
    """A quoted line item as seen by the duration estimator"""

    label: str
    quantity: float = Field(default=1, ge=0)
    service_preset_id: Optional[str] = None

    class Config:
        from_attributes = True


class DurationBreakdownItem(BaseModel):
    item: str
    duration: int
    quantity: float
    total: float
    matched: bool


class DurationEstimate(BaseModel):
    total_minutes: int
    breakdown: list[DurationBreakdownItem]
    buffer_minutes: int


class ScheduledAppointment(BaseModel):
    """An existing commitment as seen by the slot validator"""

    id: str
    technician_id: str
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    location: Optional[Location] = None

    class Config:
        from_attributes = True


class TravelWarning(BaseModel):
    type: Literal["tight"] = "tight"
    message: str
    required_minutes: int
    available_minutes: int
    appointment_id: str


class SlotDecision(BaseModel):
    accepted: bool
    reason: Optional[Literal["invalid_window", "time_conflict"]] = None
    message: Optional[str] = None
    conflicting_appointment_id: Optional[str] = None
    warnings: list[TravelWarning] = Field(default_factory=list)


class ReminderSweepResult(BaseModel):
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class AvailableSlot(BaseModel):
    start_time: datetime
    end_time: datetime


# ============================================
# API request / response schemas
# ============================================


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment"""

    jobId: str
    techId: str
    startTime: datetime
    endTime: Optional[datetime] = None
    status: Literal["tentative", "confirmed"]
    notes: Optional[str] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def normalize_times(cls, v):
        return to_naive_utc(v)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v


class SlotCheckRequest(BaseModel):
    """Schema for a dry-run slot validation"""

    jobId: str
    techId: str
    startTime: datetime
    endTime: datetime

    @field_validator("startTime", "endTime")
    @classmethod
    def normalize_times(cls, v):
        return to_naive_utc(v)


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    jobId: str
    techId: str
    startTime: datetime
    endTime: datetime
    status: str
    holdExpiresAt: Optional[datetime] = None
    reminderSent: bool
    notes: Optional[str] = None
    createdBy: Optional[str] = None
    createdAt: Optional[datetime] = None
