"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from clinic_portal.core.timeutils import canonical_time, normalize_time


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses that no longer hold a slot
SLOT_RELEASING_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.EXPIRED)
# Statuses from which a lifecycle transition is still possible
OPEN_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.EXPIRED,
)


class QRCodeAction(str, Enum):
    """QR code history action enumeration."""

    GENERATED = "generated"
    REGENERATED = "regenerated"


def _parse_time(value: object) -> object:
    """Accept 12-hour and 24-hour strings for time fields."""
    if isinstance(value, str):
        return normalize_time(value)
    return value


class CallerContext(BaseModel):
    """Authenticated patient on whose behalf an operation runs."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    patient_id: UUID


class SlotAvailabilityResponse(BaseModel):
    """Available slots for a doctor on a date, index aligned."""

    success: bool = True
    doctor_id: UUID
    appointment_date: date
    available: bool
    reason: str | None = None
    message: str | None = None
    slots: list[str] = Field(default_factory=list, description="Display times, e.g. 9:30 AM")
    slot_times: list[str] = Field(default_factory=list, description="Canonical HH:MM:SS times")


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    model_config = ConfigDict(str_strip_whitespace=True)

    doctor_id: UUID
    appointment_date: date
    appointment_time: time
    reason: str = Field(..., min_length=1, max_length=500)
    symptoms: str | None = Field(None, max_length=2000)

    @field_validator("appointment_time", mode="before")
    @classmethod
    def normalize_appointment_time(cls, v: object) -> object:
        """Normalize 12-hour input to 24-hour time."""
        return _parse_time(v)


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new date and time."""

    new_date: date
    new_time: time

    @field_validator("new_time", mode="before")
    @classmethod
    def normalize_new_time(cls, v: object) -> object:
        """Normalize 12-hour input to 24-hour time."""
        return _parse_time(v)


class AppointmentBooked(BaseModel):
    """Successful booking response."""

    success: bool = True
    message: str = "Appointment booked successfully!"
    appointment_id: UUID
    qr_code: str
    status: AppointmentStatus
    confirmation_deadline: datetime


class AppointmentRescheduled(BaseModel):
    """Successful reschedule response."""

    success: bool = True
    message: str = "Appointment rescheduled successfully!"
    appointment_id: UUID
    new_date: date
    new_time: time

    @field_serializer("new_time")
    def serialize_new_time(self, value: time) -> str:
        """Serialize as canonical HH:MM:SS."""
        return canonical_time(value)


class ActionResult(BaseModel):
    """Generic success response with a message."""

    success: bool = True
    message: str


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus
    reason: str
    symptoms: str | None = None
    notes: str | None = None
    qr_code: str
    confirmation_deadline: datetime | None = None
    confirmed_at: datetime | None = None
    checked_in_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("appointment_time")
    def serialize_appointment_time(self, value: time) -> str:
        """Serialize as canonical HH:MM:SS."""
        return canonical_time(value)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    success: bool = True
    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
