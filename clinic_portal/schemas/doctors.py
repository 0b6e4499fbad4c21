"""Doctor schemas for request/response validation."""

from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class Weekday(str, Enum):
    """Weekday names as stored in ``doctors.available_days``."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        """Map ``date.weekday()`` (Monday == 0) to a Weekday."""
        return list(cls)[index]


class DoctorSchedule(BaseModel):
    """Working days and daily window of a doctor."""

    doctor_id: UUID
    # Empty means no day restriction
    available_days: frozenset[Weekday] = frozenset()
    start_time: time
    end_time: time
    uses_default_hours: bool = False

    def works_on(self, weekday: Weekday) -> bool:
        """Check whether the doctor sees patients on a weekday."""
        return not self.available_days or weekday in self.available_days


class DoctorResponse(BaseModel):
    """Schema for doctor response."""

    id: UUID
    full_name: str
    specialization: str | None = None
    qualification: str | None = None
    consultation_fee: Decimal | None = None
    available_days: list[str] | None = None
    available_hours: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DoctorListResponse(BaseModel):
    """Schema for paginated doctor list response."""

    success: bool = True
    total: int
    skip: int
    limit: int
    items: list[DoctorResponse] = Field(default_factory=list)


class DoctorDetailResponse(BaseModel):
    """Schema for a doctor with the resolved working schedule."""

    success: bool = True
    doctor: DoctorResponse
    schedule: DoctorSchedule
