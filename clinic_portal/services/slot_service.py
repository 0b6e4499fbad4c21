"""Slot generation: candidate grid minus booked times."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.core.clock import Clock, clinic_now
from clinic_portal.core.exceptions import PastDateException
from clinic_portal.core.timeutils import SLOT_LENGTH, canonical_time, display_time
from clinic_portal.models.appointments import appointments
from clinic_portal.schemas.appointments import SLOT_RELEASING_STATUSES, SlotAvailabilityResponse
from clinic_portal.schemas.doctors import DoctorSchedule, Weekday
from clinic_portal.services.doctor_service import DoctorService

DOCTOR_UNAVAILABLE = "doctor_unavailable"


@dataclass(frozen=True)
class SlotGrid:
    """
    Candidate slot start times of one working day.

    Iterating starts over from ``start`` each time; the last slot begins
    strictly before ``end``.
    """

    start: time
    end: time
    step: timedelta = SLOT_LENGTH

    def __iter__(self) -> Iterator[time]:
        current = datetime.combine(date.min, self.start)
        stop = datetime.combine(date.min, self.end)
        while current < stop:
            yield current.time()
            current += self.step

    def __contains__(self, value: object) -> bool:
        return isinstance(value, time) and any(slot == value for slot in self)


def available_times(
    grid: SlotGrid,
    booked: set[time],
    not_after: time | None = None,
) -> list[time]:
    """
    Subtract booked times from a grid, preserving grid order.

    Args:
        grid: Candidate slots
        booked: Times held by active appointments
        not_after: Drop slots at or before this time (used for today)
    """
    return [
        slot
        for slot in grid
        if slot not in booked and (not_after is None or slot > not_after)
    ]


async def booked_times(
    db: AsyncSession,
    doctor_id: UUID,
    day: date,
    exclude_appointment_id: UUID | None = None,
) -> set[time]:
    """Times on a doctor's day held by appointments that still occupy a slot."""
    query = select(appointments.c.appointment_time).where(
        appointments.c.doctor_id == doctor_id,
        appointments.c.appointment_date == day,
        appointments.c.status.not_in([s.value for s in SLOT_RELEASING_STATUSES]),
    )
    if exclude_appointment_id is not None:
        query = query.where(appointments.c.id != exclude_appointment_id)

    result = await db.execute(query)
    return set(result.scalars().all())


class SlotService:
    """Computes bookable slots from schedules and the booking ledger."""

    def __init__(
        self,
        db: AsyncSession,
        doctor_service: DoctorService | None = None,
        clock: Clock = clinic_now,
    ):
        """Initialize service with database session, schedule provider and clock."""
        self.db = db
        self.doctor_service = doctor_service or DoctorService()
        self.clock = clock

    async def get_candidate_grid(self, doctor_id: UUID, day: date) -> SlotGrid | None:
        """
        Working-hours grid of a doctor on a date.

        Returns:
            The grid, or None when the doctor does not work that weekday

        Raises:
            NotFoundException: If the doctor does not exist
        """
        schedule: DoctorSchedule = await self.doctor_service.get_schedule(self.db, doctor_id)
        if not schedule.works_on(Weekday.from_index(day.weekday())):
            return None
        return SlotGrid(schedule.start_time, schedule.end_time)

    async def get_available_slots(self, doctor_id: UUID, day: date) -> SlotAvailabilityResponse:
        """
        Available slots for a doctor on a date.

        Args:
            doctor_id: Doctor ID
            day: Target date, today or later

        Returns:
            Display and canonical slot lists, index aligned

        Raises:
            PastDateException: If the date is before today
            NotFoundException: If the doctor does not exist
        """
        now = self.clock()
        if day < now.date():
            raise PastDateException()

        grid = await self.get_candidate_grid(doctor_id, day)
        if grid is None:
            return SlotAvailabilityResponse(
                doctor_id=doctor_id,
                appointment_date=day,
                available=False,
                reason=DOCTOR_UNAVAILABLE,
                message="Doctor is not available on this day",
            )

        booked = await booked_times(self.db, doctor_id, day)
        not_after = now.time() if day == now.date() else None
        free = available_times(grid, booked, not_after=not_after)

        return SlotAvailabilityResponse(
            doctor_id=doctor_id,
            appointment_date=day,
            available=bool(free),
            message=None if free else "No available slots on this day",
            slots=[display_time(slot) for slot in free],
            slot_times=[canonical_time(slot) for slot in free],
        )
