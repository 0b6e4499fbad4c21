"""Lazy status sweeper run before appointment and slot reads."""

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy import and_, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from clinic_portal.config import settings
from clinic_portal.core.clock import Clock, clinic_now
from clinic_portal.models.appointments import appointments
from clinic_portal.schemas.appointments import OPEN_STATUSES, AppointmentStatus

logger = structlog.get_logger(__name__)

AUTO_CANCEL_NOTE = " [Auto-cancelled: appointment time passed without check-in]"
AUTO_EXPIRE_NOTE = " [Auto-expired: not confirmed before the confirmation deadline]"

_OPEN_VALUES = [s.value for s in OPEN_STATUSES]


@dataclass(frozen=True)
class SweepResult:
    """Rows moved by one sweep, per target status."""

    cancelled: int = 0
    completed: int = 0
    expired: int = 0

    @property
    def total(self) -> int:
        return self.cancelled + self.completed + self.expired


def scheduled_before(moment: datetime) -> ColumnElement[bool]:
    """Appointments whose scheduled date and time fall before ``moment``."""
    day, at = moment.date(), moment.time()
    return or_(
        appointments.c.appointment_date < day,
        and_(
            appointments.c.appointment_date == day,
            appointments.c.appointment_time < at,
        ),
    )


def _append_note(note: str):
    return func.coalesce(appointments.c.notes, "").concat(note)


class StatusSweeper:
    """Moves stale appointments into their terminal statuses."""

    def __init__(self, db: AsyncSession, clock: Clock = clinic_now):
        self.db = db
        self.clock = clock

    async def run(self) -> SweepResult:
        """
        Apply all sweep passes in one transaction.

        Failures are logged and rolled back; the caller's request continues
        with whatever state the database already had.

        Returns:
            Row counts per pass, all zero on failure
        """
        now = self.clock()
        try:
            result = SweepResult(
                cancelled=await self._cancel_missed(now),
                completed=await self._complete_checked_in(now),
                expired=(
                    await self._expire_unconfirmed(now)
                    if settings.auto_expire_unconfirmed
                    else 0
                ),
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("status_sweep_failed", error=str(e), exc_info=True)
            return SweepResult()

        if result.total:
            logger.info(
                "status_sweep_completed",
                cancelled=result.cancelled,
                completed=result.completed,
                expired=result.expired,
            )
        return result

    async def _cancel_missed(self, now: datetime) -> int:
        result = await self.db.execute(
            update(appointments)
            .where(
                appointments.c.status.in_(_OPEN_VALUES),
                appointments.c.checked_in_at.is_(None),
                scheduled_before(now),
            )
            .values(
                status=AppointmentStatus.CANCELLED.value,
                cancelled_at=now,
                notes=_append_note(AUTO_CANCEL_NOTE),
                updated_at=now,
            )
        )
        return result.rowcount

    async def _complete_checked_in(self, now: datetime) -> int:
        threshold = now - timedelta(minutes=settings.completion_grace_minutes)
        result = await self.db.execute(
            update(appointments)
            .where(
                appointments.c.status.in_(_OPEN_VALUES),
                appointments.c.checked_in_at.is_not(None),
                scheduled_before(threshold),
            )
            .values(
                status=AppointmentStatus.COMPLETED.value,
                updated_at=now,
            )
        )
        return result.rowcount

    async def _expire_unconfirmed(self, now: datetime) -> int:
        result = await self.db.execute(
            update(appointments)
            .where(
                appointments.c.status == AppointmentStatus.PENDING.value,
                appointments.c.confirmed_at.is_(None),
                appointments.c.confirmation_deadline < now,
            )
            .values(
                status=AppointmentStatus.EXPIRED.value,
                notes=_append_note(AUTO_EXPIRE_NOTE),
                updated_at=now,
            )
        )
        return result.rowcount
