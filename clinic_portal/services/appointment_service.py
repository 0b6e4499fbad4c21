"""Appointment lifecycle: booking, confirmation, cancellation and rescheduling."""

import secrets
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.config import settings
from clinic_portal.core.clock import Clock, clinic_now
from clinic_portal.core.exceptions import (
    AppException,
    NotFoundException,
    PastDateException,
    SlotUnavailableException,
    StateConflictException,
    ValidationException,
    WindowExpiredException,
)
from clinic_portal.core.timeutils import combine, display_date, display_time, is_on_slot_grid
from clinic_portal.models.appointments import appointments, qr_code_history
from clinic_portal.schemas.appointments import (
    OPEN_STATUSES,
    SLOT_RELEASING_STATUSES,
    ActionResult,
    AppointmentBooked,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentRescheduled,
    AppointmentResponse,
    AppointmentStatus,
    CallerContext,
    QRCodeAction,
)
from clinic_portal.services.notification_service import NotificationService
from clinic_portal.services.slot_service import SlotService

logger = structlog.get_logger(__name__)

_OPEN_VALUES = [s.value for s in OPEN_STATUSES]
_RELEASING_VALUES = [s.value for s in SLOT_RELEASING_STATUSES]

_TERMINAL_CODES = {
    AppointmentStatus.CANCELLED: "already_cancelled",
    AppointmentStatus.COMPLETED: "already_completed",
    AppointmentStatus.EXPIRED: "already_expired",
}


def _terminal_rejection(status: AppointmentStatus, verb: str) -> StateConflictException | None:
    """Rejection for a transition attempted from a terminal status, if any."""
    code = _TERMINAL_CODES.get(status)
    if code is None:
        return None
    if status == AppointmentStatus.CANCELLED and verb == "cancel":
        return StateConflictException("Appointment is already cancelled", code)
    article = "an" if status == AppointmentStatus.EXPIRED else "a"
    return StateConflictException(f"Cannot {verb} {article} {status.value} appointment", code)


def generate_qr_code() -> str:
    """Opaque check-in token, 64 bits from the OS CSPRNG."""
    return f"APT-{secrets.token_hex(8).upper()}"


class AppointmentService:
    """Service for the appointment state machine."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = clinic_now,
        slot_service: SlotService | None = None,
    ):
        """Initialize service with database session and clock."""
        self.db = db
        self.clock = clock
        self.slots = slot_service or SlotService(db, clock=clock)

    @asynccontextmanager
    async def _transaction(self, operation: str, **context: Any) -> AsyncIterator[None]:
        """Commit on success, roll back on any failure."""
        try:
            yield
        except AppException:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "appointment_storage_error",
                operation=operation,
                error=str(e),
                **{key: str(value) for key, value in context.items()},
            )
            raise
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

    async def _get_owned_row(
        self,
        appointment_id: UUID,
        caller: CallerContext,
    ) -> Mapping[str, Any]:
        """
        Load an appointment owned by the caller.

        Raises:
            NotFoundException: If it does not exist or belongs to someone else
        """
        result = await self.db.execute(
            select(appointments).where(
                appointments.c.id == appointment_id,
                appointments.c.patient_id == caller.patient_id,
            )
        )
        row = result.mappings().first()
        if row is None:
            raise NotFoundException("Appointment not found")
        return row

    async def _slot_taken(
        self,
        doctor_id: UUID,
        day: date,
        at: time,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """Check whether another slot-holding appointment uses the slot."""
        query = select(appointments.c.id).where(
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == day,
            appointments.c.appointment_time == at,
            appointments.c.status.not_in(_RELEASING_VALUES),
        )
        if exclude_appointment_id is not None:
            query = query.where(appointments.c.id != exclude_appointment_id)

        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def _ensure_offered(self, doctor_id: UUID, day: date, at: time) -> None:
        """Reject times outside the doctor's working days and hours."""
        grid = await self.slots.get_candidate_grid(doctor_id, day)
        if grid is None or at not in grid:
            raise SlotUnavailableException(
                "The doctor does not offer this time slot. Please select another time."
            )

    async def _log_qr_event(
        self,
        appointment_id: UUID,
        qr_code: str,
        caller: CallerContext,
        action: QRCodeAction,
        reason: str,
        now: datetime,
    ) -> None:
        await self.db.execute(
            insert(qr_code_history).values(
                appointment_id=appointment_id,
                qr_code=qr_code,
                generated_by=caller.user_id,
                action=action.value,
                reason=reason,
                created_at=now,
            )
        )

    async def book_appointment(
        self,
        caller: CallerContext,
        data: AppointmentCreate,
    ) -> AppointmentBooked:
        """
        Book a slot for the caller.

        Availability is checked again inside the write transaction; the partial
        unique index on active slots decides any remaining race.

        Args:
            caller: Authenticated patient
            data: Booking request

        Returns:
            New appointment ID and its check-in QR code

        Raises:
            ValidationException: If required fields are blank or the time is off-grid
            PastDateException: If the slot is not in the future
            NotFoundException: If the doctor does not exist
            SlotUnavailableException: If the slot is not offered or already taken
        """
        now = self.clock()
        reason = (data.reason or "").strip()
        if not reason:
            raise ValidationException("Please fill in all required fields")

        day, at = data.appointment_date, data.appointment_time
        if not is_on_slot_grid(at):
            raise ValidationException(
                "Appointment time must start on the hour or half hour",
                code="off_grid_time",
            )
        if combine(day, at) <= now:
            raise PastDateException()

        async with self._transaction(
            "book_appointment",
            doctor_id=data.doctor_id,
            patient_id=caller.patient_id,
        ):
            await self._ensure_offered(data.doctor_id, day, at)

            if await self._slot_taken(data.doctor_id, day, at):
                logger.info(
                    "slot_conflict",
                    doctor_id=str(data.doctor_id),
                    appointment_date=day.isoformat(),
                    appointment_time=at.isoformat(),
                )
                raise SlotUnavailableException("This time slot is no longer available")

            qr_code = generate_qr_code()
            confirmation_deadline = now + timedelta(hours=settings.confirmation_window_hours)

            try:
                result = await self.db.execute(
                    insert(appointments)
                    .values(
                        patient_id=caller.patient_id,
                        doctor_id=data.doctor_id,
                        appointment_date=day,
                        appointment_time=at,
                        status=AppointmentStatus.PENDING.value,
                        confirmation_deadline=confirmation_deadline,
                        qr_code=qr_code,
                        reason=reason,
                        symptoms=(data.symptoms or "").strip() or None,
                        created_at=now,
                        updated_at=now,
                    )
                    .returning(appointments.c.id)
                )
            except IntegrityError:
                logger.info(
                    "slot_conflict",
                    doctor_id=str(data.doctor_id),
                    appointment_date=day.isoformat(),
                    appointment_time=at.isoformat(),
                    detected_by="unique_index",
                )
                raise SlotUnavailableException("This time slot is no longer available")

            appointment_id = result.scalar_one()

            await self._log_qr_event(
                appointment_id,
                qr_code,
                caller,
                QRCodeAction.GENERATED,
                "New appointment booking",
                now,
            )
            await NotificationService.record(
                self.db,
                user_id=caller.user_id,
                title="Appointment Booked",
                message=(
                    f"Your appointment has been booked for {display_date(day)} "
                    f"at {display_time(at)}"
                ),
                created_at=now,
            )

        logger.info(
            "appointment_booked",
            appointment_id=str(appointment_id),
            doctor_id=str(data.doctor_id),
            patient_id=str(caller.patient_id),
        )

        return AppointmentBooked(
            appointment_id=appointment_id,
            qr_code=qr_code,
            status=AppointmentStatus.PENDING,
            confirmation_deadline=confirmation_deadline,
        )

    async def confirm_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
    ) -> ActionResult:
        """
        Confirm a pending appointment before its confirmation deadline.

        Performed as one status-guarded UPDATE; when no row changes, the row
        is re-read only to explain why.

        Raises:
            NotFoundException: If the appointment is not the caller's
            StateConflictException: If it is not pending
            WindowExpiredException: If the confirmation deadline has passed
        """
        now = self.clock()

        async with self._transaction("confirm_appointment", appointment_id=appointment_id):
            result = await self.db.execute(
                update(appointments)
                .where(
                    appointments.c.id == appointment_id,
                    appointments.c.patient_id == caller.patient_id,
                    appointments.c.status == AppointmentStatus.PENDING.value,
                    appointments.c.confirmed_at.is_(None),
                    or_(
                        appointments.c.confirmation_deadline.is_(None),
                        appointments.c.confirmation_deadline >= now,
                    ),
                )
                .values(
                    status=AppointmentStatus.CONFIRMED.value,
                    confirmed_at=now,
                    updated_at=now,
                )
            )

            if result.rowcount == 0:
                row = await self._get_owned_row(appointment_id, caller)
                raise self._confirmation_rejection(row, now)

            await NotificationService.record(
                self.db,
                user_id=caller.user_id,
                title="Appointment Confirmed",
                message="Your appointment has been confirmed! Please arrive 10 minutes early.",
                created_at=now,
            )

        logger.info("appointment_confirmed", appointment_id=str(appointment_id))
        return ActionResult(message="Appointment confirmed successfully")

    @staticmethod
    def _confirmation_rejection(row: Mapping[str, Any], now: datetime) -> AppException:
        status = AppointmentStatus(row["status"])
        if status == AppointmentStatus.CONFIRMED or row["confirmed_at"] is not None:
            return StateConflictException("Appointment is already confirmed", "already_confirmed")
        rejection = _terminal_rejection(status, "confirm")
        if rejection is not None:
            return rejection
        deadline = row["confirmation_deadline"]
        if deadline is not None and deadline < now:
            return WindowExpiredException(
                "The confirmation deadline has passed. Please contact the clinic.",
                "confirmation_expired",
            )
        return StateConflictException(
            "Appointment could not be confirmed. Please refresh and try again.",
            "state_changed",
        )

    async def cancel_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
    ) -> ActionResult:
        """
        Cancel an appointment more than the cutoff ahead of its start.

        Raises:
            NotFoundException: If the appointment is not the caller's
            StateConflictException: If it is terminal or already in the past
            WindowExpiredException: If inside the cancellation cutoff
        """
        now = self.clock()

        async with self._transaction("cancel_appointment", appointment_id=appointment_id):
            row = await self._get_owned_row(appointment_id, caller)

            rejection = _terminal_rejection(AppointmentStatus(row["status"]), "cancel")
            if rejection is not None:
                raise rejection

            scheduled = combine(row["appointment_date"], row["appointment_time"])
            if scheduled < now:
                raise StateConflictException(
                    "Cannot cancel past appointments", "appointment_passed"
                )

            cutoff = scheduled - timedelta(hours=settings.cancellation_cutoff_hours)
            if now > cutoff:
                raise WindowExpiredException(
                    f"Cannot cancel within {settings.cancellation_cutoff_hours} hours of "
                    "appointment time. Please contact the clinic.",
                    "within_cancellation_window",
                )

            result = await self.db.execute(
                update(appointments)
                .where(
                    appointments.c.id == appointment_id,
                    appointments.c.patient_id == caller.patient_id,
                    appointments.c.status.in_(_OPEN_VALUES),
                )
                .values(
                    status=AppointmentStatus.CANCELLED.value,
                    cancelled_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                raise StateConflictException(
                    "Appointment status changed. Please refresh and try again.",
                    "state_changed",
                )

            await NotificationService.record(
                self.db,
                user_id=caller.user_id,
                title="Appointment Cancelled",
                message=(
                    f"Your appointment for {display_date(row['appointment_date'])} at "
                    f"{display_time(row['appointment_time'])} has been cancelled."
                ),
                created_at=now,
            )

        logger.info("appointment_cancelled", appointment_id=str(appointment_id))
        return ActionResult(message="Appointment cancelled successfully")

    async def reschedule_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> AppointmentRescheduled:
        """
        Move an appointment to another slot with the same doctor.

        The row is updated in place, keeps its QR code and becomes confirmed.

        Raises:
            NotFoundException: If the appointment is not the caller's
            StateConflictException: If terminal, already past, or unchanged
            PastDateException: If the new slot is not in the future
            SlotUnavailableException: If the new slot is not offered or taken
        """
        now = self.clock()
        new_date, new_time = data.new_date, data.new_time
        if not is_on_slot_grid(new_time):
            raise ValidationException(
                "Appointment time must start on the hour or half hour",
                code="off_grid_time",
            )

        async with self._transaction("reschedule_appointment", appointment_id=appointment_id):
            row = await self._get_owned_row(appointment_id, caller)

            rejection = _terminal_rejection(AppointmentStatus(row["status"]), "reschedule")
            if rejection is not None:
                raise rejection

            if combine(row["appointment_date"], row["appointment_time"]) < now:
                raise StateConflictException(
                    "Cannot reschedule past appointments", "appointment_passed"
                )

            if combine(new_date, new_time) <= now:
                raise PastDateException("Cannot schedule appointments in the past")

            if row["appointment_date"] == new_date and row["appointment_time"] == new_time:
                raise StateConflictException(
                    "New date/time is the same as current appointment", "no_change"
                )

            doctor_id = row["doctor_id"]
            await self._ensure_offered(doctor_id, new_date, new_time)

            if await self._slot_taken(
                doctor_id, new_date, new_time, exclude_appointment_id=appointment_id
            ):
                raise SlotUnavailableException()

            try:
                result = await self.db.execute(
                    update(appointments)
                    .where(
                        appointments.c.id == appointment_id,
                        appointments.c.patient_id == caller.patient_id,
                        appointments.c.status.in_(_OPEN_VALUES),
                    )
                    .values(
                        appointment_date=new_date,
                        appointment_time=new_time,
                        status=AppointmentStatus.CONFIRMED.value,
                        updated_at=now,
                    )
                )
            except IntegrityError:
                raise SlotUnavailableException()

            if result.rowcount == 0:
                raise StateConflictException(
                    "Appointment status changed. Please refresh and try again.",
                    "state_changed",
                )

            await NotificationService.record(
                self.db,
                user_id=caller.user_id,
                title="Appointment Rescheduled",
                message=(
                    f"Your appointment has been rescheduled to {display_date(new_date)} "
                    f"at {display_time(new_time)}"
                ),
                created_at=now,
            )
            await self._log_qr_event(
                appointment_id,
                row["qr_code"],
                caller,
                QRCodeAction.REGENERATED,
                "Appointment rescheduled",
                now,
            )

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment_id),
            new_date=new_date.isoformat(),
            new_time=new_time.isoformat(),
        )

        return AppointmentRescheduled(
            appointment_id=appointment_id,
            new_date=new_date,
            new_time=new_time,
        )

    async def get_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """
        Get one of the caller's appointments.

        Raises:
            NotFoundException: If appointment not found or not the caller's
        """
        row = await self._get_owned_row(appointment_id, caller)
        return AppointmentResponse.model_validate(dict(row))

    async def list_appointments(
        self,
        caller: CallerContext,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List the caller's appointments with filtering and pagination.

        Args:
            caller: Authenticated patient
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments, latest slot first
        """
        conditions = [appointments.c.patient_id == caller.patient_id]

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(
                appointments.c.appointment_date.desc(),
                appointments.c.appointment_time.desc(),
            )
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )
