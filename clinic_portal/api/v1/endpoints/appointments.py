"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_portal.dependencies import ClockDep, CurrentCaller, SweptDatabaseSession
from clinic_portal.schemas.appointments import (
    ActionResult,
    AppointmentBooked,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentRescheduled,
    AppointmentResponse,
    AppointmentStatus,
)
from clinic_portal.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentBooked,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
) -> AppointmentBooked:
    """
    Book a slot for the authenticated patient.

    Args:
        data: Doctor, date, time and reason
        caller: Authenticated patient
        db: Database session
        clock: Clinic clock

    Returns:
        New appointment ID and check-in QR code
    """
    return await AppointmentService(db, clock=clock).book_appointment(caller, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List the authenticated patient's appointments with filtering."""
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db, clock=clock).list_appointments(caller, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
) -> AppointmentResponse:
    """
    Get one of the authenticated patient's appointments.

    Raises:
        NotFoundException: If appointment not found or not the caller's
    """
    return await AppointmentService(db, clock=clock).get_appointment(caller, appointment_id)


@router.post(
    "/{appointment_id}/confirm",
    response_model=ActionResult,
    status_code=status.HTTP_200_OK,
    summary="Confirm a pending appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
) -> ActionResult:
    """Confirm a pending appointment before its confirmation deadline."""
    return await AppointmentService(db, clock=clock).confirm_appointment(caller, appointment_id)


@router.post(
    "/{appointment_id}/cancel",
    response_model=ActionResult,
    status_code=status.HTTP_200_OK,
    summary="Cancel an appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
) -> ActionResult:
    """Cancel an appointment outside the cancellation cutoff."""
    return await AppointmentService(db, clock=clock).cancel_appointment(caller, appointment_id)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentRescheduled,
    status_code=status.HTTP_200_OK,
    summary="Reschedule an appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
) -> AppointmentRescheduled:
    """Move an appointment to another free slot with the same doctor."""
    return await AppointmentService(db, clock=clock).reschedule_appointment(
        caller, appointment_id, data
    )
