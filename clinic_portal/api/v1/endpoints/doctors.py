"""Doctor directory and slot availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from clinic_portal.core.exceptions import NotFoundException
from clinic_portal.dependencies import (
    CacheDep,
    ClockDep,
    CurrentUser,
    DatabaseSession,
    SweptDatabaseSession,
)
from clinic_portal.schemas.appointments import SlotAvailabilityResponse
from clinic_portal.schemas.doctors import (
    DoctorDetailResponse,
    DoctorListResponse,
    DoctorResponse,
)
from clinic_portal.services.doctor_service import DoctorService
from clinic_portal.services.slot_service import SlotService

router = APIRouter()


def get_doctor_service(cache_manager: CacheDep) -> DoctorService:
    """Get doctor service instance."""
    return DoctorService(cache_manager=cache_manager)


@router.get("/", response_model=DoctorListResponse)
async def list_doctors(
    db: DatabaseSession,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Number of records to return"),
    specialization: str | None = Query(None, description="Filter by specialization"),
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """
    List active doctors.

    - **skip**: Pagination offset
    - **limit**: Number of results (max 100)
    - **specialization**: Filter by medical specialization
    """
    items, total = await doctor_service.get_doctors(
        db=db,
        skip=skip,
        limit=limit,
        specialization=specialization,
    )
    return DoctorListResponse(total=total, skip=skip, limit=limit, items=items)


@router.get("/{doctor_id}", response_model=DoctorDetailResponse)
async def get_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Get an active doctor with their working days and hours."""
    doctor = await doctor_service.get_doctor_by_id(db, doctor_id)
    if doctor is None:
        raise NotFoundException("Doctor not found")

    schedule = await doctor_service.get_schedule(db, doctor_id)
    return DoctorDetailResponse(
        doctor=DoctorResponse.model_validate(doctor),
        schedule=schedule,
    )


@router.get("/{doctor_id}/slots", response_model=SlotAvailabilityResponse)
async def get_available_slots(
    doctor_id: UUID,
    current_user: CurrentUser,
    db: SweptDatabaseSession,
    clock: ClockDep,
    slot_date: date = Query(..., alias="date", description="Target date (YYYY-MM-DD)"),
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """
    Bookable 30-minute slots of a doctor on a date.

    - **date**: Today or a later date
    """
    service = SlotService(db, doctor_service=doctor_service, clock=clock)
    return await service.get_available_slots(doctor_id, slot_date)
