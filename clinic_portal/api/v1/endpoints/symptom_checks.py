"""Symptom checker endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from clinic_portal.dependencies import ClockDep, CurrentCaller, DatabaseSession
from clinic_portal.schemas.symptoms import (
    SymptomCheckDetailResponse,
    SymptomCheckHistoryResponse,
    SymptomCheckRequest,
    SymptomCheckResult,
)
from clinic_portal.services.symptom_check_service import SymptomCheckService

router = APIRouter()


@router.post(
    "/",
    response_model=SymptomCheckResult,
    status_code=status.HTTP_201_CREATED,
    summary="Check symptoms",
)
async def check_symptoms(
    data: SymptomCheckRequest,
    caller: CurrentCaller,
    db: DatabaseSession,
    clock: ClockDep,
) -> SymptomCheckResult:
    """
    Triage a symptom description.

    The result is advisory only and stored in the patient's history.
    """
    return await SymptomCheckService(db, clock=clock).check_symptoms(caller, data)


@router.get(
    "/",
    response_model=SymptomCheckHistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Recent symptom checks",
)
async def list_symptom_checks(
    caller: CurrentCaller,
    db: DatabaseSession,
    clock: ClockDep,
) -> SymptomCheckHistoryResponse:
    """List the ten most recent symptom checks of the authenticated patient."""
    return await SymptomCheckService(db, clock=clock).list_recent(caller)


@router.get(
    "/{check_id}",
    response_model=SymptomCheckDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="View a symptom check",
)
async def get_symptom_check(
    check_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
    clock: ClockDep,
) -> SymptomCheckDetailResponse:
    """View one of the authenticated patient's symptom checks."""
    return await SymptomCheckService(db, clock=clock).get_check(caller, check_id)
