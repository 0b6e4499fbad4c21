"""Single-endpoint action dispatcher used by the portal front end."""

from typing import Annotated

from fastapi import APIRouter, Body, status
from pydantic import BaseModel

from clinic_portal.dependencies import ClockDep, CurrentCaller, SweptDatabaseSession
from clinic_portal.schemas.appointments import AppointmentCreate, AppointmentReschedule
from clinic_portal.schemas.portal import (
    BookAppointmentAction,
    CancelAppointmentAction,
    CheckSymptomsAction,
    ConfirmAppointmentAction,
    GetSlotsAction,
    PortalAction,
    RescheduleAppointmentAction,
)
from clinic_portal.schemas.symptoms import SymptomCheckRequest
from clinic_portal.services.appointment_service import AppointmentService
from clinic_portal.services.slot_service import SlotService
from clinic_portal.services.symptom_check_service import SymptomCheckService

router = APIRouter()


@router.post(
    "/actions",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Dispatch a portal action",
)
async def dispatch_action(
    request: Annotated[PortalAction, Body(discriminator="action")],
    caller: CurrentCaller,
    db: SweptDatabaseSession,
    clock: ClockDep,
) -> BaseModel:
    """
    Run one booking or triage operation selected by ``action``.

    Accepts the same payloads as the resource endpoints plus the action
    name, and answers with the same response bodies.
    """
    appointments = AppointmentService(db, clock=clock)

    if isinstance(request, GetSlotsAction):
        return await SlotService(db, clock=clock).get_available_slots(
            request.doctor_id, request.slot_date
        )

    if isinstance(request, BookAppointmentAction):
        data = AppointmentCreate.model_validate(request.model_dump(exclude={"action"}))
        return await appointments.book_appointment(caller, data)

    if isinstance(request, ConfirmAppointmentAction):
        return await appointments.confirm_appointment(caller, request.appointment_id)

    if isinstance(request, CancelAppointmentAction):
        return await appointments.cancel_appointment(caller, request.appointment_id)

    if isinstance(request, RescheduleAppointmentAction):
        data = AppointmentReschedule.model_validate(
            request.model_dump(exclude={"action", "appointment_id"})
        )
        return await appointments.reschedule_appointment(caller, request.appointment_id, data)

    if isinstance(request, CheckSymptomsAction):
        data = SymptomCheckRequest.model_validate(request.model_dump(exclude={"action"}))
        return await SymptomCheckService(db, clock=clock).check_symptoms(caller, data)

    raise ValueError(f"Unhandled portal action: {request!r}")
