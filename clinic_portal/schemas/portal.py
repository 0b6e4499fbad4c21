"""Action-discriminated request schemas for the portal dispatcher."""

from datetime import date, time
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clinic_portal.schemas.appointments import AppointmentCreate, AppointmentReschedule
from clinic_portal.schemas.symptoms import SymptomCheckRequest


class GetSlotsAction(BaseModel):
    """Request the available slots of a doctor on a date."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["get_slots"]
    doctor_id: UUID
    slot_date: date = Field(..., alias="date")


class BookAppointmentAction(AppointmentCreate):
    """Book a slot; ``date`` and ``time`` are accepted as short field names."""

    action: Literal["book_appointment"]
    appointment_date: date = Field(
        ..., validation_alias=AliasChoices("appointment_date", "date")
    )
    appointment_time: time = Field(
        ..., validation_alias=AliasChoices("appointment_time", "time")
    )


class ConfirmAppointmentAction(BaseModel):
    """Confirm a pending appointment."""

    action: Literal["confirm_appointment"]
    appointment_id: UUID


class CancelAppointmentAction(BaseModel):
    """Cancel an appointment."""

    action: Literal["cancel_appointment"]
    appointment_id: UUID


class RescheduleAppointmentAction(AppointmentReschedule):
    """Move an appointment to a new slot."""

    action: Literal["reschedule_appointment"]
    appointment_id: UUID


class CheckSymptomsAction(SymptomCheckRequest):
    """Run the symptom checker."""

    action: Literal["check_symptoms"]


PortalAction = (
    GetSlotsAction
    | BookAppointmentAction
    | ConfirmAppointmentAction
    | CancelAppointmentAction
    | RescheduleAppointmentAction
    | CheckSymptomsAction
)
