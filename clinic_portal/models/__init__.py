"""Database models."""

from clinic_portal.models.appointments import appointments, qr_code_history
from clinic_portal.models.base import metadata
from clinic_portal.models.doctors import doctors
from clinic_portal.models.notifications import notifications
from clinic_portal.models.patients import patients
from clinic_portal.models.symptoms import symptom_check_scopes, symptom_checks, symptom_scopes
from clinic_portal.models.users import users

__all__ = [
    "appointments",
    "doctors",
    "metadata",
    "notifications",
    "patients",
    "qr_code_history",
    "symptom_check_scopes",
    "symptom_checks",
    "symptom_scopes",
    "users",
]
