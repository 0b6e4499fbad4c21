"""API v1 router configuration."""

from fastapi import APIRouter

from clinic_portal.api.v1.endpoints import (
    appointments,
    doctors,
    health,
    notifications,
    portal,
    symptom_checks,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["Doctors"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(symptom_checks.router, prefix="/symptom-checks", tags=["Symptom Checker"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(portal.router, prefix="/portal", tags=["Portal"])
