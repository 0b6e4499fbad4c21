"""User service: account and patient profile lookups."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.models.patients import patients
from clinic_portal.models.users import users


class UserService:
    """Service for user operations."""

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID."""
        result = await db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def get_patient_id(db: AsyncSession, user_id: UUID) -> UUID | None:
        """Get the patient profile ID linked to a user, if any."""
        result = await db.execute(select(patients.c.id).where(patients.c.user_id == user_id))
        return result.scalar_one_or_none()
