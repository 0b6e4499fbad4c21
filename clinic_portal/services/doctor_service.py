"""Doctor service: directory lookups and schedule provider."""

from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.config import settings
from clinic_portal.core.exceptions import NotFoundException
from clinic_portal.core.redis_client import CacheManager
from clinic_portal.core.timeutils import parse_working_hours
from clinic_portal.models.doctors import doctors
from clinic_portal.schemas.doctors import DoctorSchedule, DoctorResponse, Weekday

logger = structlog.get_logger(__name__)


class DoctorService:
    """Service for doctor operations."""

    # Cache TTL in seconds
    DOCTOR_CACHE_TTL = 900  # 15 minutes for individual doctors

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    async def get_doctor_by_id(self, db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get an active doctor by ID with caching."""
        # Try cache first
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return cached

        query = select(doctors).where(doctors.c.id == doctor_id, doctors.c.is_active.is_(True))
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id),
                doctor_dict,
                ttl=self.DOCTOR_CACHE_TTL,
            )

        return doctor_dict

    async def get_schedule(self, db: AsyncSession, doctor_id: UUID) -> DoctorSchedule:
        """
        Resolve a doctor's working days and daily window.

        An empty or malformed ``available_hours`` falls back to the clinic
        default window; unknown day names are ignored.

        Raises:
            NotFoundException: If the doctor does not exist or is inactive
        """
        doctor = await self.get_doctor_by_id(db, doctor_id)
        if doctor is None:
            raise NotFoundException("Doctor not found")

        days: set[Weekday] = set()
        for name in doctor.get("available_days") or []:
            try:
                days.add(Weekday(str(name).strip().capitalize()))
            except ValueError:
                logger.warning("unknown_available_day", doctor_id=str(doctor_id), day=name)

        window = parse_working_hours(doctor.get("available_hours"))
        uses_default = window is None
        if window is None:
            window = parse_working_hours(settings.default_working_hours)
            if window is None:
                raise ValueError(
                    f"Invalid DEFAULT_WORKING_HOURS setting: {settings.default_working_hours!r}"
                )

        return DoctorSchedule(
            doctor_id=doctor_id,
            available_days=frozenset(days),
            start_time=window[0],
            end_time=window[1],
            uses_default_hours=uses_default,
        )

    async def get_doctors(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 20,
        specialization: str | None = None,
    ) -> tuple[list[DoctorResponse], int]:
        """List active doctors with optional specialization filter."""
        conditions = [doctors.c.is_active.is_(True)]
        if specialization:
            conditions.append(doctors.c.specialization.ilike(f"%{specialization}%"))

        count_query = select(func.count()).select_from(doctors).where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        query = (
            select(doctors)
            .where(*conditions)
            .order_by(doctors.c.full_name)
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        items = [DoctorResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return items, total
