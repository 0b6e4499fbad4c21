"""Symptom check service: runs triage and keeps the check history."""

from datetime import date
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.core.clock import Clock, clinic_now
from clinic_portal.core.exceptions import NotFoundException
from clinic_portal.models.patients import patients
from clinic_portal.models.symptoms import symptom_check_scopes, symptom_checks, symptom_scopes
from clinic_portal.schemas.appointments import CallerContext
from clinic_portal.schemas.notifications import NotificationType
from clinic_portal.schemas.symptoms import (
    SymptomCheckDetailResponse,
    SymptomCheckHistoryResponse,
    SymptomCheckRecord,
    SymptomCheckRequest,
    SymptomCheckResult,
    SymptomScope,
    UrgencyLevel,
)
from clinic_portal.services.notification_service import NotificationService
from clinic_portal.services.symptom_triage import TriageEngine, render_markdown

logger = structlog.get_logger(__name__)

RECENT_CHECKS_LIMIT = 10

_URGENCY_NOTIFICATIONS = {
    UrgencyLevel.URGENT: (
        "Symptom Check: Urgent Care Advised",
        "Your symptom check suggests seeing a doctor within 24-48 hours.",
    ),
    UrgencyLevel.EMERGENCY: (
        "Symptom Check: Emergency",
        "Your symptom check suggests emergency care. Call 999 or visit the nearest "
        "Emergency Room immediately.",
    ),
}


def age_on(date_of_birth: date, today: date) -> int:
    """Completed years between a birth date and today."""
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


class SymptomCheckService:
    """Service for symptom check submissions and history."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = clinic_now,
        engine: TriageEngine | None = None,
    ):
        """Initialize service with database session, clock and triage engine."""
        self.db = db
        self.clock = clock
        self.engine = engine or TriageEngine()

    async def _active_scopes(self) -> list[SymptomScope]:
        result = await self.db.execute(
            select(symptom_scopes)
            .where(symptom_scopes.c.is_active.is_(True))
            .order_by(symptom_scopes.c.symptom_name)
        )
        return [SymptomScope.model_validate(dict(row)) for row in result.mappings().all()]

    async def _patient_age(self, patient_id: UUID) -> int | None:
        result = await self.db.execute(
            select(patients.c.date_of_birth).where(patients.c.id == patient_id)
        )
        date_of_birth = result.scalar_one_or_none()
        if date_of_birth is None:
            return None
        return age_on(date_of_birth, self.clock().date())

    async def check_symptoms(
        self,
        caller: CallerContext,
        request: SymptomCheckRequest,
    ) -> SymptomCheckResult:
        """
        Triage a symptom description and store the result.

        Args:
            caller: Authenticated patient
            request: Symptom description; age defaults to the patient's age

        Returns:
            Urgency, report and matched symptoms

        Raises:
            ValidationException: If no symptoms were described
        """
        now = self.clock()
        scopes = await self._active_scopes()
        triage = self.engine.evaluate(scopes, request)

        age = request.age
        if age is None:
            age = await self._patient_age(caller.patient_id)

        try:
            result = await self.db.execute(
                insert(symptom_checks)
                .values(
                    user_id=caller.user_id,
                    patient_id=caller.patient_id,
                    symptoms=request.symptoms,
                    duration=request.duration,
                    age=age,
                    additional_info=request.additional_info,
                    response=[section.model_dump() for section in triage.sections],
                    urgency_level=triage.urgency.value,
                    created_at=now,
                )
                .returning(symptom_checks.c.id)
            )
            check_id = result.scalar_one()

            if triage.detected:
                await self.db.execute(
                    insert(symptom_check_scopes),
                    [{"check_id": check_id, "scope_id": scope.id} for scope in triage.detected],
                )

            if triage.urgency in _URGENCY_NOTIFICATIONS:
                title, message = _URGENCY_NOTIFICATIONS[triage.urgency]
                await NotificationService.record(
                    self.db,
                    user_id=caller.user_id,
                    title=title,
                    message=message,
                    created_at=now,
                    notification_type=NotificationType.SYMPTOM_CHECK,
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "symptom_check_completed",
            check_id=str(check_id),
            urgency=triage.urgency.value,
            detected_scopes=len(triage.detected),
            critical=triage.critical,
        )

        return SymptomCheckResult(
            check_id=check_id,
            urgency=triage.urgency,
            response=triage.sections,
            response_markdown=render_markdown(triage.sections),
            detected_scopes=len(triage.detected),
            matched_symptom_names=", ".join(triage.matched_symptom_names),
            created_at=now,
        )

    async def _matched_names(self, check_ids: list[UUID]) -> dict[UUID, list[str]]:
        if not check_ids:
            return {}
        result = await self.db.execute(
            select(symptom_check_scopes.c.check_id, symptom_scopes.c.symptom_name)
            .join(symptom_scopes, symptom_scopes.c.id == symptom_check_scopes.c.scope_id)
            .where(symptom_check_scopes.c.check_id.in_(check_ids))
            .order_by(symptom_scopes.c.symptom_name)
        )
        names: dict[UUID, list[str]] = {}
        for check_id, symptom_name in result.all():
            names.setdefault(check_id, []).append(symptom_name)
        return names

    async def get_check(self, caller: CallerContext, check_id: UUID) -> SymptomCheckDetailResponse:
        """
        Get one of the caller's symptom checks.

        Raises:
            NotFoundException: If the check does not exist or is not the caller's
        """
        result = await self.db.execute(
            select(symptom_checks).where(
                symptom_checks.c.id == check_id,
                symptom_checks.c.user_id == caller.user_id,
            )
        )
        row = result.mappings().first()
        if row is None:
            raise NotFoundException("Record not found")

        names = await self._matched_names([check_id])
        return SymptomCheckDetailResponse(check=self._to_record(row, names.get(check_id, [])))

    async def list_recent(
        self,
        caller: CallerContext,
        limit: int = RECENT_CHECKS_LIMIT,
    ) -> SymptomCheckHistoryResponse:
        """List the caller's most recent checks with matched symptom names."""
        total = (
            await self.db.execute(
                select(func.count())
                .select_from(symptom_checks)
                .where(symptom_checks.c.user_id == caller.user_id)
            )
        ).scalar() or 0

        result = await self.db.execute(
            select(symptom_checks)
            .where(symptom_checks.c.user_id == caller.user_id)
            .order_by(symptom_checks.c.created_at.desc())
            .limit(limit)
        )
        rows = result.mappings().all()
        names = await self._matched_names([row["id"] for row in rows])

        return SymptomCheckHistoryResponse(
            total=total,
            items=[self._to_record(row, names.get(row["id"], [])) for row in rows],
        )

    @staticmethod
    def _to_record(row, matched: list[str]) -> SymptomCheckRecord:
        return SymptomCheckRecord(
            id=row["id"],
            symptoms=row["symptoms"],
            duration=row["duration"],
            age=row["age"],
            additional_info=row["additional_info"],
            urgency_level=row["urgency_level"],
            response=row["response"],
            matched_symptoms=matched,
            created_at=row["created_at"],
        )
