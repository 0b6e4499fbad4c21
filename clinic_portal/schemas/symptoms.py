"""Symptom checker schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UrgencyLevel(str, Enum):
    """Triage urgency, ordered from least to most severe."""

    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        """Numeric severity used for comparisons."""
        return _URGENCY_RANK[self]


_URGENCY_RANK = {
    UrgencyLevel.ROUTINE: 0,
    UrgencyLevel.URGENT: 1,
    UrgencyLevel.EMERGENCY: 2,
}


class SymptomCategory(str, Enum):
    """Body system a symptom scope belongs to."""

    RESPIRATORY = "Respiratory"
    CARDIOVASCULAR = "Cardiovascular"
    NEUROLOGICAL = "Neurological"
    GASTROINTESTINAL = "Gastrointestinal"
    MUSCULOSKELETAL = "Musculoskeletal"
    DERMATOLOGICAL = "Dermatological"
    GENERAL = "General"
    OTHER = "Other"


class SymptomScope(BaseModel):
    """Admin-curated symptom matching rule."""

    id: UUID
    symptom_name: str
    category: SymptomCategory
    possible_conditions: str | None = None
    urgency_level: UrgencyLevel = UrgencyLevel.ROUTINE
    warning_keywords: str | None = None
    guidance: str | None = None
    recommended_specialization: str | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}

    @property
    def condition_list(self) -> list[str]:
        """Possible conditions as a cleaned list."""
        return _split_csv(self.possible_conditions)

    @property
    def keyword_list(self) -> list[str]:
        """Warning keywords as a cleaned list."""
        return _split_csv(self.warning_keywords)


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class ReportSection(BaseModel):
    """One section of a triage report, independent of output format."""

    heading: str
    body: str | None = None
    items: list[str] = Field(default_factory=list)


class SymptomCheckRequest(BaseModel):
    """Schema for a symptom check submission."""

    model_config = ConfigDict(str_strip_whitespace=True)

    symptoms: str = Field(..., max_length=2000)
    duration: str | None = Field(None, max_length=200)
    age: int | None = Field(None, ge=0, le=130)
    additional_info: str | None = Field(None, max_length=2000)


class SymptomCheckResult(BaseModel):
    """Schema for a completed symptom check."""

    success: bool = True
    check_id: UUID
    urgency: UrgencyLevel
    response: list[ReportSection]
    response_markdown: str
    detected_scopes: int
    matched_symptom_names: str
    created_at: datetime


class SymptomCheckRecord(BaseModel):
    """Schema for a stored symptom check."""

    id: UUID
    symptoms: str
    duration: str | None = None
    age: int | None = None
    additional_info: str | None = None
    urgency_level: UrgencyLevel
    response: list[ReportSection]
    matched_symptoms: list[str] = Field(default_factory=list)
    created_at: datetime


class SymptomCheckDetailResponse(BaseModel):
    """Schema for viewing one symptom check."""

    success: bool = True
    check: SymptomCheckRecord


class SymptomCheckHistoryResponse(BaseModel):
    """Schema for the caller's recent symptom checks."""

    success: bool = True
    total: int
    items: list[SymptomCheckRecord]
