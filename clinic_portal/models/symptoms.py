"""Symptom scope rules and symptom check history."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from clinic_portal.models.base import metadata

symptom_scopes = Table(
    "symptom_scopes",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("symptom_name", String(200), nullable=False),
    Column("category", String(50), nullable=False),
    # Comma separated lists, curated by clinic admins
    Column("possible_conditions", Text),
    Column("warning_keywords", Text),
    Column("urgency_level", String(20), nullable=False, server_default="routine"),
    Column("guidance", Text),
    Column("recommended_specialization", String(200)),
    Column("is_active", Boolean, nullable=False, server_default=text("true"), index=True),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
    CheckConstraint(
        "urgency_level IN ('routine', 'urgent', 'emergency')",
        name="symptom_scopes_urgency_check",
    ),
)

symptom_checks = Table(
    "symptom_checks",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=True),
    Column("symptoms", Text, nullable=False),
    Column("duration", Text),
    Column("age", Integer),
    Column("additional_info", Text),
    # Structured report sections
    Column("response", JSON, nullable=False),
    Column("urgency_level", String(20), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    CheckConstraint(
        "urgency_level IN ('routine', 'urgent', 'emergency')",
        name="symptom_checks_urgency_check",
    ),
)

symptom_check_scopes = Table(
    "symptom_check_scopes",
    metadata,
    Column(
        "check_id",
        Uuid,
        ForeignKey("symptom_checks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "scope_id",
        Uuid,
        ForeignKey("symptom_scopes.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)
