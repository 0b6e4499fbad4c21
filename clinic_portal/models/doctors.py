"""Doctor model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from clinic_portal.models.base import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    Column("full_name", Text, nullable=False),
    Column("specialization", String(200), index=True),
    Column("qualification", Text),
    Column("consultation_fee", Numeric(10, 2)),
    # Availability: weekday names, e.g. ["Monday", "Wednesday"]
    Column("available_days", JSON),
    # Single daily window, e.g. "09:00-17:00"
    Column("available_hours", String(50)),
    Column("is_active", Boolean, nullable=False, server_default=text("true"), index=True),
    # Metadata
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)
