"""Appointments and QR code history tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Time,
    Uuid,
    func,
    text,
)

from clinic_portal.models.base import metadata

# Statuses that still occupy a slot are everything except these
SLOT_RELEASING_STATUS_SQL = "status NOT IN ('cancelled', 'expired')"

# Appointments table (the booking ledger)
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=False, index=True),
    Column("doctor_id", Uuid, ForeignKey("doctors.id"), nullable=False, index=True),
    # Scheduling (clinic wall-clock, 30-minute grid)
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", Time, nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default="pending", index=True),
    Column("confirmation_deadline", DateTime, nullable=True),
    Column("confirmed_at", DateTime, nullable=True),
    Column("checked_in_at", DateTime, nullable=True),
    Column("cancelled_at", DateTime, nullable=True),
    # Check-in token
    Column("qr_code", String(64), nullable=False, unique=True),
    # Details
    Column("reason", Text, nullable=False),
    Column("symptoms", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'expired')",
        name="appointments_status_check",
    ),
    # At most one slot-holding appointment per doctor, date and time
    Index(
        "uq_appointments_active_slot",
        "doctor_id",
        "appointment_date",
        "appointment_time",
        unique=True,
        postgresql_where=text(SLOT_RELEASING_STATUS_SQL),
        sqlite_where=text(SLOT_RELEASING_STATUS_SQL),
    ),
    Index("idx_appointments_doctor_date", "doctor_id", "appointment_date"),
)

qr_code_history = Table(
    "qr_code_history",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("qr_code", String(64), nullable=False),
    Column("generated_by", Uuid, nullable=False),
    Column("action", String(20), nullable=False),
    Column("reason", Text, nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    CheckConstraint(
        "action IN ('generated', 'regenerated')",
        name="qr_code_history_action_check",
    ),
)
