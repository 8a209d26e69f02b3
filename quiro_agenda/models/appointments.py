"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from quiro_agenda.models.base import UTCDateTime, metadata

APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled")

appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Ownership / references
    Column(
        "professional_id",
        Integer,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Patient reference: exactly one of the three is set
    Column("member_id", Integer, ForeignKey("members.id"), nullable=True),
    Column("dependent_id", Integer, ForeignKey("dependents.id"), nullable=True),
    Column("private_patient_id", Integer, ForeignKey("private_patients.id"), nullable=True),
    Column("service_id", Integer, ForeignKey("services.id"), nullable=False),
    Column("location_id", Integer, ForeignKey("attendance_locations.id"), nullable=True),
    # Slot
    Column("start_at", UTCDateTime(), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("value", Numeric(10, 2), nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default=text("'scheduled'")),
    Column("notes", Text, nullable=True),
    Column("recurrence_group_id", Uuid(as_uuid=True), nullable=True),
    # Cancellation audit
    Column("cancelled_at", UTCDateTime(), nullable=True),
    Column("cancelled_by", Integer, nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Audit fields
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime(), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "(member_id IS NOT NULL AND dependent_id IS NULL AND private_patient_id IS NULL) OR "
        "(member_id IS NULL AND dependent_id IS NOT NULL AND private_patient_id IS NULL) OR "
        "(member_id IS NULL AND dependent_id IS NULL AND private_patient_id IS NOT NULL)",
        name="appointments_patient_ref_check",
    ),
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint("value >= 0", name="appointments_value_check"),
    CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
    CheckConstraint(
        "(status = 'cancelled') = (cancelled_at IS NOT NULL AND cancelled_by IS NOT NULL)",
        name="appointments_cancel_audit_check",
    ),
    Index("ix_appointments_professional_start", "professional_id", "start_at"),
    Index("ix_appointments_recurrence_group", "recurrence_group_id"),
)
