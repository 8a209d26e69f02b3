"""Initial migration - create scheduling tables.

Revision ID: 001
Revises:
Create Date: 2025-03-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "professionals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("specialty", sa.String(length=200), nullable=True),
        sa.Column("registry", sa.String(length=100), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("subscription_status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("subscription_expiry", sa.Date(), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "dependents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("subscription_status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("subscription_expiry", sa.Date(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dependents_member_id", "dependents", ["member_id"])

    # Subscription sweep scans by status and expiry
    op.create_index(
        "ix_members_active_expiry",
        "members",
        ["subscription_expiry"],
        postgresql_where=sa.text("subscription_status = 'active'"),
    )
    op.create_index(
        "ix_dependents_active_expiry",
        "dependents",
        ["subscription_expiry"],
        postgresql_where=sa.text("subscription_status = 'active'"),
    )

    op.create_table(
        "private_patients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_private_patients_professional_id", "private_patients", ["professional_id"])

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("base_price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("slot_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "attendance_locations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_attendance_locations_professional_id",
        "attendance_locations",
        ["professional_id"],
    )
    op.create_index(
        "uq_attendance_locations_default",
        "attendance_locations",
        ["professional_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=True),
        sa.Column("dependent_id", sa.Integer(), nullable=True),
        sa.Column("private_patient_id", sa.Integer(), nullable=True),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("start_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("value", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="scheduled", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recurrence_group_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *timestamps(),
        sa.CheckConstraint(
            "(member_id IS NOT NULL AND dependent_id IS NULL AND private_patient_id IS NULL) OR "
            "(member_id IS NULL AND dependent_id IS NOT NULL AND private_patient_id IS NULL) OR "
            "(member_id IS NULL AND dependent_id IS NULL AND private_patient_id IS NOT NULL)",
            name="appointments_patient_ref_check",
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint("value >= 0", name="appointments_value_check"),
        sa.CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
        sa.CheckConstraint(
            "(status = 'cancelled') = (cancelled_at IS NOT NULL AND cancelled_by IS NOT NULL)",
            name="appointments_cancel_audit_check",
        ),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
        sa.ForeignKeyConstraint(["dependent_id"], ["dependents.id"]),
        sa.ForeignKeyConstraint(["private_patient_id"], ["private_patients.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["attendance_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_professional_start", "appointments", ["professional_id", "start_at"])
    op.create_index("ix_appointments_recurrence_group", "appointments", ["recurrence_group_id"])

    op.create_table(
        "scheduling_access",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("granted_by", sa.Integer(), nullable=True),
        sa.Column(
            "starts_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("expires_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_scheduling_access_professional_created",
        "scheduling_access",
        ["professional_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_scheduling_access_professional_created", table_name="scheduling_access")
    op.drop_table("scheduling_access")

    op.drop_index("ix_appointments_recurrence_group", table_name="appointments")
    op.drop_index("ix_appointments_professional_start", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("uq_attendance_locations_default", table_name="attendance_locations")
    op.drop_index("ix_attendance_locations_professional_id", table_name="attendance_locations")
    op.drop_table("attendance_locations")
    op.drop_table("services")

    op.drop_index("ix_private_patients_professional_id", table_name="private_patients")
    op.drop_table("private_patients")

    op.drop_index("ix_dependents_active_expiry", table_name="dependents")
    op.drop_index("ix_members_active_expiry", table_name="members")
    op.drop_index("ix_dependents_member_id", table_name="dependents")
    op.drop_table("dependents")
    op.drop_table("members")
    op.drop_table("professionals")
