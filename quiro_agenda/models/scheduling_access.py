"""Scheduling access grants table."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    func,
    text,
)

from quiro_agenda.models.base import UTCDateTime, metadata

scheduling_access = Table(
    "scheduling_access",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "professional_id",
        Integer,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("granted_by", Integer, nullable=True),
    Column("starts_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("expires_at", UTCDateTime(), nullable=False),
    Column("reason", Text, nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
)

Index(
    "ix_scheduling_access_professional_created",
    scheduling_access.c.professional_id,
    scheduling_access.c.created_at.desc(),
)
