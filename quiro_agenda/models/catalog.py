"""Service catalog and attendance location tables."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Table,
    Text,
    func,
    text,
)

from quiro_agenda.models.base import UTCDateTime, metadata

services = Table(
    "services",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("base_price", Numeric(10, 2), nullable=False),
    # NULL falls back to the configured default slot length
    Column("slot_minutes", Integer, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
)

attendance_locations = Table(
    "attendance_locations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "professional_id",
        Integer,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("name", Text, nullable=False),
    Column("is_default", Boolean, nullable=False, server_default=text("false")),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    # At most one default location per professional
    Index(
        "uq_attendance_locations_default",
        "professional_id",
        unique=True,
        postgresql_where=text("is_default"),
        sqlite_where=text("is_default"),
    ),
)
