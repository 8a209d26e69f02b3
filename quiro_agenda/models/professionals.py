"""Professional model definition using SQLAlchemy Core."""

from sqlalchemy import Column, Integer, String, Table, Text, func

from quiro_agenda.models.base import UTCDateTime, metadata

# Owned by the surrounding user management code; the scheduling core only reads it
professionals = Table(
    "professionals",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("specialty", String(200)),
    Column("registry", String(100)),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
)
