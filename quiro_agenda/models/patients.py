"""Patient model definitions using SQLAlchemy Core.

An appointment targets exactly one of three kinds of patient: a member
(subscription holder), a dependent of a member, or a private patient of the
professional.
"""

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    func,
    text,
)

from quiro_agenda.models.base import UTCDateTime, metadata

members = Table(
    "members",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    # Subscription mirror (written only by the daily sweep)
    Column("subscription_status", String(20), nullable=False, server_default=text("'pending'")),
    Column("subscription_expiry", Date, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime(), nullable=False, server_default=func.now()),
)

dependents = Table(
    "dependents",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "member_id",
        Integer,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("name", Text, nullable=False),
    Column("subscription_status", String(20), nullable=False, server_default=text("'pending'")),
    Column("subscription_expiry", Date, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime(), nullable=False, server_default=func.now()),
)

private_patients = Table(
    "private_patients",
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
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
)
