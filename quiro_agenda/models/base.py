"""Shared metadata and column types for the scheduling tables."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, MetaData
from sqlalchemy.types import TypeDecorator

# Metadata for all tables
metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """
    Timestamp column that only ever holds UTC instants.

    Naive datetimes are rejected on write. Values come back timezone-aware in
    UTC even on backends without a native ``TIMESTAMP WITH TIME ZONE``.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        """Initialize the underlying timezone-aware ``DateTime``."""
        super().__init__(timezone=True)

    def process_bind_param(self, value: Any, dialect: Any) -> datetime | None:
        """Normalize aware datetimes to UTC before they reach the driver."""
        if value is None:
            return None
        if not isinstance(value, datetime) or value.tzinfo is None:
            raise ValueError(f"UTCDateTime requires an aware datetime, got {value!r}")
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            # SQLite has no time zone storage; keep the UTC wall clock
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Any, dialect: Any) -> datetime | None:
        """Return UTC-aware datetimes."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
