"""Scheduling access schemas."""

from datetime import datetime

from pydantic import BaseModel


class SchedulingAccessStatus(BaseModel):
    """Current scheduling access of a professional."""

    has_access: bool
    expires_at: datetime | None = None
    reason: str | None = None


class SweepResult(BaseModel):
    """Outcome of one subscription expiry sweep."""

    members_expired: int = 0
    dependents_expired: int = 0
