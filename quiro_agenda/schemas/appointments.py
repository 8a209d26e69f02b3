"""Appointment schemas for request/response validation."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecurrenceType(str, Enum):
    """Recurrence rule kinds."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class MemberRef(BaseModel):
    """Patient reference to a subscription holder."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ClassVar[str] = "member"
    column: ClassVar[str] = "member_id"

    member_id: int = Field(..., gt=0)

    @property
    def patient_id(self) -> int:
        """Referenced row id."""
        return self.member_id


class DependentRef(BaseModel):
    """Patient reference to a dependent of a member."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ClassVar[str] = "dependent"
    column: ClassVar[str] = "dependent_id"

    dependent_id: int = Field(..., gt=0)

    @property
    def patient_id(self) -> int:
        """Referenced row id."""
        return self.dependent_id


class PrivatePatientRef(BaseModel):
    """Patient reference to a private patient of the professional."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ClassVar[str] = "private"
    column: ClassVar[str] = "private_patient_id"

    private_patient_id: int = Field(..., gt=0)

    @property
    def patient_id(self) -> int:
        """Referenced row id."""
        return self.private_patient_id


# Exactly one id: each variant forbids the other two fields
PatientRef = MemberRef | DependentRef | PrivatePatientRef

PATIENT_REF_COLUMNS = ("member_id", "dependent_id", "private_patient_id")


def patient_ref_from_columns(row: dict[str, Any]) -> PatientRef:
    """
    Build the tagged patient reference from appointment columns.

    Args:
        row: Mapping with ``member_id``, ``dependent_id`` and ``private_patient_id``

    Returns:
        The single populated reference

    Raises:
        ValueError: If not exactly one column is populated
    """
    populated = [column for column in PATIENT_REF_COLUMNS if row.get(column) is not None]
    if len(populated) != 1:
        raise ValueError(f"Expected exactly one patient reference, found {populated}")
    column = populated[0]
    if column == "member_id":
        return MemberRef(member_id=row[column])
    if column == "dependent_id":
        return DependentRef(dependent_id=row[column])
    return PrivatePatientRef(private_patient_id=row[column])


class AppointmentCreate(BaseModel):
    """Schema for booking a single appointment."""

    patient: PatientRef
    service_id: int = Field(..., gt=0)
    location_id: int | None = Field(None, gt=0)
    date: str = Field(..., description="Local date, YYYY-MM-DD")
    time: str = Field(..., description="Local time, HH:MM")
    value: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    duration_minutes: int | None = Field(None, gt=0, le=24 * 60)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        """Store blank notes as NULL."""
        if v is None:
            return None
        return v.strip() or None


class RecurringAppointmentCreate(AppointmentCreate):
    """Schema for booking a recurrence group."""

    recurrence_type: RecurrenceType
    occurrences: int = Field(default=10, ge=1)
    weekly_count: int | None = Field(None, ge=1)
    selected_weekdays: list[int] = Field(
        default_factory=list,
        description="Weekdays for daily recurrence, Sunday = 0 ... Saturday = 6",
    )
    recurrence_interval: int | None = Field(None, description="Months between monthly occurrences")

    @field_validator("selected_weekdays")
    @classmethod
    def validate_weekdays(cls, v: list[int]) -> list[int]:
        """Validate weekday numbers."""
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))


class AppointmentReschedule(BaseModel):
    """
    Schema for editing a scheduled appointment.

    ``date`` and ``time`` move the appointment and travel together. Sending
    ``notes: null`` clears the notes; omitted fields are left unchanged.
    """

    date: str | None = Field(None, description="Local date, YYYY-MM-DD")
    time: str | None = Field(None, description="Local time, HH:MM")
    notes: str | None = Field(None, max_length=1000)
    value: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    location_id: int | None = Field(None, gt=0)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        """Store blank notes as NULL."""
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def check_changes(self) -> "AppointmentReschedule":
        """Require a complete new slot or at least one other change."""
        if (self.date is None) != (self.time is None):
            raise ValueError("date and time must be given together")
        if not (
            self.moves
            or "notes" in self.model_fields_set
            or self.value is not None
            or self.location_id is not None
        ):
            raise ValueError("Nothing to change")
        return self

    @property
    def moves(self) -> bool:
        """Whether the request changes the start instant."""
        return self.date is not None


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str | None) -> str | None:
        """Store blank reasons as NULL."""
        if v is None:
            return None
        return v.strip() or None


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: int
    professional_id: int
    patient: PatientRef
    patient_name: str | None = None
    service_id: int
    service_name: str | None = None
    location_id: int | None = None
    location_name: str | None = None
    start_at: datetime
    duration_minutes: int
    value: Decimal
    status: AppointmentStatus
    notes: str | None = None
    recurrence_group_id: UUID | None = None
    cancelled_at: datetime | None = None
    cancelled_by: int | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def collect_patient_ref(cls, data: Any) -> Any:
        """Fold the three patient columns of a row into the tagged reference."""
        if isinstance(data, dict) and "patient" not in data:
            data = dict(data)
            data["patient"] = patient_ref_from_columns(data)
            for column in PATIENT_REF_COLUMNS:
                data.pop(column, None)
        return data

    @property
    def end_at(self) -> datetime:
        """End of the half-open slot."""
        return self.start_at + timedelta(minutes=self.duration_minutes)


class BookingResult(BaseModel):
    """Result of a successful booking."""

    id: int
    start_at_utc: datetime


class RecurringBookingResult(BaseModel):
    """Result of a successful recurring booking."""

    group_id: UUID
    count: int
    appointments: list[BookingResult]


class ConflictDetail(BaseModel):
    """One requested slot that collides with an existing appointment."""

    date: str
    time: str
    patient_name: str
