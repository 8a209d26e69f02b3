"""Database models."""

from quiro_agenda.models.appointments import APPOINTMENT_STATUSES, appointments
from quiro_agenda.models.base import UTCDateTime, metadata
from quiro_agenda.models.catalog import attendance_locations, services
from quiro_agenda.models.patients import dependents, members, private_patients
from quiro_agenda.models.professionals import professionals
from quiro_agenda.models.scheduling_access import scheduling_access

__all__ = [
    "APPOINTMENT_STATUSES",
    "UTCDateTime",
    "appointments",
    "attendance_locations",
    "dependents",
    "members",
    "metadata",
    "private_patients",
    "professionals",
    "scheduling_access",
    "services",
]
