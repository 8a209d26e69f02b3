"""Appointment persistence: range queries, batch insert and status transitions."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import Select, case, func, insert, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quiro_agenda.core.exceptions import (
    IllegalTransitionException,
    InternalException,
    NotFoundException,
)
from quiro_agenda.models.appointments import appointments
from quiro_agenda.models.catalog import attendance_locations, services
from quiro_agenda.models.patients import dependents, members, private_patients
from quiro_agenda.schemas.appointments import AppointmentResponse, AppointmentStatus

logger = structlog.get_logger()

UNKNOWN_PATIENT_NAME = "Unidentified patient"


def _agenda_select() -> Select:
    """Appointment columns joined with patient, service and location names."""
    patient_name = case(
        (appointments.c.member_id.is_not(None), members.c.name),
        (appointments.c.dependent_id.is_not(None), dependents.c.name),
        (appointments.c.private_patient_id.is_not(None), private_patients.c.name),
        else_=literal(UNKNOWN_PATIENT_NAME),
    )
    joined = (
        appointments.outerjoin(members, appointments.c.member_id == members.c.id)
        .outerjoin(dependents, appointments.c.dependent_id == dependents.c.id)
        .outerjoin(private_patients, appointments.c.private_patient_id == private_patients.c.id)
        .outerjoin(services, appointments.c.service_id == services.c.id)
        .outerjoin(attendance_locations, appointments.c.location_id == attendance_locations.c.id)
    )
    return select(
        appointments,
        func.coalesce(patient_name, literal(UNKNOWN_PATIENT_NAME)).label("patient_name"),
        services.c.name.label("service_name"),
        attendance_locations.c.name.label("location_name"),
    ).select_from(joined)


def _to_response(row: Any) -> AppointmentResponse:
    return AppointmentResponse.model_validate(dict(row._mapping))


class AppointmentStore:
    """Stateless access to the appointments table; callers own the transaction."""

    async def range(
        self,
        db: AsyncSession,
        professional_id: int,
        from_instant: datetime,
        to_instant: datetime,
        include_cancelled: bool = False,
    ) -> list[AppointmentResponse]:
        """
        List a professional's appointments starting inside ``[from, to)``.

        Args:
            db: Database session
            professional_id: Owner of the agenda
            from_instant: Inclusive lower bound on ``start_at``
            to_instant: Exclusive upper bound on ``start_at``
            include_cancelled: Whether cancelled rows are returned

        Returns:
            Appointments ordered by ``start_at`` then ``id``
        """
        conditions = [
            appointments.c.professional_id == professional_id,
            appointments.c.start_at >= from_instant,
            appointments.c.start_at < to_instant,
        ]
        if not include_cancelled:
            conditions.append(appointments.c.status != AppointmentStatus.CANCELLED.value)

        stmt = _agenda_select().where(*conditions).order_by(appointments.c.start_at, appointments.c.id)
        result = await db.execute(stmt)
        return [_to_response(row) for row in result.fetchall()]

    async def max_duration(self, db: AsyncSession, professional_id: int) -> int:
        """Longest duration in minutes among the professional's live appointments."""
        stmt = select(func.max(appointments.c.duration_minutes)).where(
            appointments.c.professional_id == professional_id,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        )
        result = await db.execute(stmt)
        return result.scalar() or 0

    async def get(
        self,
        db: AsyncSession,
        appointment_id: int,
        for_update: bool = False,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        stmt = _agenda_select().where(appointments.c.id == appointment_id)
        if for_update:
            stmt = stmt.with_for_update(of=appointments)

        result = await db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")

        return _to_response(row)

    async def count_group(self, db: AsyncSession, group_id: Any) -> int:
        """Number of appointments sharing a recurrence group id."""
        stmt = (
            select(func.count())
            .select_from(appointments)
            .where(appointments.c.recurrence_group_id == group_id)
        )
        result = await db.execute(stmt)
        return result.scalar() or 0

    async def insert_batch(self, db: AsyncSession, rows: Sequence[dict[str, Any]]) -> list[int]:
        """
        Insert appointments in a single multi-row statement.

        Runs inside the caller's transaction, so either every row is
        persisted on commit or none is.

        Returns:
            Generated ids, in the order of ``rows``
        """
        if not rows:
            return []

        stmt = insert(appointments).returning(appointments.c.id, sort_by_parameter_order=True)
        result = await db.execute(stmt, list(rows))
        ids = list(result.scalars().all())

        if len(ids) != len(rows):
            logger.error("appointment_batch_insert_mismatch", expected=len(rows), inserted=len(ids))
            raise InternalException("Batch insert returned an unexpected number of rows")

        return ids

    async def _transition(
        self,
        db: AsyncSession,
        appointment_id: int,
        target: str,
        values: dict[str, Any],
    ) -> AppointmentResponse:
        current = await self.get(db, appointment_id, for_update=True)
        if current.status != AppointmentStatus.SCHEDULED:
            raise IllegalTransitionException(
                f"Cannot {target} an appointment that is {current.status.value}"
            )

        stmt = (
            update(appointments)
            .where(
                appointments.c.id == appointment_id,
                appointments.c.status == AppointmentStatus.SCHEDULED.value,
            )
            .values(**values)
            .returning(appointments.c.id)
        )
        result = await db.execute(stmt)
        if result.scalar() is None:
            # Lost a race with another transition of the same row
            raise IllegalTransitionException(f"Cannot {target} an appointment that is no longer scheduled")

        return await self.get(db, appointment_id)

    async def cancel(
        self,
        db: AsyncSession,
        appointment_id: int,
        by_user_id: int,
        reason: str | None,
        at: datetime,
    ) -> AppointmentResponse:
        """
        Cancel a scheduled appointment and record the audit fields.

        Raises:
            NotFoundException: If appointment not found
            IllegalTransitionException: If the appointment is not scheduled
        """
        return await self._transition(
            db,
            appointment_id,
            "cancel",
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancelled_at": at,
                "cancelled_by": by_user_id,
                "cancellation_reason": reason,
                "updated_at": at,
            },
        )

    async def complete(self, db: AsyncSession, appointment_id: int, at: datetime) -> AppointmentResponse:
        """Transition ``scheduled -> completed``."""
        return await self._transition(
            db,
            appointment_id,
            "complete",
            {"status": AppointmentStatus.COMPLETED.value, "updated_at": at},
        )

    async def move(
        self,
        db: AsyncSession,
        appointment_id: int,
        changes: dict[str, Any],
        at: datetime,
    ) -> AppointmentResponse:
        """
        Rewrite editable columns of a scheduled appointment.

        Args:
            changes: Subset of ``start_at``, ``notes``, ``value`` and ``location_id``
            at: Update instant
        """
        editable = {"start_at", "notes", "value", "location_id"}
        unknown = set(changes) - editable
        if unknown:
            raise InternalException(f"Columns not editable: {sorted(unknown)}")
        return await self._transition(
            db,
            appointment_id,
            "reschedule",
            {**changes, "updated_at": at},
        )
