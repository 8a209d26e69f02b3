"""Scheduling engine: booking, recurrence, lifecycle transitions and agenda queries."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quiro_agenda.config import Settings
from quiro_agenda.core.clock import SchedulingClock, parse_local_date, parse_local_time
from quiro_agenda.core.exceptions import (
    ConflictException,
    IllegalTransitionException,
    InvalidRequestException,
    NotFoundException,
    TransientException,
)
from quiro_agenda.models.catalog import attendance_locations, services
from quiro_agenda.models.patients import dependents, members, private_patients
from quiro_agenda.schemas.appointments import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    BookingResult,
    ConflictDetail,
    DependentRef,
    MemberRef,
    PatientRef,
    RecurringAppointmentCreate,
    RecurringBookingResult,
)
from quiro_agenda.schemas.scheduling_access import SchedulingAccessStatus
from quiro_agenda.services.access_gate import AccessGate
from quiro_agenda.services.appointment_store import UNKNOWN_PATIENT_NAME, AppointmentStore
from quiro_agenda.services.conflict_detector import (
    Candidate,
    Conflict,
    ConflictDetector,
    find_internal_overlaps,
)
from quiro_agenda.services.recurrence import RecurrenceRule, expand

logger = structlog.get_logger()

T = TypeVar("T")

# Serialization failure and deadlock
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_transient_error(exc: DBAPIError) -> bool:
    """Whether a database error is worth retrying the whole transaction for."""
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(orig).lower()


class SchedulingService:
    """Service for booking and managing professional appointments."""

    RETRY_BACKOFF_SECONDS = 0.05

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: SchedulingClock,
        config: Settings,
        store: AppointmentStore | None = None,
        gate: AccessGate | None = None,
    ):
        """
        Initialize service.

        Args:
            session_factory: Factory for the sessions each transaction runs in
            clock: Clock and zone service
            config: Application settings (scheduling section)
            store: Appointment store, created when omitted
            gate: Access gate, created when omitted
        """
        self.session_factory = session_factory
        self.clock = clock
        self.store = store or AppointmentStore()
        self.gate = gate or AccessGate(clock)
        self.detector = ConflictDetector(self.store)
        self.default_slot_minutes = config.scheduling_default_slot_minutes
        self.max_occurrences = config.scheduling_recurrence_max_occurrences
        self.max_retries = config.scheduling_tx_max_retries
        self.isolation_level = config.scheduling_tx_isolation_level

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def _prepare_connection(self, db: AsyncSession) -> None:
        if self.isolation_level and db.get_bind().dialect.name == "postgresql":
            await db.connection(execution_options={"isolation_level": self.isolation_level})

    async def _in_transaction(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """
        Run ``work`` in one transaction, retrying it on transient failures.

        Application exceptions roll the transaction back and propagate
        unchanged. Serialization failures, deadlocks and dropped connections
        re-run the whole transaction up to ``max_retries`` more times.

        Raises:
            TransientException: If every attempt failed transiently
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        await self._prepare_connection(db)
                        return await work(db)
            except DBAPIError as e:
                if not is_transient_error(e):
                    raise
                if attempt > self.max_retries:
                    logger.error(
                        "transaction_retries_exhausted",
                        operation=operation,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise TransientException(
                        "Storage is busy, please try again"
                    ) from e
                logger.warning(
                    "transaction_retry",
                    operation=operation,
                    attempt=attempt,
                    error=str(e),
                )
                await asyncio.sleep(self.RETRY_BACKOFF_SECONDS * attempt)

    # ------------------------------------------------------------------
    # Booking helpers
    # ------------------------------------------------------------------

    async def _check_patient(self, db: AsyncSession, professional_id: int, patient: PatientRef) -> None:
        if isinstance(patient, MemberRef | DependentRef):
            table = members if isinstance(patient, MemberRef) else dependents
            result = await db.execute(
                select(table.c.subscription_status).where(table.c.id == patient.patient_id)
            )
            row = result.fetchone()
            if not row:
                raise NotFoundException(f"{patient.kind.capitalize()} not found")
            if row.subscription_status != "active":
                raise InvalidRequestException("Patient has no active subscription")
            return

        result = await db.execute(
            select(private_patients.c.id).where(
                private_patients.c.id == patient.patient_id,
                private_patients.c.professional_id == professional_id,
            )
        )
        if result.fetchone() is None:
            raise NotFoundException("Private patient not found")

    async def _resolve_location(
        self,
        db: AsyncSession,
        professional_id: int,
        location_id: int | None,
    ) -> int | None:
        if location_id is None:
            result = await db.execute(
                select(attendance_locations.c.id).where(
                    attendance_locations.c.professional_id == professional_id,
                    attendance_locations.c.is_default.is_(True),
                )
            )
            return result.scalar()

        result = await db.execute(
            select(attendance_locations.c.id).where(
                attendance_locations.c.id == location_id,
                attendance_locations.c.professional_id == professional_id,
            )
        )
        if result.scalar() is None:
            raise NotFoundException("Location not found")
        return location_id

    async def _booking_values(
        self,
        db: AsyncSession,
        professional_id: int,
        data: AppointmentCreate,
    ) -> dict[str, Any]:
        """Validate references and compute the column values shared by every occurrence."""
        result = await db.execute(
            select(services.c.base_price, services.c.slot_minutes).where(
                services.c.id == data.service_id
            )
        )
        service = result.fetchone()
        if not service:
            raise NotFoundException("Service not found")

        await self._check_patient(db, professional_id, data.patient)
        location_id = await self._resolve_location(db, professional_id, data.location_id)

        value = data.value if data.value is not None else Decimal(service.base_price)
        if value < 0:
            raise InvalidRequestException("Value must not be negative")

        values: dict[str, Any] = {
            "professional_id": professional_id,
            "member_id": None,
            "dependent_id": None,
            "private_patient_id": None,
            "service_id": data.service_id,
            "location_id": location_id,
            "duration_minutes": (
                data.duration_minutes or service.slot_minutes or self.default_slot_minutes
            ),
            "value": value.quantize(Decimal("0.01")),
            "notes": data.notes,
            "status": AppointmentStatus.SCHEDULED.value,
        }
        values[data.patient.column] = data.patient.patient_id
        return values

    def _conflict_detail(self, conflict: Conflict) -> dict[str, str]:
        local_date, local_time = self.clock.format_local(conflict.candidate.start)
        return ConflictDetail(
            date=local_date,
            time=local_time,
            patient_name=conflict.existing.patient_name or UNKNOWN_PATIENT_NAME,
        ).model_dump()

    async def _ensure_free(
        self,
        db: AsyncSession,
        professional_id: int,
        candidates: Sequence[Candidate],
        exclude_ids: Sequence[int] = (),
    ) -> None:
        """
        Raise ``ConflictException`` listing every colliding candidate.

        Raises:
            ConflictException: If any candidate overlaps a live appointment
        """
        conflicts = await self.detector.find_conflicts(
            db, professional_id, candidates, exclude_ids=exclude_ids
        )
        if not conflicts:
            return

        details = [self._conflict_detail(conflict) for conflict in conflicts]
        logger.info(
            "booking_conflict_detected",
            professional_id=professional_id,
            requested=len(candidates),
            conflicts=len(details),
        )
        raise ConflictException(
            f"{len(details)} requested slot(s) already taken",
            conflicts=details,
        )

    async def _owned_appointment(
        self,
        db: AsyncSession,
        appointment_id: int,
        professional_id: int,
    ) -> AppointmentResponse:
        appointment = await self.store.get(db, appointment_id, for_update=True)
        if appointment.professional_id != professional_id:
            # Do not reveal other professionals' appointments
            raise NotFoundException("Appointment not found")
        return appointment

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def book_single(self, professional_id: int, data: AppointmentCreate) -> BookingResult:
        """
        Book one appointment.

        Args:
            professional_id: Acting professional
            data: Booking request with local date and time

        Returns:
            Id and UTC start of the created appointment

        Raises:
            NoSchedulingAccessException: If the professional has no active grant
            InvalidRequestException: If the request is malformed
            NotFoundException: If service, location or patient is missing
            ConflictException: If the slot is taken
        """

        async def work(db: AsyncSession) -> BookingResult:
            await self.gate.require(db, professional_id)
            start_at = self.clock.to_utc(data.date, data.time)
            values = await self._booking_values(db, professional_id, data)

            candidate = Candidate.from_duration(start_at, values["duration_minutes"])
            await self._ensure_free(db, professional_id, [candidate])

            now = self.clock.now()
            [appointment_id] = await self.store.insert_batch(
                db,
                [{**values, "start_at": start_at, "created_at": now, "updated_at": now}],
            )
            logger.info(
                "appointment_booked",
                appointment_id=appointment_id,
                professional_id=professional_id,
                start_at=start_at.isoformat(),
            )
            return BookingResult(id=appointment_id, start_at_utc=start_at)

        return await self._in_transaction("book_single", work)

    async def book_recurring(
        self,
        professional_id: int,
        data: RecurringAppointmentCreate,
    ) -> RecurringBookingResult:
        """
        Expand a recurrence and book every occurrence, or none.

        Args:
            professional_id: Acting professional
            data: Booking request plus recurrence rule

        Returns:
            Group id, number of appointments and their ids/start instants

        Raises:
            ConflictException: Listing every colliding occurrence; nothing is written
        """

        async def work(db: AsyncSession) -> RecurringBookingResult:
            await self.gate.require(db, professional_id)

            rule = RecurrenceRule(
                recurrence_type=data.recurrence_type,
                occurrences=data.occurrences,
                weekly_count=data.weekly_count,
                selected_weekdays=frozenset(data.selected_weekdays),
                recurrence_interval=data.recurrence_interval,
            )
            occurrences = expand(
                parse_local_date(data.date),
                parse_local_time(data.time),
                rule,
                max_occurrences=self.max_occurrences,
            )
            values = await self._booking_values(db, professional_id, data)

            starts = [self.clock.to_utc(day, clock_time) for day, clock_time in occurrences]
            candidates = [Candidate.from_duration(start, values["duration_minutes"]) for start in starts]

            clashing = find_internal_overlaps(candidates)
            if clashing:
                raise InvalidRequestException(
                    "Recurrence produces overlapping occurrences",
                    details={"occurrences": clashing},
                )

            await self._ensure_free(db, professional_id, candidates)

            group_id: UUID = uuid4()
            now = self.clock.now()
            rows = [
                {
                    **values,
                    "start_at": start,
                    "recurrence_group_id": group_id,
                    "created_at": now,
                    "updated_at": now,
                }
                for start in starts
            ]
            ids = await self.store.insert_batch(db, rows)

            logger.info(
                "recurring_appointments_booked",
                professional_id=professional_id,
                group_id=str(group_id),
                recurrence_type=data.recurrence_type.value,
                count=len(ids),
            )
            return RecurringBookingResult(
                group_id=group_id,
                count=len(ids),
                appointments=[
                    BookingResult(id=appointment_id, start_at_utc=start)
                    for appointment_id, start in zip(ids, starts, strict=True)
                ],
            )

        return await self._in_transaction("book_recurring", work)

    async def cancel(
        self,
        appointment_id: int,
        by_user_id: int,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Cancel a scheduled appointment; the slot is free again on commit.

        Raises:
            NotFoundException: If the appointment does not exist for this professional
            IllegalTransitionException: If it is already cancelled or completed
        """

        async def work(db: AsyncSession) -> AppointmentResponse:
            await self.gate.require(db, by_user_id)
            await self._owned_appointment(db, appointment_id, by_user_id)
            updated = await self.store.cancel(
                db, appointment_id, by_user_id, (reason or "").strip() or None, self.clock.now()
            )
            logger.info(
                "appointment_cancelled",
                appointment_id=appointment_id,
                cancelled_by=by_user_id,
            )
            return updated

        return await self._in_transaction("cancel", work)

    async def complete(self, appointment_id: int, professional_id: int) -> AppointmentResponse:
        """Mark a scheduled appointment as completed."""

        async def work(db: AsyncSession) -> AppointmentResponse:
            await self.gate.require(db, professional_id)
            await self._owned_appointment(db, appointment_id, professional_id)
            updated = await self.store.complete(db, appointment_id, self.clock.now())
            logger.info("appointment_completed", appointment_id=appointment_id)
            return updated

        return await self._in_transaction("complete", work)

    async def reschedule(
        self,
        appointment_id: int,
        professional_id: int,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move a scheduled appointment and/or edit its notes, value or location.

        The appointment's own current slot does not count as a conflict.

        Raises:
            IllegalTransitionException: If the appointment is not scheduled
            NotFoundException: If the new location is not the professional's
            ConflictException: If the new slot is taken
        """

        async def work(db: AsyncSession) -> AppointmentResponse:
            await self.gate.require(db, professional_id)
            current = await self._owned_appointment(db, appointment_id, professional_id)
            if current.status != AppointmentStatus.SCHEDULED:
                raise IllegalTransitionException(
                    f"Cannot reschedule an appointment that is {current.status.value}"
                )

            changes: dict[str, Any] = {}
            if "notes" in data.model_fields_set:
                changes["notes"] = data.notes
            if data.value is not None:
                changes["value"] = data.value.quantize(Decimal("0.01"))
            if data.location_id is not None:
                changes["location_id"] = await self._resolve_location(db, professional_id, data.location_id)
            if data.moves:
                start_at = self.clock.to_utc(data.date, data.time)
                candidate = Candidate.from_duration(start_at, current.duration_minutes)
                await self._ensure_free(db, professional_id, [candidate], exclude_ids=[appointment_id])
                changes["start_at"] = start_at

            updated = await self.store.move(db, appointment_id, changes, self.clock.now())
            logger.info(
                "appointment_rescheduled",
                appointment_id=appointment_id,
                previous_start_at=current.start_at.isoformat(),
                start_at=updated.start_at.isoformat(),
                changed=sorted(changes),
            )
            return updated

        return await self._in_transaction("reschedule", work)

    async def list_agenda(
        self,
        professional_id: int,
        from_date: date | str,
        to_date: date | str,
        include_cancelled: bool = False,
    ) -> list[AppointmentResponse]:
        """
        List a professional's appointments over an inclusive local date range.

        Returns:
            Appointments ordered by start instant then id
        """

        async def work(db: AsyncSession) -> list[AppointmentResponse]:
            await self.gate.require(db, professional_id)
            window_start, window_end = self.clock.local_day_window(from_date, to_date)
            return await self.store.range(
                db,
                professional_id,
                window_start,
                window_end,
                include_cancelled=include_cancelled,
            )

        return await self._in_transaction("list_agenda", work)

    async def access_status(self, professional_id: int) -> SchedulingAccessStatus:
        """Report the professional's scheduling access without gating."""

        async def work(db: AsyncSession) -> SchedulingAccessStatus:
            return await self.gate.status(db, professional_id)

        return await self._in_transaction("access_status", work)
