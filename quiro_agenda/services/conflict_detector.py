"""Conflict detection between candidate slots and a professional's agenda."""

from bisect import bisect_left
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from quiro_agenda.schemas.appointments import AppointmentResponse
from quiro_agenda.services.appointment_store import AppointmentStore


@dataclass(frozen=True)
class Candidate:
    """A requested half-open slot ``[start, end)``."""

    start: datetime
    end: datetime

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> "Candidate":
        """Build a candidate from a start instant and a duration."""
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))


@dataclass(frozen=True)
class Conflict:
    """A candidate together with the existing appointment it collides with."""

    index: int
    candidate: Candidate
    existing: AppointmentResponse


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval intersection test."""
    return a_start < b_end and b_start < a_end


def find_internal_overlaps(candidates: Sequence[Candidate]) -> list[int]:
    """
    Indexes of candidates that overlap another candidate of the same batch.

    Returns:
        Sorted list of offending indexes
    """
    ordered = sorted(range(len(candidates)), key=lambda i: (candidates[i].start, i))
    clashing: set[int] = set()
    reach_end: datetime | None = None
    reach_index = -1
    for i in ordered:
        candidate = candidates[i]
        if reach_end is not None and candidate.start < reach_end:
            clashing.update((i, reach_index))
        if reach_end is None or candidate.end > reach_end:
            reach_end = candidate.end
            reach_index = i
    return sorted(clashing)


class ConflictDetector:
    """Reports which candidates collide with non-cancelled appointments."""

    def __init__(self, store: AppointmentStore):
        """Initialize detector on top of the appointment store."""
        self.store = store

    async def find_conflicts(
        self,
        db: AsyncSession,
        professional_id: int,
        candidates: Sequence[Candidate],
        exclude_ids: Collection[int] = (),
    ) -> list[Conflict]:
        """
        Find candidates that clash with the professional's live appointments.

        Must run in the same transaction as the subsequent insert so the
        snapshot cannot go stale between the check and the write.

        Args:
            db: Database session (inside the booking transaction)
            professional_id: Agenda owner
            candidates: Requested slots, in occurrence order
            exclude_ids: Appointment ids to ignore (e.g. the one being moved)

        Returns:
            Conflicts in candidate order. For each candidate the earliest
            starting colliding appointment is reported, ties broken by id.
        """
        if not candidates:
            return []

        window_start = min(c.start for c in candidates)
        window_end = max(c.end for c in candidates)
        # Appointments starting before the window may still reach into it
        look_behind = timedelta(minutes=await self.store.max_duration(db, professional_id))

        existing = [
            appointment
            for appointment in await self.store.range(
                db,
                professional_id,
                window_start - look_behind,
                window_end,
            )
            if appointment.id not in exclude_ids
        ]
        # range() already orders by (start_at, id)
        starts = [appointment.start_at for appointment in existing]

        conflicts: list[Conflict] = []
        for index, candidate in enumerate(candidates):
            # Nothing starting at or after candidate.end can overlap it
            upper = bisect_left(starts, candidate.end)
            for appointment in existing[:upper]:
                if overlaps(candidate.start, candidate.end, appointment.start_at, appointment.end_at):
                    conflicts.append(Conflict(index=index, candidate=candidate, existing=appointment))
                    break

        return conflicts
