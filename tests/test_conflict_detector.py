"""Tests for conflict detection."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import insert

from quiro_agenda.models.appointments import appointments
from quiro_agenda.services.appointment_store import AppointmentStore
from quiro_agenda.services.conflict_detector import (
    Candidate,
    ConflictDetector,
    find_internal_overlaps,
    overlaps,
)

MARCH_10 = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def slot(start: datetime, minutes: int = 30) -> Candidate:
    return Candidate.from_duration(start, minutes)


async def add_appointment(session_factory, start_at: datetime, minutes: int = 30, **overrides) -> int:
    row = {
        "professional_id": 7,
        "private_patient_id": 42,
        "service_id": 3,
        "start_at": start_at,
        "duration_minutes": minutes,
        "value": Decimal("80.00"),
        "status": "scheduled",
        "created_at": start_at,
        "updated_at": start_at,
        **overrides,
    }
    async with session_factory() as session, session.begin():
        result = await session.execute(insert(appointments).values(**row).returning(appointments.c.id))
        return result.scalar_one()


def test_overlaps_is_half_open() -> None:
    end = MARCH_10 + timedelta(minutes=30)
    assert overlaps(MARCH_10, end, MARCH_10, end)
    assert not overlaps(MARCH_10, end, end, end + timedelta(minutes=30))
    assert overlaps(MARCH_10, end, end - timedelta(minutes=1), end + timedelta(minutes=30))


def test_find_internal_overlaps() -> None:
    candidates = [
        slot(MARCH_10),
        slot(MARCH_10 + timedelta(minutes=30)),
        slot(MARCH_10 + timedelta(minutes=45)),
        slot(MARCH_10 + timedelta(days=1)),
    ]
    assert find_internal_overlaps(candidates) == [1, 2]
    assert find_internal_overlaps(candidates[:2] + candidates[3:]) == []


def test_find_internal_overlaps_long_slot_covers_later_ones() -> None:
    candidates = [
        slot(MARCH_10, minutes=180),
        slot(MARCH_10 + timedelta(hours=1)),
        slot(MARCH_10 + timedelta(hours=2)),
    ]
    assert find_internal_overlaps(candidates) == [0, 1, 2]


async def test_no_conflicts_on_empty_agenda(session_factory) -> None:
    detector = ConflictDetector(AppointmentStore())
    async with session_factory() as session:
        assert await detector.find_conflicts(session, 7, [slot(MARCH_10)]) == []


async def test_identical_and_adjacent_slots(session_factory) -> None:
    existing_id = await add_appointment(session_factory, MARCH_10)
    detector = ConflictDetector(AppointmentStore())

    async with session_factory() as session:
        conflicts = await detector.find_conflicts(
            session,
            7,
            [slot(MARCH_10), slot(MARCH_10 + timedelta(minutes=30)), slot(MARCH_10 - timedelta(minutes=30))],
        )

    assert [conflict.index for conflict in conflicts] == [0]
    assert conflicts[0].existing.id == existing_id
    assert conflicts[0].existing.patient_name == "Ana Souza"


async def test_long_appointment_starting_before_window(session_factory) -> None:
    """An appointment that starts well before the candidate still blocks it."""
    await add_appointment(session_factory, MARCH_10 - timedelta(hours=2), minutes=180)
    detector = ConflictDetector(AppointmentStore())

    async with session_factory() as session:
        conflicts = await detector.find_conflicts(session, 7, [slot(MARCH_10 + timedelta(minutes=30))])

    assert len(conflicts) == 1


async def test_reports_earliest_colliding_appointment(session_factory) -> None:
    first = await add_appointment(session_factory, MARCH_10)
    await add_appointment(session_factory, MARCH_10 + timedelta(minutes=30), private_patient_id=99)
    detector = ConflictDetector(AppointmentStore())

    async with session_factory() as session:
        conflicts = await detector.find_conflicts(session, 7, [slot(MARCH_10, minutes=60)])

    assert len(conflicts) == 1
    assert conflicts[0].existing.id == first


async def test_cancelled_other_professional_and_excluded_are_ignored(session_factory) -> None:
    await add_appointment(
        session_factory,
        MARCH_10,
        status="cancelled",
        cancelled_at=MARCH_10,
        cancelled_by=7,
    )
    await add_appointment(session_factory, MARCH_10, professional_id=8, private_patient_id=50)
    moving = await add_appointment(session_factory, MARCH_10 + timedelta(hours=1))
    detector = ConflictDetector(AppointmentStore())

    async with session_factory() as session:
        assert await detector.find_conflicts(session, 7, [slot(MARCH_10)]) == []
        assert (
            await detector.find_conflicts(
                session,
                7,
                [slot(MARCH_10 + timedelta(hours=1))],
                exclude_ids=[moving],
            )
            == []
        )


async def test_completed_appointment_blocks_its_slot(session_factory) -> None:
    await add_appointment(session_factory, MARCH_10, status="completed")
    detector = ConflictDetector(AppointmentStore())

    async with session_factory() as session:
        assert len(await detector.find_conflicts(session, 7, [slot(MARCH_10)])) == 1
