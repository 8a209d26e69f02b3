"""Tests for the arq worker running the daily subscription sweep."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from arq import Retry
from sqlalchemy.exc import OperationalError

from quiro_agenda.database import AsyncSessionLocal
from quiro_agenda.services.access_gate import AccessGate
from quiro_agenda.worker import WorkerSettings, startup, sweep_subscriptions_task


@pytest.fixture
def ctx(session_factory, clock) -> dict:
    """arq job context wired to the test database and clock."""
    return {"session_factory": session_factory, "access_gate": AccessGate(clock), "job_try": 1}


async def test_sweep_expires_lapsed_subscriptions_once(ctx: dict, frozen_time) -> None:
    # Seeded subscriptions run until 2025-12-31
    frozen_time.at = datetime(2026, 1, 1, 3, 10, tzinfo=UTC)

    first = await sweep_subscriptions_task(ctx)
    second = await sweep_subscriptions_task(ctx)

    assert first == {"members_expired": 1, "dependents_expired": 1}
    assert second == {"members_expired": 0, "dependents_expired": 0}


async def test_sweep_before_expiry_changes_nothing(ctx: dict) -> None:
    assert await sweep_subscriptions_task(ctx) == {"members_expired": 0, "dependents_expired": 0}


async def test_database_errors_requeue_the_sweep(ctx: dict) -> None:
    gate = MagicMock(spec=AccessGate)
    gate.sweep.side_effect = OperationalError("UPDATE", {}, Exception("database is locked"))
    ctx["access_gate"] = gate
    ctx["job_try"] = 2

    with pytest.raises(Retry) as exc_info:
        await sweep_subscriptions_task(ctx)

    assert exc_info.value.defer_score == 120_000


def test_sweep_runs_daily_in_clinic_time() -> None:
    [job] = WorkerSettings.cron_jobs

    assert job.coroutine is sweep_subscriptions_task
    assert (job.hour, job.minute) == (0, 5)
    assert job.run_at_startup is True
    assert job.unique is True
    assert job.max_tries == 3
    assert WorkerSettings.timezone.utcoffset(None) == timedelta(hours=-3)
    assert sweep_subscriptions_task in WorkerSettings.functions


async def test_startup_shares_session_factory_and_gate() -> None:
    ctx: dict = {}

    await startup(ctx)

    assert ctx["session_factory"] is AsyncSessionLocal
    assert isinstance(ctx["access_gate"], AccessGate)
