"""
arq background worker.

Runs the daily subscription expiry sweep as a cron job in the clinic's fixed
local zone. Start it with ``arq quiro_agenda.worker.WorkerSettings``.
"""

from typing import Any

import structlog
from arq import Retry
from arq.cron import cron
from sqlalchemy.exc import DBAPIError

from quiro_agenda.config import settings
from quiro_agenda.core.clock import SchedulingClock, parse_local_time
from quiro_agenda.core.redis_client import get_redis_settings
from quiro_agenda.database import AsyncSessionLocal, engine
from quiro_agenda.middleware.logging import configure_logging
from quiro_agenda.services.access_gate import AccessGate

logger = structlog.get_logger()

clock = SchedulingClock(offset_minutes=settings.scheduling_timezone_offset_minutes)
sweep_at = parse_local_time(settings.scheduling_sweep_local_time)


async def startup(ctx: dict[str, Any]) -> None:
    """Share the session factory and access gate with every job."""
    configure_logging()
    ctx["session_factory"] = AsyncSessionLocal
    ctx["access_gate"] = AccessGate(clock)
    logger.info("worker_startup", sweep_local_time=sweep_at.strftime("%H:%M"))


async def shutdown(ctx: dict[str, Any]) -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("worker_shutdown")


async def sweep_subscriptions_task(ctx: dict[str, Any]) -> dict[str, int]:
    """
    Expire lapsed member and dependent subscriptions in one transaction.

    Database errors re-queue the job with a growing delay, up to the worker's
    ``max_tries``.

    Args:
        ctx: arq context

    Returns:
        Number of members and dependents expired
    """
    gate: AccessGate = ctx["access_gate"]
    session_factory = ctx["session_factory"]
    job_try = ctx.get("job_try", 1)

    try:
        async with session_factory() as db, db.begin():
            result = await gate.sweep(db)
    except DBAPIError as e:
        logger.warning("subscription_sweep_failed", job_try=job_try, error=str(e))
        raise Retry(defer=job_try * 60) from e

    logger.info(
        "subscription_sweep_completed",
        members_expired=result.members_expired,
        dependents_expired=result.dependents_expired,
    )
    return result.model_dump()


class WorkerSettings:
    """arq worker settings."""

    functions = [sweep_subscriptions_task]
    redis_settings = get_redis_settings()
    on_startup = startup
    on_shutdown = shutdown

    # Cron times are read in the clinic's wall clock, not the host zone
    timezone = clock.zone

    max_tries = 3
    health_check_interval = 60

    cron_jobs = [
        # Also on worker start, catching up a day missed while no worker ran;
        # unique keeps one run per tick across workers
        cron(
            sweep_subscriptions_task,
            hour=sweep_at.hour,
            minute=sweep_at.minute,
            run_at_startup=True,
            unique=True,
            max_tries=3,
        ),
    ]
