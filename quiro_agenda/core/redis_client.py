"""Redis connection for the arq job queue."""

import asyncio

import structlog
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job
from redis.exceptions import RedisError

from quiro_agenda.config import settings

logger = structlog.get_logger()

SWEEP_TASK = "sweep_subscriptions_task"

# Global queue connection, created on first use
_redis_pool: ArqRedis | None = None


def get_redis_settings() -> RedisSettings:
    """Get Redis settings for the arq worker and job producers."""
    return RedisSettings(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username if settings.redis_password else None,
        password=settings.redis_password or None,
        conn_timeout=15,
        conn_retries=2,
        conn_retry_delay=1,
    )


async def get_redis_pool() -> ArqRedis:
    """
    Get or create the arq Redis pool.

    Returns:
        Queue connection
    """
    global _redis_pool

    if _redis_pool is None:
        _redis_pool = await create_pool(get_redis_settings())

    return _redis_pool


async def check_redis_connection() -> bool:
    """
    Check if the queue's Redis is reachable.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        pool = await get_redis_pool()
        await pool.ping()
        return True
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False


async def close_redis_connection() -> None:
    """Close the queue connection."""
    global _redis_pool

    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


async def enqueue_sweep() -> Job | None:
    """
    Queue a subscription sweep for the next free worker.

    Returns:
        The queued job, or None when an identical job is already queued
    """
    pool = await get_redis_pool()
    job = await pool.enqueue_job(SWEEP_TASK)
    logger.info("subscription_sweep_enqueued", job_id=job.job_id if job else None)
    return job
