#!/usr/bin/env python3
"""
Run the subscription expiry sweep outside the worker's daily schedule.

The arq worker (``arq quiro_agenda.worker.WorkerSettings``) sweeps every day on
its own. This script is for catching up by hand: by default it sweeps in this
process, and with ``--enqueue`` it hands the sweep to a running worker instead.

Usage:
    python scripts/run_sweep.py
    python scripts/run_sweep.py --enqueue
"""

import argparse
import asyncio
import sys

from quiro_agenda.core.redis_client import close_redis_connection, enqueue_sweep
from quiro_agenda.middleware.logging import configure_logging
from quiro_agenda.worker import shutdown, startup, sweep_subscriptions_task


async def run_here() -> int:
    """Sweep in this process; returns the exit code."""
    ctx: dict = {}
    await startup(ctx)
    try:
        result = await sweep_subscriptions_task(ctx)
    finally:
        await shutdown(ctx)

    print(f"✓ Expired {result['members_expired']} member(s) and {result['dependents_expired']} dependent(s)")
    return 0


async def run_on_worker() -> int:
    """Queue the sweep for the worker; returns the exit code."""
    try:
        job = await enqueue_sweep()
    finally:
        await close_redis_connection()

    if job is None:
        print("Sweep already queued")
    else:
        print(f"✓ Sweep queued as job {job.job_id}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the subscription expiry sweep now")
    parser.add_argument(
        "--enqueue",
        action="store_true",
        help="Queue the sweep for the arq worker instead of running it here",
    )
    args = parser.parse_args()

    configure_logging()
    sys.exit(asyncio.run(run_on_worker() if args.enqueue else run_here()))


if __name__ == "__main__":
    main()
