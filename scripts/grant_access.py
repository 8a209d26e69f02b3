#!/usr/bin/env python3
"""
Grant a professional access to the scheduling core.

Usage:
    python scripts/grant_access.py <professional_id> 2026-01-01
    python scripts/grant_access.py <professional_id> 2026-01-01 --reason "Assinatura anual" --granted-by 1

The expiry date is a local date; access ends at local midnight starting that day.
"""

import argparse
import asyncio
import sys

from quiro_agenda.core.clock import parse_local_date
from quiro_agenda.core.exceptions import AppException
from quiro_agenda.database import AsyncSessionLocal, engine
from quiro_agenda.dependencies import get_clock
from quiro_agenda.middleware.logging import configure_logging
from quiro_agenda.services.access_gate import AccessGate


async def grant(professional_id: int, expires_on: str, reason: str | None, granted_by: int | None) -> int:
    """Append a grant and return its id."""
    clock = get_clock()
    expires_at = clock.to_utc(parse_local_date(expires_on), "00:00")
    try:
        async with AsyncSessionLocal() as db:
            async with db.begin():
                return await AccessGate(clock).grant(
                    db,
                    professional_id,
                    expires_at=expires_at,
                    reason=reason,
                    granted_by=granted_by,
                )
    finally:
        await engine.dispose()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Grant scheduling access to a professional")
    parser.add_argument("professional_id", type=int, help="Professional ID")
    parser.add_argument("expires_on", help="Local expiry date (YYYY-MM-DD)")
    parser.add_argument("--reason", help="Reason recorded with the grant")
    parser.add_argument("--granted-by", type=int, help="ID of the administrator granting access")
    args = parser.parse_args()

    configure_logging()
    try:
        grant_id = asyncio.run(grant(args.professional_id, args.expires_on, args.reason, args.granted_by))
    except AppException as e:
        print(f"✗ {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"✓ Grant {grant_id} created for professional {args.professional_id}")


if __name__ == "__main__":
    main()
