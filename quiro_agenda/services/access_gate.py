"""Scheduling access gate and the daily subscription expiry sweep."""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quiro_agenda.core.clock import SchedulingClock
from quiro_agenda.core.exceptions import NoSchedulingAccessException
from quiro_agenda.models.patients import dependents, members
from quiro_agenda.models.scheduling_access import scheduling_access
from quiro_agenda.schemas.scheduling_access import SchedulingAccessStatus, SweepResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class Granted:
    """The professional holds an active grant."""

    expires_at: datetime
    reason: str | None


@dataclass(frozen=True)
class Denied:
    """No usable grant."""


AccessDecision = Granted | Denied


class AccessGate:
    """Decides whether a professional may use the scheduling core."""

    def __init__(self, clock: SchedulingClock):
        """Initialize gate with the scheduling clock."""
        self.clock = clock

    async def _latest_active_grant(self, db: AsyncSession, professional_id: int) -> dict | None:
        stmt = (
            select(
                scheduling_access.c.id,
                scheduling_access.c.expires_at,
                scheduling_access.c.reason,
            )
            .where(
                scheduling_access.c.professional_id == professional_id,
                scheduling_access.c.is_active.is_(True),
            )
            .order_by(scheduling_access.c.created_at.desc(), scheduling_access.c.id.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def check(self, db: AsyncSession, professional_id: int) -> AccessDecision:
        """
        Check the most recently created active grant of a professional.

        Args:
            db: Database session
            professional_id: Acting professional

        Returns:
            ``Granted`` when the grant has not expired yet, ``Denied`` otherwise
        """
        grant = await self._latest_active_grant(db, professional_id)
        if grant is None or grant["expires_at"] <= self.clock.now():
            return Denied()
        return Granted(expires_at=grant["expires_at"], reason=grant["reason"])

    async def require(self, db: AsyncSession, professional_id: int) -> Granted:
        """
        Gate an operation on an active grant.

        Raises:
            NoSchedulingAccessException: If access is denied
        """
        decision = await self.check(db, professional_id)
        if isinstance(decision, Denied):
            logger.info("scheduling_access_denied", professional_id=professional_id)
            raise NoSchedulingAccessException()
        return decision

    async def status(self, db: AsyncSession, professional_id: int) -> SchedulingAccessStatus:
        """Describe the latest active grant, whether or not it is still valid."""
        grant = await self._latest_active_grant(db, professional_id)
        if grant is None:
            return SchedulingAccessStatus(has_access=False)
        return SchedulingAccessStatus(
            has_access=grant["expires_at"] > self.clock.now(),
            expires_at=grant["expires_at"],
            reason=grant["reason"],
        )

    async def grant(
        self,
        db: AsyncSession,
        professional_id: int,
        expires_at: datetime,
        reason: str | None = None,
        granted_by: int | None = None,
    ) -> int:
        """
        Append a new active grant.

        Returns:
            Id of the created grant
        """
        now = self.clock.now()
        stmt = (
            insert(scheduling_access)
            .values(
                professional_id=professional_id,
                granted_by=granted_by,
                starts_at=now,
                expires_at=expires_at,
                reason=reason,
                is_active=True,
                created_at=now,
            )
            .returning(scheduling_access.c.id)
        )
        result = await db.execute(stmt)
        grant_id = result.scalar_one()
        logger.info(
            "scheduling_access_granted",
            professional_id=professional_id,
            grant_id=grant_id,
            expires_at=expires_at.isoformat(),
        )
        return grant_id

    async def sweep(self, db: AsyncSession) -> SweepResult:
        """
        Expire member and dependent subscriptions past their expiry date.

        Both updates run in the caller's transaction, so a failure leaves
        no partial expiry behind. Running again on the same day changes
        nothing.

        Returns:
            Number of members and dependents flipped to ``expired``
        """
        today = self.clock.today_local()
        now = self.clock.now()

        results = {}
        for name, table in (("members", members), ("dependents", dependents)):
            stmt = (
                update(table)
                .where(
                    table.c.subscription_status == "active",
                    table.c.subscription_expiry.is_not(None),
                    table.c.subscription_expiry < today,
                )
                .values(subscription_status="expired", updated_at=now)
                .returning(table.c.id)
            )
            result = await db.execute(stmt)
            results[name] = len(result.scalars().all())

        sweep_result = SweepResult(
            members_expired=results["members"],
            dependents_expired=results["dependents"],
        )
        logger.info(
            "subscription_sweep_applied",
            local_date=today.isoformat(),
            members_expired=sweep_result.members_expired,
            dependents_expired=sweep_result.dependents_expired,
        )
        return sweep_result
