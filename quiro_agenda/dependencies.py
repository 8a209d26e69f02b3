"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quiro_agenda.config import settings
from quiro_agenda.core.clock import SchedulingClock
from quiro_agenda.core.security import decode_access_token
from quiro_agenda.database import AsyncSessionLocal
from quiro_agenda.services.scheduling_service import SchedulingService

# Security
security = HTTPBearer()


async def get_current_professional_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> int:
    """
    Extract the acting professional's id from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Professional id from the ``sub`` claim

    Raises:
        HTTPException: If token is invalid or expired
    """
    token = credentials.credentials
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if subject is None or not isinstance(subject, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return int(subject)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid professional ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory the scheduling transactions run on."""
    return AsyncSessionLocal


@lru_cache
def get_clock() -> SchedulingClock:
    """Process-wide scheduling clock."""
    return SchedulingClock(offset_minutes=settings.scheduling_timezone_offset_minutes)


def get_scheduling_service(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    clock: Annotated[SchedulingClock, Depends(get_clock)],
) -> SchedulingService:
    """Build the scheduling service for a request."""
    return SchedulingService(session_factory=session_factory, clock=clock, config=settings)


# Type aliases for dependency injection
CurrentProfessionalId = Annotated[int, Depends(get_current_professional_id)]
SchedulingServiceDep = Annotated[SchedulingService, Depends(get_scheduling_service)]
