import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; never point the suite at a real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./quiro_agenda_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from quiro_agenda.config import settings  # noqa: E402
from quiro_agenda.core.clock import SchedulingClock  # noqa: E402
from quiro_agenda.core.security import create_professional_token  # noqa: E402
from quiro_agenda.database import enable_sqlite_write_locks  # noqa: E402
from quiro_agenda.dependencies import get_clock, get_session_factory  # noqa: E402
from quiro_agenda.main import app  # noqa: E402
from quiro_agenda.models import (  # noqa: E402
    appointments,
    attendance_locations,
    dependents,
    members,
    metadata,
    private_patients,
    professionals,
    scheduling_access,
    services,
)
from quiro_agenda.services.scheduling_service import SchedulingService  # noqa: E402

# 09:00 local (UTC-3)
NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class FrozenTime:
    """Time source for the scheduling clock that only moves when told to."""

    def __init__(self, at: datetime):
        self.at = at

    def __call__(self) -> datetime:
        return self.at

    def advance(self, **kwargs: float) -> None:
        self.at += timedelta(**kwargs)


async def seed(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Insert the reference data every test starts from."""
    async with session_factory() as session, session.begin():
        await session.execute(
            insert(professionals),
            [
                {"id": 7, "name": "Dra. Helena Ferreira", "specialty": "Quiropraxia"},
                {"id": 8, "name": "Dr. Otávio Ramos", "specialty": "Fisioterapia"},
            ],
        )
        await session.execute(
            insert(private_patients),
            [
                {"id": 42, "professional_id": 7, "name": "Ana Souza"},
                {"id": 99, "professional_id": 7, "name": "Bruno Lima"},
                {"id": 50, "professional_id": 8, "name": "Carla Dias"},
            ],
        )
        await session.execute(
            insert(services),
            [
                {"id": 3, "name": "Quiropraxia", "base_price": Decimal("80.00"), "slot_minutes": 30},
                {"id": 4, "name": "Avaliação postural", "base_price": Decimal("120.00"), "slot_minutes": None},
            ],
        )
        await session.execute(
            insert(attendance_locations),
            [
                {"id": 1, "professional_id": 7, "name": "Consultório Centro", "is_default": True},
                {"id": 2, "professional_id": 7, "name": "Unidade Sul", "is_default": False},
                {"id": 3, "professional_id": 8, "name": "Clínica Norte", "is_default": True},
            ],
        )
        await session.execute(
            insert(members),
            [
                {
                    "id": 1,
                    "name": "Marcos Pereira",
                    "subscription_status": "active",
                    "subscription_expiry": date(2025, 12, 31),
                },
                {
                    "id": 2,
                    "name": "Lúcia Alves",
                    "subscription_status": "pending",
                    "subscription_expiry": None,
                },
            ],
        )
        await session.execute(
            insert(dependents),
            [
                {
                    "id": 1,
                    "member_id": 1,
                    "name": "Pedro Pereira",
                    "subscription_status": "active",
                    "subscription_expiry": date(2025, 12, 31),
                },
            ],
        )
        await session.execute(
            insert(scheduling_access).values(
                professional_id=7,
                starts_at=NOW - timedelta(days=1),
                expires_at=datetime(2026, 1, 1, tzinfo=UTC),
                reason="Assinatura profissional",
                is_active=True,
                created_at=NOW - timedelta(days=1),
            )
        )


@pytest.fixture
def frozen_time() -> FrozenTime:
    """Controllable "now" for the scheduling clock."""
    return FrozenTime(NOW)


@pytest.fixture
def clock(frozen_time: FrozenTime) -> SchedulingClock:
    """Scheduling clock in UTC-3 driven by ``frozen_time``."""
    return SchedulingClock(offset_minutes=-180, now=frozen_time)


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a fresh, seeded SQLite database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'agenda.db'}",
        echo=False,
        poolclass=NullPool,
    )
    enable_sqlite_write_locks(engine)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await seed(factory)

    yield factory

    await engine.dispose()


@pytest.fixture
def scheduling_service(
    session_factory: async_sessionmaker[AsyncSession],
    clock: SchedulingClock,
) -> SchedulingService:
    """Scheduling service wired to the test database and clock."""
    return SchedulingService(session_factory=session_factory, clock=clock, config=settings)


@pytest.fixture
def count_appointments(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[], Awaitable[int]]:
    """Count every stored appointment, cancelled ones included."""

    async def count() -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(appointments))
            return result.scalar_one()

    return count


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: SchedulingClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def bearer_headers(professional_id: int) -> dict:
    """Bearer headers for a professional."""
    token = create_professional_token(professional_id, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_auth_headers() -> Callable[[int], dict]:
    """Build authentication headers for any professional."""
    return bearer_headers


@pytest.fixture
def auth_headers() -> dict:
    """Create authentication headers for professional 7."""
    return bearer_headers(7)


@pytest.fixture
def booking_payload() -> dict:
    """Booking request body for scenario 1."""
    return {
        "patient": {"private_patient_id": 42},
        "service_id": 3,
        "date": "2025-03-10",
        "time": "09:00",
    }
