"""Script to initialize the database."""

import asyncio

from quiro_agenda.database import engine
from quiro_agenda.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all scheduling tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
