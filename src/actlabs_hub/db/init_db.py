"""
actlabs_hub.db.init_db

Schema bootstrap for dev/test runs.

Responsibilities:
- Create the `servers` and `events` tables when missing.
- Leave production schema changes to Alembic.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from actlabs_hub.db import models  # noqa: F401  # registers tables on Base.metadata
from actlabs_hub.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
