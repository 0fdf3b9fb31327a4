"""
actlabs_hub.db.repositories.events

SQL implementation of the `EventRecorder` port.

Responsibilities:
- Append lifecycle events.
- List recent events (newest first) for operators.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from actlabs_hub.db.models import EventRow
from actlabs_hub.domain.events import Event
from actlabs_hub.domain.server import to_timestamp


class SqlEventRecorder:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def record(self, event: Event) -> None:
        # Events are append-only (no update/delete) in normal operation.
        async with self._sessions() as session:
            session.add(
                EventRow(
                    type=event.type,
                    reason=event.reason,
                    message=event.message,
                    reporter=event.reporter,
                    object=event.object,
                )
            )
            await session.commit()

    async def list_recent(self, *, hours: int = 24, limit: int = 500) -> list[Event]:
        since = datetime.now(tz=UTC).replace(tzinfo=None) - timedelta(hours=hours)
        stmt = (
            select(EventRow)
            .where(EventRow.created_at >= since)
            .order_by(desc(EventRow.created_at))
            .limit(limit)
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            Event(
                type=r.type,  # type: ignore[arg-type]
                reason=r.reason,
                message=r.message,
                reporter=r.reporter,
                object=r.object,
                timestamp=to_timestamp(r.created_at.replace(tzinfo=UTC)),
            )
            for r in rows
        ]


# --- Module Notes -----------------------------------------------------------
# The event's own `timestamp` is derived from `created_at` on read so the log
# has a single clock (the DB writer's).
