"""
actlabs_hub.db.repositories.servers

SQL implementation of the `ServerStore` port.

Responsibilities:
- Map `Server` domain records to `ServerRow` and back.
- Give every call its own session so each write is one atomic transaction.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from actlabs_hub.db.models import ServerRow
from actlabs_hub.domain.server import Server, ServerStatus

_COLUMNS = (
    "user_principal_id",
    "user_alias",
    "subscription_id",
    "resource_group",
    "region",
    "managed_identity_resource_id",
    "managed_identity_client_id",
    "managed_identity_principal_id",
    "endpoint",
    "log_level",
    "last_user_activity_time",
    "deployed_at_time",
    "destroyed_at_time",
    "inactivity_duration_in_seconds",
)


class SqlServerStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def get(self, user_principal_name: str) -> Server | None:
        async with self._sessions() as session:
            row = await session.get(ServerRow, user_principal_name)
            return _to_domain(row) if row is not None else None

    async def upsert(self, server: Server) -> None:
        async with self._sessions() as session:
            row = await session.get(ServerRow, server.user_principal_name)
            if row is None:
                row = ServerRow(user_principal_name=server.user_principal_name)
                session.add(row)
            _copy_onto(row, server)
            await session.commit()

    async def list_all(self) -> list[Server]:
        async with self._sessions() as session:
            rows = (await session.execute(select(ServerRow))).scalars().all()
            return [_to_domain(r) for r in rows]

    async def delete(self, user_principal_name: str) -> None:
        async with self._sessions() as session:
            await session.execute(
                delete(ServerRow).where(ServerRow.user_principal_name == user_principal_name)
            )
            await session.commit()


def _to_domain(row: ServerRow) -> Server:
    return Server(
        user_principal_name=row.user_principal_name,
        status=row.status,
        auto_create=row.auto_create,
        auto_destroy=row.auto_destroy,
        **{name: getattr(row, name) for name in _COLUMNS},
    )


def _copy_onto(row: ServerRow, server: Server) -> None:
    for name in _COLUMNS:
        setattr(row, name, getattr(server, name))
    row.status = server.status or ServerStatus.registered
    # Unset flags persist as the documented default (enabled).
    row.auto_create = True if server.auto_create is None else server.auto_create
    row.auto_destroy = True if server.auto_destroy is None else server.auto_destroy
