"""
actlabs_hub.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for the shared `HubContext` and DB sessions.
- Encapsulate app.state access patterns (hub context/sessionmaker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from actlabs_hub.runtime import HubContext
from actlabs_hub.services.server_service import ServerLifecycle


def hub_from_app(request: Request) -> HubContext:
    # Built on app startup in `actlabs_hub.api.app.create_app`.
    return request.app.state.hub  # type: ignore[attr-defined]


def lifecycle_dep(hub: HubContext = Depends(hub_from_app)) -> ServerLifecycle:
    return hub.lifecycle


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session
