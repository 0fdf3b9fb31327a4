"""
actlabs_hub.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Liveness (`/healthz`): the process serves HTTP.
- Readiness (`/readyz`): the server store answers and no background reconciler
  has stopped for good.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from actlabs_hub.api.deps import db_session

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", response_model=None)
async def readyz(
    request: Request,
    session: AsyncSession = Depends(db_session),
) -> dict[str, str] | JSONResponse:
    await session.execute(text("SELECT 1"))

    tasks: list[asyncio.Task[None]] = getattr(request.app.state, "background_tasks", [])
    stopped = [t.get_name() for t in tasks if t.done() and not t.cancelled()]
    if stopped:
        return JSONResponse(
            status_code=HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "stopped_loops": stopped},
        )
    return {"status": "ready"}
