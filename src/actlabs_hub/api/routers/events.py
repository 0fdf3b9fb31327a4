"""
actlabs_hub.api.routers.events

Operator view of recent lifecycle events.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from actlabs_hub.api.deps import hub_from_app
from actlabs_hub.auth.deps import require_roles
from actlabs_hub.domain.events import Event
from actlabs_hub.runtime import HubContext

router = APIRouter(prefix="/v1/events", tags=["events"])


@router.get("", response_model=list[Event], dependencies=[Depends(require_roles("admin"))])
async def list_events(hub: HubContext = Depends(hub_from_app)) -> list[Event]:
    return await hub.events.list_recent(hours=24)
