"""
actlabs_hub.api.routers.admin_servers

Operator endpoints acting on any user's server.

Responsibilities:
- List all server records.
- Deploy, update, destroy and unregister on behalf of a user (role=admin).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from starlette.status import HTTP_204_NO_CONTENT

from actlabs_hub.api.deps import lifecycle_dep
from actlabs_hub.auth.deps import require_roles
from actlabs_hub.domain.server import Server
from actlabs_hub.services.server_service import ServerLifecycle

router = APIRouter(
    prefix="/v1/admin",
    tags=["admin"],
    dependencies=[Depends(require_roles("admin"))],
)


@router.get("/servers", response_model=list[Server])
async def list_servers(lifecycle: ServerLifecycle = Depends(lifecycle_dep)) -> list[Server]:
    return await lifecycle.list_servers()


@router.put("/server", response_model=Server)
async def deploy_server(body: Server, lifecycle: ServerLifecycle = Depends(lifecycle_dep)) -> Server:
    return await lifecycle.deploy(body)


@router.put("/server/update", response_model=Server)
async def update_server(body: Server, lifecycle: ServerLifecycle = Depends(lifecycle_dep)) -> Server:
    return await lifecycle.update_server(body)


@router.delete("/server/unregister/{user_principal_name}", status_code=HTTP_204_NO_CONTENT)
async def unregister(
    user_principal_name: str,
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Response:
    await lifecycle.unregister(user_principal_name)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.delete("/server/{user_principal_name}", response_model=Server)
async def destroy_server(
    user_principal_name: str,
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    return await lifecycle.destroy(user_principal_name)
