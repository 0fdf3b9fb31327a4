"""
actlabs_hub.api.routers.servers

Endpoints a signed-in user calls for their own server.

Responsibilities:
- Register the caller's subscription, then deploy/destroy/update their server.
- Take identity from the bearer token, never from the request body.
- Accept activity heartbeats.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from starlette.status import HTTP_204_NO_CONTENT, HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from actlabs_hub.api.deps import lifecycle_dep
from actlabs_hub.auth.deps import get_principal
from actlabs_hub.auth.models import Principal
from actlabs_hub.domain.server import Server
from actlabs_hub.services.server_service import ServerLifecycle

router = APIRouter(prefix="/v1/server", tags=["server"])


def _bind_to_caller(server: Server, principal: Principal) -> Server:
    if server.user_principal_id and server.user_principal_id != principal.object_id:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="userPrincipalId does not match the authenticated user",
        )
    server.user_principal_id = principal.object_id
    server.user_principal_name = principal.user_principal_name
    return server


@router.put("/register/{subscription_id}", response_model=Server)
async def register_subscription(
    subscription_id: str,
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    return await lifecycle.register_subscription(
        subscription_id=subscription_id,
        user_principal_name=principal.user_principal_name,
        user_principal_id=principal.object_id,
    )


@router.get("", response_model=Server)
async def get_server(
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    return await lifecycle.get_server(principal.user_principal_name)


@router.put("", response_model=Server)
async def deploy_server(
    body: Server,
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    # Blocks until the server is verified up (or the readiness budget runs out).
    return await lifecycle.deploy(_bind_to_caller(body, principal))


@router.put("/update", response_model=Server)
async def update_server(
    body: Server,
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    return await lifecycle.update_server(_bind_to_caller(body, principal))


@router.delete("", response_model=Server)
async def destroy_server(
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    return await lifecycle.destroy(principal.user_principal_name)


@router.put("/unregister", status_code=HTTP_204_NO_CONTENT)
async def unregister(
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Response:
    await lifecycle.unregister(principal.user_principal_name)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.put("/activity/{user_principal_name}", response_model=Server)
async def update_activity(
    user_principal_name: str,
    principal: Principal = Depends(get_principal),
    lifecycle: ServerLifecycle = Depends(lifecycle_dep),
) -> Server:
    if user_principal_name != principal.user_principal_name and not principal.is_admin:
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Cannot report activity for another user")
    return await lifecycle.update_activity_status(user_principal_name)


# --- Module Notes -----------------------------------------------------------
# Lifecycle errors propagate as domain exceptions and are mapped to status
# codes in `actlabs_hub.api.errors`.
