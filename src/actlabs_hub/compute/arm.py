"""
actlabs_hub.compute.arm

Azure Resource Manager (ARM) client boundary.

Responsibilities:
- Attach short-lived ARM bearer tokens obtained from an azure-identity credential.
- Translate transport failures and non-2xx responses into `ProviderError`.
- Implement the `ComputeProvider` port on top of Azure Container Instances,
  user-assigned managed identities and role assignments.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import AzureError

from actlabs_hub.domain.server import Server
from actlabs_hub.errors import ProviderError
from actlabs_hub.observability.logging import get_logger
from actlabs_hub.ports import DeployResult, ManagedIdentity
from actlabs_hub.settings import Settings

log = get_logger(__name__)

CONTAINER_INSTANCE_API = "2023-05-01"
MANAGED_IDENTITY_API = "2023-01-31"
AUTHORIZATION_API = "2022-04-01"
RESOURCES_API = "2021-04-01"

# Built-in "Owner" role definition.
OWNER_ROLE_DEFINITION_ID = "8e3af657-a8ff-443c-a75c-2fe8c4bcb635"

_TERMINAL_STATES = frozenset({"Succeeded", "Failed", "Canceled"})


class ArmClient:
    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        credential: AsyncTokenCredential,
    ) -> None:
        self._settings = settings
        self._http = http
        self._credential = credential

    async def _authz(self) -> dict[str, str]:
        try:
            token = await self._credential.get_token(self._settings.arm_scope)
        except AzureError as e:
            raise ProviderError(f"failed to acquire ARM token: {e}") from e
        return {"Authorization": f"Bearer {token.token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        api_version: str | None = None,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        """
        Send one ARM request and return the decoded body.

        `path` is either relative to the ARM base URL or an absolute `nextLink`
        (which already carries its query string). Returns None for a tolerated 404.
        """

        if path.startswith("https://"):
            url, query = path, dict(params or {})
        else:
            url = f"{self._settings.arm_base_url}{path}"
            query = {"api-version": api_version or RESOURCES_API, **(params or {})}

        try:
            r = await self._http.request(
                method,
                url,
                params=query or None,
                json=json,
                headers=await self._authz(),
                timeout=self._settings.compute_timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"{method} {path} failed: {e}") from e

        if r.status_code == 404 and allow_not_found:
            return None
        if r.is_error:
            raise ProviderError(f"{method} {path} returned {r.status_code}: {r.text[:500]}")
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise ProviderError(f"{method} {path} returned a non-JSON body") from e


class ArmComputeProvider(ArmClient):
    """One container group (`<alias>-aci`) per user in the user's own subscription."""

    def _container_group_path(self, server: Server) -> str:
        return (
            f"/subscriptions/{server.subscription_id}/resourceGroups/{server.resource_group}"
            f"/providers/Microsoft.ContainerInstance/containerGroups/{server.user_alias}-aci"
        )

    def _container_group_body(self, server: Server) -> dict[str, Any]:
        s = self._settings
        env = {
            "PORT": str(s.server_port),
            "ARM_USE_MSI": "true",
            "USE_MSI": "true",
            "AZURE_CLIENT_ID": server.managed_identity_client_id,
            "ARM_SUBSCRIPTION_ID": server.subscription_id,
            "AZURE_SUBSCRIPTION_ID": server.subscription_id,
            "ARM_USER_PRINCIPAL_NAME": server.user_principal_name,
            "LOG_LEVEL": server.log_level,
            "AUTH_TOKEN_ISS": s.jwt_issuer,
            "AUTH_TOKEN_AUD": s.jwt_audience,
        }
        return {
            "location": server.region,
            "identity": {
                "type": "UserAssigned",
                "userAssignedIdentities": {server.managed_identity_resource_id: {}},
            },
            "properties": {
                "osType": "Linux",
                "restartPolicy": "Always",
                "containers": [
                    {
                        "name": "actlabs",
                        "properties": {
                            "image": s.server_image,
                            "ports": [{"port": s.server_port, "protocol": "TCP"}],
                            "resources": {
                                "requests": {"cpu": s.server_cpu, "memoryInGB": s.server_memory_gb}
                            },
                            "readinessProbe": {
                                "httpGet": {
                                    "path": s.readiness_probe_path,
                                    "port": s.server_port,
                                    "scheme": "http",
                                },
                                "periodSeconds": int(s.probe_interval_seconds) or 1,
                                "timeoutSeconds": int(s.probe_timeout_seconds) or 1,
                            },
                            "environmentVariables": [
                                {"name": k, "value": v} for k, v in env.items()
                            ],
                        },
                    }
                ],
                "ipAddress": {
                    "type": "Public",
                    "dnsNameLabel": f"{server.user_alias}-actlabs-aci",
                    "ports": [{"port": s.server_port, "protocol": "TCP"}],
                },
            },
        }

    async def deploy(self, server: Server) -> DeployResult:
        path = self._container_group_path(server)
        log.info(
            "container_group_create",
            user_principal_name=server.user_principal_name,
            subscription_id=server.subscription_id,
            resource_group=server.resource_group,
        )
        body = await self.request(
            "PUT", path, api_version=CONTAINER_INSTANCE_API, json=self._container_group_body(server)
        )
        body = await self._poll_provisioning(path, body or {})

        props = body.get("properties", {})
        state = props.get("provisioningState", "")
        if state != "Succeeded":
            raise ProviderError(f"container group provisioning ended in state {state!r}")
        fqdn = props.get("ipAddress", {}).get("fqdn")
        if not fqdn:
            raise ProviderError("container group has no public fqdn")
        return DeployResult(endpoint=fqdn, provisioning_state=state)

    async def _poll_provisioning(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            async with asyncio.timeout(self._settings.compute_timeout_seconds):
                while body.get("properties", {}).get("provisioningState") not in _TERMINAL_STATES:
                    await asyncio.sleep(self._settings.probe_interval_seconds)
                    body = await self.request("GET", path, api_version=CONTAINER_INSTANCE_API) or {}
        except TimeoutError as e:
            raise ProviderError("timed out waiting for container group provisioning") from e
        return body

    async def destroy(self, server: Server) -> None:
        path = self._container_group_path(server)
        log.info(
            "container_group_delete",
            user_principal_name=server.user_principal_name,
            subscription_id=server.subscription_id,
        )
        # Already gone counts as destroyed.
        await self.request("DELETE", path, api_version=CONTAINER_INSTANCE_API, allow_not_found=True)

        try:
            async with asyncio.timeout(self._settings.compute_timeout_seconds):
                while await self.request(
                    "GET", path, api_version=CONTAINER_INSTANCE_API, allow_not_found=True
                ) is not None:
                    await asyncio.sleep(self._settings.probe_interval_seconds)
        except TimeoutError as e:
            raise ProviderError("timed out waiting for container group deletion") from e

    async def ensure_up(self, endpoint: str, probe_path: str) -> None:
        url = f"https://{endpoint}{probe_path}"
        try:
            r = await self._http.get(url, timeout=self._settings.probe_timeout_seconds)
        except httpx.HTTPError as e:
            raise ProviderError(f"readiness probe {url} failed: {e}") from e
        if not r.is_success:
            raise ProviderError(f"readiness probe {url} returned {r.status_code}")

    async def ensure_idle(self, endpoint: str) -> bool:
        url = f"https://{endpoint}{self._settings.idle_probe_path}"
        try:
            r = await self._http.get(url, timeout=self._settings.probe_timeout_seconds)
            r.raise_for_status()
            payload = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"idle probe {url} failed: {e}") from e
        return bool(payload.get("isIdle", False))

    async def get_user_assigned_identity(self, server: Server) -> ManagedIdentity:
        path = (
            f"/subscriptions/{server.subscription_id}/resourceGroups/{server.resource_group}"
            f"/providers/Microsoft.ManagedIdentity/userAssignedIdentities/{server.user_alias}-msi"
        )
        body = await self.request("GET", path, api_version=MANAGED_IDENTITY_API) or {}
        props = body.get("properties", {})
        try:
            return ManagedIdentity(
                client_id=props["clientId"],
                principal_id=props["principalId"],
                resource_id=body["id"],
            )
        except KeyError as e:
            raise ProviderError(f"managed identity response missing {e}") from e

    async def is_subscription_owner(self, principal_id: str, subscription_id: str) -> bool:
        scope = f"/subscriptions/{subscription_id}"
        owner_role = f"{scope}/providers/Microsoft.Authorization/roleDefinitions/{OWNER_ROLE_DEFINITION_ID}"

        next_link: str | None = f"{scope}/providers/Microsoft.Authorization/roleAssignments"
        params: dict[str, str] | None = {"$filter": f"assignedTo('{principal_id}')"}
        while next_link:
            page = await self.request("GET", next_link, api_version=AUTHORIZATION_API, params=params) or {}
            for assignment in page.get("value", []):
                props = assignment.get("properties", {})
                if (
                    props.get("principalId") == principal_id
                    and props.get("scope") == scope
                    and props.get("roleDefinitionId", "").lower() == owner_role.lower()
                ):
                    return True
            next_link = page.get("nextLink")
            params = None
        return False

    async def delete_resource_group(self, server: Server) -> None:
        path = f"/subscriptions/{server.subscription_id}/resourcegroups/{server.resource_group}"
        log.info(
            "resource_group_delete",
            user_principal_name=server.user_principal_name,
            subscription_id=server.subscription_id,
            resource_group=server.resource_group,
        )
        # ARM completes the delete asynchronously; acceptance is enough here.
        await self.request("DELETE", path, api_version=RESOURCES_API, allow_not_found=True)


# --- Module Notes -----------------------------------------------------------
# Raw REST over httpx keeps one HTTP stack for ARM, the readiness probe and the
# idle probe. Only token acquisition comes from the Azure SDK.
