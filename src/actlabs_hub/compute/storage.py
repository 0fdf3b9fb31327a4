"""
actlabs_hub.compute.storage

Network posture of the hub's own storage account.

Responsibilities:
- Report whether public network access is effectively disabled.
- Re-enable public access (publicNetworkAccess=Enabled, default action Allow).
"""

from __future__ import annotations

from actlabs_hub.compute.arm import ArmClient
from actlabs_hub.errors import ProviderError

STORAGE_API = "2023-01-01"


class ArmNetworkAccessProvider(ArmClient):
    def _account_path(self) -> str:
        s = self._settings
        if not (s.hub_subscription_id and s.hub_resource_group and s.hub_storage_account):
            raise ProviderError("hub storage account is not configured")
        return (
            f"/subscriptions/{s.hub_subscription_id}/resourceGroups/{s.hub_resource_group}"
            f"/providers/Microsoft.Storage/storageAccounts/{s.hub_storage_account}"
        )

    async def is_network_access_disabled(self) -> bool:
        body = await self.request("GET", self._account_path(), api_version=STORAGE_API) or {}
        props = body.get("properties", {})
        # Anything short of "Enabled + Allow" counts as disabled, including missing fields.
        public = props.get("publicNetworkAccess")
        default_action = props.get("networkAcls", {}).get("defaultAction")
        return not (public == "Enabled" and default_action == "Allow")

    async def enable_public_network_access(self) -> None:
        await self.request(
            "PATCH",
            self._account_path(),
            api_version=STORAGE_API,
            json={
                "properties": {
                    "publicNetworkAccess": "Enabled",
                    "networkAcls": {"defaultAction": "Allow"},
                }
            },
        )
