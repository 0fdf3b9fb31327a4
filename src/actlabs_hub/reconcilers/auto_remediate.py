"""
actlabs_hub.reconcilers.auto_remediate

Keeps the hub's storage account reachable.

Responsibilities:
- Detect disabled public network access (or a non-Allow default network action).
- Re-enable it, once per tick at most.
"""

from __future__ import annotations

import asyncio

from actlabs_hub.errors import ActlabsError
from actlabs_hub.observability.logging import get_logger
from actlabs_hub.ports import NetworkAccessProvider
from actlabs_hub.reconcilers.supervisor import wait_for_stop

log = get_logger(__name__)


class AutoRemediateReconciler:
    def __init__(self, *, network: NetworkAccessProvider, interval_seconds: float) -> None:
        self._network = network
        self._interval = interval_seconds

    async def run(self, stop_event: asyncio.Event) -> None:
        while not await wait_for_stop(stop_event, self._interval):
            try:
                await self.remediate_once()
            except Exception:  # noqa: BLE001 - a failed tick is retried on the next one.
                log.exception("auto_remediate_tick_failed")

    async def remediate_once(self) -> bool:
        try:
            disabled = await self._network.is_network_access_disabled()
        except ActlabsError as e:
            log.error("network_access_check_failed", error=str(e))
            return False
        if not disabled:
            return False

        log.info("network_access_disabled_enabling")
        try:
            await self._network.enable_public_network_access()
        except ActlabsError as e:
            log.error("enable_public_network_access_failed", error=str(e))
            return False
        log.info("public_network_access_enabled")
        return True
