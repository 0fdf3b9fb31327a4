"""
actlabs_hub.reconcilers.auto_destroy

Periodic sweep that destroys idle servers.

Responsibilities:
- Select servers whose owner opted in, that are not already down, whose last
  activity is older than their inactivity budget, and that confirm idleness.
- Destroy each selected server through the lifecycle service's auto-destroy path.
- Isolate failures per server so one bad record never blocks the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from actlabs_hub.domain.server import NOT_AUTO_DESTROYABLE, Server, parse_timestamp, utcnow
from actlabs_hub.errors import ActlabsError
from actlabs_hub.observability.logging import get_logger
from actlabs_hub.ports import ComputeProvider, ServerStore
from actlabs_hub.reconcilers.supervisor import wait_for_stop
from actlabs_hub.services.server_service import Clock, ServerLifecycle

log = get_logger(__name__)


@dataclass(slots=True)
class SweepReport:
    scanned: int = 0
    destroyed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class AutoDestroyReconciler:
    def __init__(
        self,
        *,
        store: ServerStore,
        compute: ComputeProvider,
        lifecycle: ServerLifecycle,
        interval_seconds: float,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._compute = compute
        self._lifecycle = lifecycle
        self._interval = interval_seconds
        self._clock = clock

    async def run(self, stop_event: asyncio.Event) -> None:
        while not await wait_for_stop(stop_event, self._interval):
            try:
                report = await self.sweep()
            except Exception:  # noqa: BLE001 - a failed sweep is retried on the next tick.
                log.exception("auto_destroy_sweep_failed")
                continue
            if report.destroyed or report.failed:
                log.info(
                    "auto_destroy_sweep_completed",
                    scanned=report.scanned,
                    destroyed=report.destroyed,
                    failed=report.failed,
                )

    async def sweep(self) -> SweepReport:
        log.debug("auto_destroy_sweep_started")
        report = SweepReport()
        servers = await self._store.list_all()
        now = self._clock()

        for server in servers:
            report.scanned += 1
            try:
                if not await self._is_destroy_candidate(server, now):
                    report.skipped.append(server.user_principal_name)
                    continue
                log.info(
                    "auto_destroying_server",
                    user_principal_name=server.user_principal_name,
                    subscription_id=server.subscription_id,
                    status=str(server.status),
                    last_activity_time=server.last_user_activity_time,
                )
                await self._lifecycle.auto_destroy(server)
            except Exception:  # noqa: BLE001 - one server's failure must not abort the sweep.
                log.exception(
                    "auto_destroy_server_failed",
                    user_principal_name=server.user_principal_name,
                )
                report.failed.append(server.user_principal_name)
            else:
                report.destroyed.append(server.user_principal_name)
        return report

    async def _is_destroy_candidate(self, server: Server, now: datetime) -> bool:
        if not server.auto_destroy:
            return False
        if server.status is None or server.status in NOT_AUTO_DESTROYABLE:
            return False

        try:
            last_activity = parse_timestamp(server.last_user_activity_time)
        except ValueError as e:
            log.error(
                "last_activity_time_unparseable",
                user_principal_name=server.user_principal_name,
                last_activity_time=server.last_user_activity_time,
                error=str(e),
            )
            return False

        idle_for = now - last_activity
        if idle_for <= timedelta(seconds=server.inactivity_duration_in_seconds):
            return False

        log.debug(
            "server_inactive",
            user_principal_name=server.user_principal_name,
            status=str(server.status),
            idle_seconds=int(idle_for.total_seconds()),
            inactivity_duration_in_seconds=server.inactivity_duration_in_seconds,
        )
        return await self._verify_idle(server)

    async def _verify_idle(self, server: Server) -> bool:
        try:
            idle = await self._compute.ensure_idle(server.endpoint)
        except ActlabsError as e:
            # An unreachable server is not known to be idle.
            log.error(
                "idle_probe_failed",
                user_principal_name=server.user_principal_name,
                error=str(e),
            )
            return False
        log.debug("idle_probe", user_principal_name=server.user_principal_name, is_idle=idle)
        return idle


# --- Module Notes -----------------------------------------------------------
# The sweep writes back the snapshot it listed. A heartbeat landing between
# the list and the write is lost; the container is already gone at that point.
