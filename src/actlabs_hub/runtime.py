"""
actlabs_hub.runtime

Composition of the hub's long-lived collaborators.

Responsibilities:
- Hold the settings, stores and providers one process shares (`HubContext`).
- Start the supervised background reconcilers against a stop event.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from actlabs_hub.ports import ComputeProvider, EventRecorder, NetworkAccessProvider, ServerStore
from actlabs_hub.reconcilers.auto_destroy import AutoDestroyReconciler
from actlabs_hub.reconcilers.auto_remediate import AutoRemediateReconciler
from actlabs_hub.reconcilers.supervisor import Supervisor
from actlabs_hub.services.server_service import ServerLifecycle
from actlabs_hub.settings import Settings


@dataclass(slots=True)
class HubContext:
    settings: Settings
    store: ServerStore
    compute: ComputeProvider
    network: NetworkAccessProvider
    events: EventRecorder
    lifecycle: ServerLifecycle

    @classmethod
    def build(
        cls,
        *,
        settings: Settings,
        store: ServerStore,
        compute: ComputeProvider,
        network: NetworkAccessProvider,
        events: EventRecorder,
    ) -> HubContext:
        lifecycle = ServerLifecycle(settings=settings, store=store, compute=compute, events=events)
        return cls(
            settings=settings,
            store=store,
            compute=compute,
            network=network,
            events=events,
            lifecycle=lifecycle,
        )


def _supervisor(ctx: HubContext, name: str) -> Supervisor:
    return Supervisor(
        name,
        max_restarts=ctx.settings.supervisor_max_restarts,
        restart_delay_seconds=ctx.settings.supervisor_restart_delay_seconds,
    )


def start_auto_destroy_loop(ctx: HubContext, stop_event: asyncio.Event) -> asyncio.Task[None]:
    reconciler = AutoDestroyReconciler(
        store=ctx.store,
        compute=ctx.compute,
        lifecycle=ctx.lifecycle,
        interval_seconds=ctx.settings.auto_destroy_interval_seconds,
    )
    supervisor = _supervisor(ctx, "auto_destroy")
    return asyncio.create_task(
        supervisor.run(lambda: reconciler.run(stop_event)), name="auto_destroy"
    )


def start_auto_remediate_loop(ctx: HubContext, stop_event: asyncio.Event) -> asyncio.Task[None]:
    reconciler = AutoRemediateReconciler(
        network=ctx.network,
        interval_seconds=ctx.settings.auto_remediate_interval_seconds,
    )
    supervisor = _supervisor(ctx, "auto_remediate")
    return asyncio.create_task(
        supervisor.run(lambda: reconciler.run(stop_event)), name="auto_remediate"
    )


# --- Module Notes -----------------------------------------------------------
# The API app builds exactly one HubContext at startup and stores it on
# `app.state.hub`; tests build their own with in-memory fakes.
