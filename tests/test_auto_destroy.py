"""
tests.test_auto_destroy

Idle-server sweep selection, destruction and per-server isolation.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from conftest import make_server

from actlabs_hub.domain.server import ServerStatus
from actlabs_hub.reconcilers.auto_destroy import AutoDestroyReconciler
from actlabs_hub.reconcilers.supervisor import Supervisor

IDLE = timedelta(hours=2)


@pytest.fixture
def reconciler(store, compute, lifecycle, clock) -> AutoDestroyReconciler:
    return AutoDestroyReconciler(
        store=store,
        compute=compute,
        lifecycle=lifecycle,
        interval_seconds=0.01,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_idle_running_server_is_destroyed_exactly_once(reconciler, store, compute, events) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE))

    first = await reconciler.sweep()
    second = await reconciler.sweep()

    assert first.destroyed == ["alice@contoso.com"]
    assert second.destroyed == []
    assert second.skipped == ["alice@contoso.com"]
    assert compute.destroy_calls == ["alice@contoso.com"]
    stored = store.servers["alice@contoso.com"]
    assert stored.status == ServerStatus.auto_destroyed
    assert stored.destroyed_at_time != ""
    assert events.reasons() == ["ServerAutoDestroyed"]


@pytest.mark.asyncio
async def test_opted_out_server_is_never_swept(reconciler, store, compute) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=timedelta(days=30), auto_destroy=False))

    report = await reconciler.sweep()

    assert report.skipped == ["alice@contoso.com"]
    assert compute.destroy_calls == []
    assert compute.idle_calls == []
    assert store.servers["alice@contoso.com"].status == ServerStatus.running


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [
        ServerStatus.registered,
        ServerStatus.unregistered,
        ServerStatus.destroyed,
        ServerStatus.auto_destroyed,
    ],
)
async def test_servers_already_down_are_skipped(reconciler, store, compute, status) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE, status=status))

    await reconciler.sweep()

    assert compute.destroy_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [ServerStatus.unknown, ServerStatus.failed])
async def test_unverified_servers_are_eligible(reconciler, store, compute, status) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE, status=status))

    report = await reconciler.sweep()

    assert report.destroyed == ["alice@contoso.com"]


@pytest.mark.asyncio
async def test_recently_active_server_is_kept(reconciler, store, compute) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=timedelta(minutes=30)))

    await reconciler.sweep()

    assert compute.idle_calls == []
    assert compute.destroy_calls == []


@pytest.mark.asyncio
async def test_busy_server_is_kept(reconciler, store, compute) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE))
    compute.idle = False

    await reconciler.sweep()

    assert compute.idle_calls == ["alice-actlabs-aci.eastus.azurecontainer.io"]
    assert compute.destroy_calls == []


@pytest.mark.asyncio
async def test_unreachable_idle_probe_counts_as_not_idle(reconciler, store, compute) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE))
    compute.idle_errors.add("alice-actlabs-aci.eastus.azurecontainer.io")

    report = await reconciler.sweep()

    assert report.skipped == ["alice@contoso.com"]
    assert compute.destroy_calls == []


@pytest.mark.asyncio
async def test_unparseable_activity_time_is_skipped(reconciler, store, compute) -> None:
    server = make_server("alice@contoso.com", idle_for=IDLE)
    server.last_user_activity_time = "last tuesday"
    store.seed(server)

    report = await reconciler.sweep()

    assert report.skipped == ["alice@contoso.com"]
    assert compute.destroy_calls == []


@pytest.mark.asyncio
async def test_one_failing_server_does_not_abort_the_sweep(reconciler, store, compute, events) -> None:
    for upn in ("a@contoso.com", "b@contoso.com", "c@contoso.com"):
        store.seed(make_server(upn, idle_for=IDLE))
    compute.destroy_failures.add("b@contoso.com")

    report = await reconciler.sweep()

    assert report.scanned == 3
    assert sorted(report.destroyed) == ["a@contoso.com", "c@contoso.com"]
    assert report.failed == ["b@contoso.com"]
    assert store.servers["a@contoso.com"].status == ServerStatus.auto_destroyed
    assert store.servers["b@contoso.com"].status == ServerStatus.running
    assert store.servers["b@contoso.com"].destroyed_at_time == ""
    assert store.servers["c@contoso.com"].status == ServerStatus.auto_destroyed
    assert "ServerAutoDestroyFailed" in events.reasons()


@pytest.mark.asyncio
async def test_unexpected_fault_is_isolated_too(reconciler, store, compute) -> None:
    for upn in ("a@contoso.com", "b@contoso.com"):
        store.seed(make_server(upn, idle_for=IDLE))
    compute.destroy_crashes.add("a@contoso.com")

    report = await reconciler.sweep()

    assert report.failed == ["a@contoso.com"]
    assert report.destroyed == ["b@contoso.com"]


@pytest.mark.asyncio
async def test_run_sweeps_until_stopped(reconciler, store, compute) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE))
    stop = asyncio.Event()

    task = asyncio.create_task(reconciler.run(stop))
    for _ in range(200):
        if compute.destroy_calls:
            break
        await asyncio.sleep(0.01)
    stop.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert compute.destroy_calls == ["alice@contoso.com"]
    assert task.done() and task.exception() is None


@pytest.mark.asyncio
async def test_store_outage_is_retried_on_the_next_tick(reconciler, store, compute) -> None:
    store.seed(make_server("alice@contoso.com", idle_for=IDLE))
    store.list_outages = 3
    supervisor = Supervisor("auto_destroy", max_restarts=0)
    stop = asyncio.Event()

    task = asyncio.create_task(supervisor.run(lambda: reconciler.run(stop)))
    for _ in range(200):
        if compute.destroy_calls:
            break
        await asyncio.sleep(0.01)
    stop.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert store.list_outages == 0
    assert compute.destroy_calls == ["alice@contoso.com"]
    assert supervisor.restarts == 0
    assert task.exception() is None
