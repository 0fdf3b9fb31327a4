"""
tests.test_supervisor

Restart budget semantics and the supervised reconciler entry points.
"""

from __future__ import annotations

import asyncio

import pytest

from actlabs_hub.errors import SupervisorExhaustedError
from actlabs_hub.reconcilers.supervisor import Supervisor, wait_for_stop
from actlabs_hub.runtime import HubContext, start_auto_destroy_loop, start_auto_remediate_loop


@pytest.mark.asyncio
async def test_restarts_after_fault_until_clean_exit(sleep) -> None:
    calls = 0

    async def flaky() -> None:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise RuntimeError("boom")

    supervisor = Supervisor("flaky", max_restarts=5, restart_delay_seconds=0.5, sleep=sleep)
    await supervisor.run(flaky)

    assert calls == 3
    assert supervisor.restarts == 2
    assert sleep.calls == [0.5, 0.5]


@pytest.mark.asyncio
async def test_exhausted_budget_stops_for_good(sleep) -> None:
    calls = 0

    async def broken() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("still broken")

    supervisor = Supervisor("broken", max_restarts=2, sleep=sleep)
    with pytest.raises(SupervisorExhaustedError):
        await supervisor.run(broken)

    # One initial run plus two restarts.
    assert calls == 3


@pytest.mark.asyncio
async def test_cancellation_is_not_a_fault(sleep) -> None:
    started = asyncio.Event()

    async def forever() -> None:
        started.set()
        await asyncio.Event().wait()

    supervisor = Supervisor("forever", max_restarts=3, sleep=sleep)
    task = asyncio.create_task(supervisor.run(forever))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert supervisor.restarts == 0


@pytest.mark.asyncio
async def test_wait_for_stop_reports_stop_event() -> None:
    stop = asyncio.Event()
    assert await wait_for_stop(stop, 0.01) is False
    stop.set()
    assert await wait_for_stop(stop, 5.0) is True


@pytest.mark.asyncio
async def test_background_loops_end_on_stop_event(settings, store, compute, network, events) -> None:
    settings = settings.model_copy(
        update={"auto_destroy_interval_seconds": 0.01, "auto_remediate_interval_seconds": 0.01}
    )
    hub = HubContext.build(
        settings=settings, store=store, compute=compute, network=network, events=events
    )
    network.disabled = True
    stop = asyncio.Event()

    tasks = [start_auto_destroy_loop(hub, stop), start_auto_remediate_loop(hub, stop)]
    for _ in range(200):
        if network.enable_calls:
            break
        await asyncio.sleep(0.01)
    stop.set()
    await asyncio.wait_for(asyncio.gather(*tasks), timeout=1.0)

    assert network.enable_calls == 1
    assert all(t.done() and t.exception() is None for t in tasks)
