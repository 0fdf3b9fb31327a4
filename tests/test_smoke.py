"""
tests.test_smoke

Minimal smoke tests to validate the service can boot and serve core endpoints.

Responsibilities:
- Ensure the FastAPI app starts with fake providers and the DB readiness probe works.
- Ensure readiness degrades once a background reconciler has stopped.
- Ensure shutdown lets background loops finish instead of cancelling them.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest
from conftest import FakeComputeProvider, FakeNetworkAccessProvider

from actlabs_hub.api.app import create_app
from actlabs_hub.errors import SupervisorExhaustedError
from actlabs_hub.settings import Settings


@pytest.mark.asyncio
async def test_health_endpoints(tmp_path: Path) -> None:
    settings = Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/hub.db",
        background_loops_enabled=False,
    )
    app = create_app(
        settings=settings,
        compute=FakeComputeProvider(),
        network=FakeNetworkAccessProvider(),
    )

    # httpx ASGITransport does not manage lifespan; drive startup/shutdown explicitly.
    await app.router.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/healthz")
            assert r.status_code == 200
            assert r.json()["status"] == "ok"

            r = await client.get("/readyz")
            assert r.status_code == 200
            assert r.json()["status"] == "ready"
            assert r.headers["x-request-id"]
    finally:
        await app.router.shutdown()


@pytest.mark.asyncio
async def test_readiness_reports_stopped_reconciler(tmp_path: Path) -> None:
    settings = Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/hub.db",
        background_loops_enabled=False,
    )
    app = create_app(settings=settings, compute=FakeComputeProvider(), network=FakeNetworkAccessProvider())

    async def exhausted() -> None:
        raise SupervisorExhaustedError("auto_destroy: restart budget of 0 exhausted")

    await app.router.startup()
    try:
        task = asyncio.create_task(exhausted(), name="auto_destroy")
        await asyncio.gather(task, return_exceptions=True)
        app.state.background_tasks.append(task)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/readyz")
            assert r.status_code == 503
            assert r.json()["stopped_loops"] == ["auto_destroy"]
    finally:
        await app.router.shutdown()


@pytest.mark.asyncio
async def test_shutdown_lets_background_loops_finish(tmp_path: Path) -> None:
    settings = Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/hub.db",
        background_loops_enabled=True,
        shutdown_grace_seconds=5.0,
    )
    app = create_app(settings=settings, compute=FakeComputeProvider(), network=FakeNetworkAccessProvider())

    await app.router.startup()
    tasks = list(app.state.background_tasks)
    assert [t.get_name() for t in tasks] == ["auto_destroy", "auto_remediate"]
    await app.router.shutdown()

    assert all(t.done() and not t.cancelled() for t in tasks)
    assert all(t.exception() is None for t in tasks)
