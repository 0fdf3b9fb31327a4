"""
actlabs_hub.api.app

FastAPI app factory for the actlabs hub.

Responsibilities:
- Build the FastAPI application and register routers, middleware and error mapping.
- Compose the `HubContext` (stores, ARM providers, lifecycle service) at startup.
- Start the supervised reconcilers and stop them again on shutdown.
"""

from __future__ import annotations

import asyncio

import httpx
from azure.identity.aio import DefaultAzureCredential
from fastapi import FastAPI

from actlabs_hub import __version__
from actlabs_hub.api.errors import register_exception_handlers
from actlabs_hub.api.routers.admin_servers import router as admin_servers_router
from actlabs_hub.api.routers.dev_auth import router as dev_auth_router
from actlabs_hub.api.routers.events import router as events_router
from actlabs_hub.api.routers.health import router as health_router
from actlabs_hub.api.routers.servers import router as servers_router
from actlabs_hub.compute.arm import ArmComputeProvider
from actlabs_hub.compute.storage import ArmNetworkAccessProvider
from actlabs_hub.db.init_db import init_db
from actlabs_hub.db.repositories.events import SqlEventRecorder
from actlabs_hub.db.repositories.servers import SqlServerStore
from actlabs_hub.db.session import create_engine, create_sessionmaker
from actlabs_hub.observability.logging import configure_logging, get_logger
from actlabs_hub.observability.middleware import RequestContextMiddleware
from actlabs_hub.ports import ComputeProvider, NetworkAccessProvider
from actlabs_hub.runtime import HubContext, start_auto_destroy_loop, start_auto_remediate_loop
from actlabs_hub.settings import Settings, get_settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    compute: ComputeProvider | None = None,
    network: NetworkAccessProvider | None = None,
) -> FastAPI:
    """
    `compute`/`network` default to the ARM adapters; tests pass fakes so no
    Azure credential or outbound HTTP is ever created.
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="actlabs hub",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    # Routers resolve settings through `get_settings`; pin it to this app's instance.
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(servers_router)
    app.include_router(admin_servers_router)
    app.include_router(events_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Prod uses Alembic migrations.
            await init_db(engine)

        app.state.http = None
        app.state.credential = None
        compute_provider, network_provider = compute, network
        if compute_provider is None or network_provider is None:
            app.state.http = httpx.AsyncClient()
            app.state.credential = DefaultAzureCredential()
            arm = {"settings": settings, "http": app.state.http, "credential": app.state.credential}
            compute_provider = compute_provider or ArmComputeProvider(**arm)
            network_provider = network_provider or ArmNetworkAccessProvider(**arm)

        hub = HubContext.build(
            settings=settings,
            store=SqlServerStore(app.state.sessionmaker),
            compute=compute_provider,
            network=network_provider,
            events=SqlEventRecorder(app.state.sessionmaker),
        )
        app.state.hub = hub

        app.state.stop_event = asyncio.Event()
        app.state.background_tasks = []
        if settings.background_loops_enabled:
            app.state.background_tasks = [
                start_auto_destroy_loop(hub, app.state.stop_event),
                start_auto_remediate_loop(hub, app.state.stop_event),
            ]
            log.info("background_loops_started", loops=["auto_destroy", "auto_remediate"])

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        stop_event = getattr(app.state, "stop_event", None)
        tasks = getattr(app.state, "background_tasks", [])
        if stop_event is not None:
            stop_event.set()
        if tasks:
            # Loops finish their current tick; stragglers are cancelled after the grace period.
            _, pending = await asyncio.wait(tasks, timeout=settings.shutdown_grace_seconds)
            for task in pending:
                log.warning("background_loop_cancelled", loop=task.get_name())
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
        credential = getattr(app.state, "credential", None)
        if credential is not None:
            await credential.close()

        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; lifecycle rules live in `services.server_service`
# and the loops in `reconcilers`.
