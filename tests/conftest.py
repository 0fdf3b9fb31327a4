"""
tests.conftest

Shared fixtures and in-memory fakes for the hub's ports.

Responsibilities:
- Provide deterministic stand-ins for the server store, compute provider,
  storage network posture and event log.
- Provide a settings object tuned for fast tests (10 s readiness budget, 5 s probe
  interval, short provider backoff) plus a recording no-op sleep.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from actlabs_hub.domain.events import Event
from actlabs_hub.domain.server import Server, ServerStatus, to_timestamp
from actlabs_hub.errors import ProviderError
from actlabs_hub.ports import DeployResult, ManagedIdentity
from actlabs_hub.services.server_service import ServerLifecycle
from actlabs_hub.settings import Settings

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


class InMemoryServerStore:
    def __init__(self) -> None:
        self.servers: dict[str, Server] = {}
        self.upserts: list[Server] = []
        self.list_outages = 0

    def seed(self, server: Server) -> Server:
        self.servers[server.user_principal_name] = server.model_copy(deep=True)
        return server

    async def get(self, user_principal_name: str) -> Server | None:
        server = self.servers.get(user_principal_name)
        return server.model_copy(deep=True) if server is not None else None

    async def upsert(self, server: Server) -> None:
        snapshot = server.model_copy(deep=True)
        self.servers[server.user_principal_name] = snapshot
        self.upserts.append(snapshot)

    async def list_all(self) -> list[Server]:
        if self.list_outages:
            self.list_outages -= 1
            raise OperationalError("SELECT * FROM servers", {}, Exception("database is locked"))
        return [s.model_copy(deep=True) for s in self.servers.values()]

    async def delete(self, user_principal_name: str) -> None:
        self.servers.pop(user_principal_name, None)


class FakeComputeProvider:
    def __init__(self) -> None:
        self.owner = True
        self.owner_error = False
        self.identity_missing = False
        self.deploy_failures = 0
        self.destroy_failures: set[str] = set()
        self.destroy_crashes: set[str] = set()
        self.up = True
        self.idle = True
        self.idle_errors: set[str] = set()

        self.deploy_calls: list[str] = []
        self.destroy_calls: list[str] = []
        self.probe_calls: list[tuple[str, str]] = []
        self.idle_calls: list[str] = []
        self.resource_group_deletes: list[str] = []

    async def deploy(self, server: Server) -> DeployResult:
        self.deploy_calls.append(server.user_principal_name)
        if self.deploy_failures > 0:
            self.deploy_failures -= 1
            raise ProviderError("container group create failed")
        return DeployResult(
            endpoint=f"{server.user_alias}-actlabs-aci.eastus.azurecontainer.io",
            provisioning_state="Succeeded",
        )

    async def destroy(self, server: Server) -> None:
        self.destroy_calls.append(server.user_principal_name)
        if server.user_principal_name in self.destroy_crashes:
            raise RuntimeError("unexpected provider fault")
        if server.user_principal_name in self.destroy_failures:
            raise ProviderError("container group delete failed")

    async def ensure_up(self, endpoint: str, probe_path: str) -> None:
        self.probe_calls.append((endpoint, probe_path))
        if not self.up:
            raise ProviderError("server is not up")

    async def ensure_idle(self, endpoint: str) -> bool:
        self.idle_calls.append(endpoint)
        if endpoint in self.idle_errors:
            raise ProviderError("idle probe failed")
        return self.idle

    async def get_user_assigned_identity(self, server: Server) -> ManagedIdentity:
        if self.identity_missing:
            raise ProviderError("identity not found")
        return ManagedIdentity(
            client_id=f"client-{server.user_alias}",
            principal_id=f"principal-{server.user_alias}",
            resource_id=f"/subscriptions/{server.subscription_id}/msi/{server.user_alias}-msi",
        )

    async def is_subscription_owner(self, principal_id: str, subscription_id: str) -> bool:
        if self.owner_error:
            raise ProviderError("role assignment listing failed")
        return self.owner

    async def delete_resource_group(self, server: Server) -> None:
        self.resource_group_deletes.append(server.resource_group)


class FakeNetworkAccessProvider:
    def __init__(self) -> None:
        self.disabled = False
        self.check_error = False
        self.enable_error = False
        self.check_crashes = 0
        self.enable_calls = 0

    async def is_network_access_disabled(self) -> bool:
        if self.check_crashes:
            self.check_crashes -= 1
            raise RuntimeError("unexpected storage client fault")
        if self.check_error:
            raise ProviderError("storage account read failed")
        return self.disabled

    async def enable_public_network_access(self) -> None:
        self.enable_calls += 1
        if self.enable_error:
            raise ProviderError("storage account update failed")
        self.disabled = False


class InMemoryEventRecorder:
    def __init__(self) -> None:
        self.events: list[Event] = []
        self.broken = False

    async def record(self, event: Event) -> None:
        if self.broken:
            raise RuntimeError("event table unavailable")
        self.events.append(event)

    async def list_recent(self, *, hours: int = 24) -> list[Event]:
        return list(reversed(self.events))

    def reasons(self) -> list[str]:
        return [e.reason for e in self.events]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_server(
    user_principal_name: str = "alice@contoso.com",
    *,
    status: ServerStatus | None = ServerStatus.running,
    idle_for: timedelta = timedelta(seconds=0),
    auto_destroy: bool = True,
    inactivity_duration_in_seconds: int = 3600,
    subscription_id: str = "sub-1",
) -> Server:
    alias = user_principal_name.split("@", 1)[0]
    return Server(
        user_principal_id=f"oid-{alias}",
        user_principal_name=user_principal_name,
        user_alias=alias,
        subscription_id=subscription_id,
        resource_group="repro-project",
        region="East US",
        status=status,
        endpoint=f"{alias}-actlabs-aci.eastus.azurecontainer.io",
        log_level="0",
        last_user_activity_time=to_timestamp(NOW - idle_for),
        auto_create=True,
        auto_destroy=auto_destroy,
        inactivity_duration_in_seconds=inactivity_duration_in_seconds,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        env="test",
        deploy_wait_seconds=10,
        probe_interval_seconds=5.0,
        provider_max_attempts=3,
        provider_backoff_base_seconds=1.0,
        provider_backoff_max_seconds=2.0,
        background_loops_enabled=False,
    )


@pytest.fixture
def store() -> InMemoryServerStore:
    return InMemoryServerStore()


@pytest.fixture
def compute() -> FakeComputeProvider:
    return FakeComputeProvider()


@pytest.fixture
def network() -> FakeNetworkAccessProvider:
    return FakeNetworkAccessProvider()


@pytest.fixture
def events() -> InMemoryEventRecorder:
    return InMemoryEventRecorder()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def lifecycle(
    settings: Settings,
    store: InMemoryServerStore,
    compute: FakeComputeProvider,
    events: InMemoryEventRecorder,
    sleep: RecordingSleep,
    clock: FrozenClock,
) -> ServerLifecycle:
    return ServerLifecycle(
        settings=settings,
        store=store,
        compute=compute,
        events=events,
        sleep=sleep,
        clock=clock,
    )
