"""
actlabs_hub.ports

Capability interfaces consumed by the lifecycle service and reconcilers.

Responsibilities:
- Describe each external collaborator as a Protocol (compute, storage posture,
  server store, event log) so production adapters and test fakes are interchangeable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from actlabs_hub.domain.events import Event
from actlabs_hub.domain.server import Server


@dataclass(frozen=True, slots=True)
class DeployResult:
    endpoint: str
    # Provider-reported provisioning state (e.g. "Succeeded"); informational only.
    provisioning_state: str


@dataclass(frozen=True, slots=True)
class ManagedIdentity:
    client_id: str
    principal_id: str
    resource_id: str


class ComputeProvider(Protocol):
    """
    Cloud compute boundary. Implementations raise `ProviderError` for any
    network/API failure and apply their own per-call timeout.
    """

    async def deploy(self, server: Server) -> DeployResult: ...

    async def destroy(self, server: Server) -> None: ...

    async def ensure_up(self, endpoint: str, probe_path: str) -> None: ...

    async def ensure_idle(self, endpoint: str) -> bool: ...

    async def get_user_assigned_identity(self, server: Server) -> ManagedIdentity: ...

    async def is_subscription_owner(self, principal_id: str, subscription_id: str) -> bool: ...

    async def delete_resource_group(self, server: Server) -> None: ...


class NetworkAccessProvider(Protocol):
    async def is_network_access_disabled(self) -> bool: ...

    async def enable_public_network_access(self) -> None: ...


class ServerStore(Protocol):
    """Atomic per-key storage for `Server` records keyed by user principal name."""

    async def get(self, user_principal_name: str) -> Server | None: ...

    async def upsert(self, server: Server) -> None: ...

    async def list_all(self) -> list[Server]: ...

    async def delete(self, user_principal_name: str) -> None: ...


class EventRecorder(Protocol):
    async def record(self, event: Event) -> None: ...

    async def list_recent(self, *, hours: int = 24) -> list[Event]: ...


# --- Module Notes -----------------------------------------------------------
# There is exactly one production implementation per port (see `compute.arm`,
# `compute.storage`, `db.repositories`); tests use in-memory fakes.
