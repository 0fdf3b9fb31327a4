"""
actlabs_hub.domain.server

The `Server` record: one per user principal, carrying identity, ownership
binding, managed identity, lifecycle status and auto-destroy policy.

Responsibilities:
- Define `ServerStatus` and the `Server` model (camelCase wire shape).
- Provide timestamp and alias helpers shared by the lifecycle and reconcilers.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ServerStatus(enum.StrEnum):
    # Values are persisted and returned to clients; treat as stable API contract.
    unregistered = "Unregistered"
    registered = "Registered"
    deploying = "Deploying"
    running = "Running"
    stopping = "Stopping"
    destroyed = "Destroyed"
    auto_destroyed = "AutoDestroyed"
    failed = "Failed"
    unknown = "Unknown"


# Statuses the auto-destroy sweep never touches.
NOT_AUTO_DESTROYABLE: frozenset[ServerStatus] = frozenset(
    {
        ServerStatus.auto_destroyed,
        ServerStatus.destroyed,
        ServerStatus.unregistered,
        ServerStatus.registered,
    }
)

# A deploy is already in flight (or done) for these statuses.
DEPLOY_IN_FLIGHT: frozenset[ServerStatus] = frozenset(
    {ServerStatus.deploying, ServerStatus.running}
)


class Server(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Identity
    user_principal_id: str = ""
    user_principal_name: str = ""
    user_alias: str = ""

    # Ownership binding
    subscription_id: str = ""
    resource_group: str = ""
    region: str = ""

    # Managed identity
    managed_identity_resource_id: str = ""
    managed_identity_client_id: str = ""
    managed_identity_principal_id: str = ""

    # Lifecycle
    status: ServerStatus | None = None
    endpoint: str = ""
    log_level: str = ""
    last_user_activity_time: str = Field(default="", alias="lastActivityTime")
    deployed_at_time: str = ""
    destroyed_at_time: str = ""

    # Policy flags; None means "not set" so defaults never clobber an explicit False.
    auto_create: bool | None = None
    auto_destroy: bool | None = None
    inactivity_duration_in_seconds: int = 0


def user_alias(user_principal_name: str) -> str:
    return user_principal_name.split("@", 1)[0]


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def to_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="seconds")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises ValueError for empty or malformed input. Naive values are treated as UTC.
    """

    if not value:
        raise ValueError("empty timestamp")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# --- Module Notes -----------------------------------------------------------
# Timestamps stay ISO-8601 strings on the record; the auto-destroy sweep must
# tolerate (skip) malformed values written by older clients.
