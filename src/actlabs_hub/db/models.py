"""
actlabs_hub.db.models

Persistence schema for the hub.

Responsibilities:
- Define ORM models:
  - ServerRow: one managed server record per user principal name
  - EventRow: append-only lifecycle event log
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Enum, Index, String, Text, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from actlabs_hub.db.base import Base
from actlabs_hub.domain.server import ServerStatus


def _utcnow() -> datetime:
    # Persist naive UTC timestamps for simplicity.
    return datetime.now(tz=UTC).replace(tzinfo=None)


class ServerRow(Base):
    __tablename__ = "servers"

    user_principal_name: Mapped[str] = mapped_column(String(256), primary_key=True)
    user_principal_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    user_alias: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    subscription_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    resource_group: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    region: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    managed_identity_resource_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    managed_identity_client_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    managed_identity_principal_id: Mapped[str] = mapped_column(
        String(64), nullable=False, default=""
    )

    status: Mapped[ServerStatus] = mapped_column(
        Enum(ServerStatus), nullable=False, default=ServerStatus.registered, index=True
    )
    endpoint: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    log_level: Mapped[str] = mapped_column(String(8), nullable=False, default="0")

    # ISO-8601 strings, exactly as written by the lifecycle service.
    last_user_activity_time: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    deployed_at_time: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    destroyed_at_time: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    auto_create: Mapped[bool] = mapped_column(nullable=False, default=True)
    auto_destroy: Mapped[bool] = mapped_column(nullable=False, default=True)
    inactivity_duration_in_seconds: Mapped[int] = mapped_column(nullable=False, default=3600)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class EventRow(Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    reporter: Mapped[str] = mapped_column(String(64), nullable=False)
    object: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)

    __table_args__ = (Index("ix_events_object_created", "object", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# The server table is the only shared mutable resource between request handlers
# and reconcilers; writes are whole-record upserts (last writer wins).
