"""
actlabs_hub.services.server_service

Server lifecycle service (state machine + persistence owner).

Responsibilities:
- Register a user's subscription and create the server record.
- Deploy, destroy, unregister and update servers with ownership validation.
- Track user activity (the heartbeat the auto-destroy sweep relies on).
- Record lifecycle events for operators.

State transitions:
    Unregistered -> Registered -> Deploying -> Running
    Running -> Destroyed | AutoDestroyed -> Deploying (redeploy)
    Deploying -> Unknown (provisioned but readiness never confirmed)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from actlabs_hub.domain.events import Event
from actlabs_hub.domain.server import (
    DEPLOY_IN_FLIGHT,
    Server,
    ServerStatus,
    to_timestamp,
    user_alias,
    utcnow,
)
from actlabs_hub.errors import (
    AuthorizationError,
    DeployVerificationError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from actlabs_hub.observability.logging import get_logger
from actlabs_hub.ports import ComputeProvider, EventRecorder, ServerStore
from actlabs_hub.settings import Settings

log = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


class ServerLifecycle:
    def __init__(
        self,
        *,
        settings: Settings,
        store: ServerStore,
        compute: ComputeProvider,
        events: EventRecorder,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utcnow,
    ) -> None:
        self._settings = settings
        self._store = store
        self._compute = compute
        self._events = events
        self._sleep = sleep
        self._clock = clock

    async def register_subscription(
        self,
        *,
        subscription_id: str,
        user_principal_name: str,
        user_principal_id: str,
    ) -> Server:
        log.info(
            "registering_subscription",
            user_principal_name=user_principal_name,
            subscription_id=subscription_id,
        )
        server = Server(
            subscription_id=subscription_id,
            user_principal_name=user_principal_name,
            user_principal_id=user_principal_id,
        )
        self.server_defaults(server)
        await self.validate(server)

        server.status = ServerStatus.registered
        await self._store.upsert(server)
        return server

    async def unregister(self, user_principal_name: str) -> None:
        log.info("unregistering_server", user_principal_name=user_principal_name)
        server = await self.destroy(user_principal_name)

        # A resource group that is already gone is fine; the provider returns normally.
        try:
            await self._compute.delete_resource_group(server)
        except ProviderError as e:
            log.error(
                "resource_group_delete_failed",
                user_principal_name=server.user_principal_name,
                subscription_id=server.subscription_id,
                error=str(e),
            )
            raise

        await self._store.delete(user_principal_name)

    async def update_server(self, server: Server) -> Server:
        log.info(
            "updating_server",
            user_principal_name=server.user_principal_name,
            subscription_id=server.subscription_id,
        )
        stored = await self._require(server.user_principal_name)

        # Only policy fields are client-mutable; identity/status in the payload are ignored.
        if server.auto_create is not None:
            stored.auto_create = server.auto_create
        if server.auto_destroy is not None:
            stored.auto_destroy = server.auto_destroy
        if server.inactivity_duration_in_seconds > 0:
            stored.inactivity_duration_in_seconds = server.inactivity_duration_in_seconds

        await self.validate(stored)
        await self._store.upsert(stored)
        return stored

    async def deploy(self, server: Server) -> Server:
        log.info(
            "deploying_server",
            user_principal_name=server.user_principal_name,
            subscription_id=server.subscription_id,
        )
        stored = await self._require(server.user_principal_name)

        # At most one deploy in flight per user.
        if stored.status in DEPLOY_IN_FLIGHT:
            log.info(
                "server_already_deploying_or_running",
                user_principal_name=stored.user_principal_name,
                status=str(stored.status),
            )
            return stored

        # From here on act on the stored record so unspecified request fields never overwrite it.
        server = stored
        await self.validate(server)
        self.server_defaults(server)
        await self._resolve_identity(server)

        server.status = ServerStatus.deploying
        await self._store.upsert(server)

        try:
            result = await self._with_retries(
                "deploy", server, lambda: self._compute.deploy(server)
            )
        except ProviderError as e:
            # Status intentionally stays Deploying; an operator or a later call reconciles it.
            await self._record(
                "Warning",
                "ServerDeploymentFailed",
                f"server deployment for user {server.user_principal_name} in subscription "
                f"{server.subscription_id} failed with error {e}",
                server,
            )
            raise

        server.endpoint = result.endpoint
        if await self._wait_until_up(server):
            now = to_timestamp(self._clock())
            server.status = ServerStatus.running
            server.last_user_activity_time = now
            server.deployed_at_time = now
            await self._store.upsert(server)
            await self._record(
                "Normal",
                "ServerDeployed",
                f"server deployed for user {server.user_principal_name} in subscription "
                f"{server.subscription_id}",
                server,
            )
            return server

        log.error(
            "server_deployed_but_not_verified",
            user_principal_name=server.user_principal_name,
            subscription_id=server.subscription_id,
        )
        server.status = ServerStatus.unknown
        await self._store.upsert(server)
        await self._record(
            "Warning",
            "ServerUnknown",
            f"server deployed for user {server.user_principal_name} in subscription "
            f"{server.subscription_id} but not able to verify server is up and running",
            server,
        )
        raise DeployVerificationError(
            "server deployed, but not able to verify server is up and running"
        )

    async def destroy(self, user_principal_name: str) -> Server:
        log.info("destroying_server", user_principal_name=user_principal_name)
        server = await self._require(user_principal_name)
        await self.validate(server)
        self.server_defaults(server)

        try:
            await self._with_retries("destroy", server, lambda: self._compute.destroy(server))
        except ProviderError:
            # Nothing is written: a destroy that did not happen is never recorded.
            await self._record(
                "Warning",
                "ServerDestroyFailed",
                f"failed destroying server for user {server.user_principal_name} in "
                f"subscription {server.subscription_id}",
                server,
            )
            raise

        server.status = ServerStatus.destroyed
        server.destroyed_at_time = to_timestamp(self._clock())
        await self._store.upsert(server)
        await self._record(
            "Normal",
            "ServerDestroyed",
            f"server destroyed for user {server.user_principal_name} in subscription "
            f"{server.subscription_id}",
            server,
        )
        return server

    async def auto_destroy(self, server: Server) -> Server:
        """
        Destroy path used by the idle sweep.

        Calls the provider once (the next sweep is the retry) and marks the record
        AutoDestroyed only after the provider confirmed the delete.
        """

        try:
            await self._compute.destroy(server)
        except ProviderError as e:
            log.error(
                "auto_destroy_failed",
                user_principal_name=server.user_principal_name,
                subscription_id=server.subscription_id,
                status=str(server.status),
                error=str(e),
            )
            await self._record(
                "Warning",
                "ServerAutoDestroyFailed",
                f"auto destroy of server of user {server.user_principal_name} for "
                f"subscription {server.subscription_id} failed",
                server,
            )
            raise

        server.status = ServerStatus.auto_destroyed
        server.destroyed_at_time = to_timestamp(self._clock())
        await self._store.upsert(server)
        await self._record(
            "Normal",
            "ServerAutoDestroyed",
            f"auto destroyed server of user {server.user_principal_name} for subscription "
            f"{server.subscription_id} due to inactivity",
            server,
        )
        return server

    async def get_server(self, user_principal_name: str) -> Server:
        server = await self._store.get(user_principal_name)
        if server is None:
            # "Never registered" is a normal state for the UI, not an error.
            server = Server(user_principal_name=user_principal_name)
            self.server_defaults(server)
            server.status = ServerStatus.unregistered
        return server

    async def list_servers(self) -> list[Server]:
        return await self._store.list_all()

    async def update_activity_status(self, user_principal_name: str) -> Server:
        log.debug("updating_activity_status", user_principal_name=user_principal_name)
        server = await self._require(user_principal_name)
        server.last_user_activity_time = to_timestamp(self._clock())
        await self._store.upsert(server)
        return server

    async def validate(self, server: Server) -> None:
        if not server.user_principal_name or not server.user_principal_id or not server.subscription_id:
            log.error(
                "server_validation_failed",
                user_principal_name=server.user_principal_name,
                user_principal_id=server.user_principal_id,
                subscription_id=server.subscription_id,
            )
            raise ValidationError(
                "userPrincipalName, userPrincipalId and subscriptionId are all required"
            )

        try:
            ok = await self._compute.is_subscription_owner(
                server.user_principal_id, server.subscription_id
            )
        except ProviderError as e:
            log.error(
                "ownership_check_failed",
                user_principal_name=server.user_principal_name,
                subscription_id=server.subscription_id,
                error=str(e),
            )
            raise AuthorizationError(
                "failed to verify if user is the owner of subscription"
            ) from e

        if not ok:
            log.error(
                "user_not_subscription_owner",
                user_principal_name=server.user_principal_name,
                subscription_id=server.subscription_id,
            )
            raise AuthorizationError("insufficient permissions")

    def server_defaults(self, server: Server) -> None:
        """Fill zero-valued fields in place; explicit values are never overridden."""

        if not server.user_alias:
            server.user_alias = user_alias(server.user_principal_name)
        if not server.log_level:
            server.log_level = "0"
        if not server.region:
            server.region = self._settings.default_region
        if not server.resource_group:
            server.resource_group = self._settings.default_resource_group
        if server.inactivity_duration_in_seconds <= 0:
            server.inactivity_duration_in_seconds = self._settings.default_inactivity_seconds
        if server.auto_create is None:
            server.auto_create = True
        if server.auto_destroy is None:
            server.auto_destroy = True
        if server.status is None:
            server.status = ServerStatus.registered

    async def _require(self, user_principal_name: str) -> Server:
        server = await self._store.get(user_principal_name)
        if server is None:
            log.error("server_not_found", user_principal_name=user_principal_name)
            raise NotFoundError(
                f"not able to find server for {user_principal_name} in database, is it registered?"
            )
        return server

    async def _resolve_identity(self, server: Server) -> None:
        try:
            identity = await self._compute.get_user_assigned_identity(server)
        except ProviderError as e:
            log.error(
                "managed_identity_not_found",
                user_principal_name=server.user_principal_name,
                subscription_id=server.subscription_id,
                error=str(e),
            )
            raise ProviderError(
                "managed identity not found. please register your subscription"
            ) from e

        server.managed_identity_client_id = identity.client_id
        server.managed_identity_principal_id = identity.principal_id
        server.managed_identity_resource_id = identity.resource_id

    async def _wait_until_up(self, server: Server) -> bool:
        interval = self._settings.probe_interval_seconds
        attempts = max(1, int(self._settings.deploy_wait_seconds // interval))
        probe_path = self._settings.readiness_probe_path

        for attempt in range(attempts):
            try:
                await self._compute.ensure_up(server.endpoint, probe_path)
            except ProviderError as e:
                log.debug(
                    "server_not_up_yet",
                    user_principal_name=server.user_principal_name,
                    attempt=attempt + 1,
                    attempts=attempts,
                    error=str(e),
                )
            else:
                log.info(
                    "server_up",
                    user_principal_name=server.user_principal_name,
                    endpoint=server.endpoint,
                )
                return True
            if attempt < attempts - 1:
                # Cancellation of the calling request surfaces here as CancelledError.
                await self._sleep(interval)
        return False

    async def _with_retries(
        self,
        operation: str,
        server: Server,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        attempts = self._settings.provider_max_attempts
        for attempt in range(attempts):
            try:
                return await call()
            except ProviderError as e:
                backoff = min(
                    self._settings.provider_backoff_base_seconds * 2**attempt,
                    self._settings.provider_backoff_max_seconds,
                )
                last_attempt = attempt == attempts - 1
                log.error(
                    f"{operation}_server_failed",
                    user_principal_name=server.user_principal_name,
                    subscription_id=server.subscription_id,
                    attempt=attempt + 1,
                    backoff_seconds=0 if last_attempt else backoff,
                    error=str(e),
                )
                if last_attempt:
                    raise
                await self._sleep(backoff)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _record(self, type_: str, reason: str, message: str, server: Server) -> None:
        try:
            await self._events.record(
                Event(
                    type=type_,  # type: ignore[arg-type]
                    reason=reason,
                    message=message,
                    object=server.user_principal_name,
                    timestamp=to_timestamp(self._clock()),
                )
            )
        except Exception:  # noqa: BLE001 - the event log must never fail a lifecycle call.
            log.exception(
                "event_record_failed",
                reason=reason,
                user_principal_name=server.user_principal_name,
            )


# --- Module Notes -----------------------------------------------------------
# No locks protect a record: foreground calls and the reconcilers write whole
# records, last writer wins. The Deploying status written before provisioning is
# what keeps concurrent deploys for the same user to a narrow window.
