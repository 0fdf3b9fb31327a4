"""
actlabs_hub.errors

Domain error taxonomy shared by the lifecycle service, reconcilers and API layer.
"""

from __future__ import annotations


class ActlabsError(Exception):
    """Base error for actlabs-hub."""


class ValidationError(ActlabsError):
    """Required identity fields are missing."""


class AuthorizationError(ActlabsError):
    """Subscription ownership check denied or could not be performed."""


class NotFoundError(ActlabsError):
    """No server record exists for the requested user principal."""


class ProviderError(ActlabsError):
    """The compute provider call itself failed (network/API fault)."""


class DeployVerificationError(ActlabsError):
    """
    Provisioning succeeded but the readiness probe never passed within the wait
    budget. The container group may exist (and be billed) while its health is
    unconfirmed.
    """


class SupervisorExhaustedError(ActlabsError):
    """A supervised background loop used up its restart budget."""
