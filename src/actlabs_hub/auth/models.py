"""
actlabs_hub.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated identity type (`Principal`) injected into endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity.

    `user_principal_name` comes from the token subject (e.g. ``alice@contoso.com``);
    `object_id` is the directory object id used for subscription ownership checks.
    """

    user_principal_name: str
    object_id: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles
