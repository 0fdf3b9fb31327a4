"""
actlabs_hub.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., JWT secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    One settings object is built at startup and handed to every collaborator
    (lifecycle service, reconcilers, providers); nothing reads env vars directly.
    """

    model_config = SettingsConfigDict(env_prefix="ACTLABS_HUB_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "actlabs-hub"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8883

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "actlabs-hub"
    jwt_audience: str = "actlabs-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./actlabs.db"

    # Server defaults
    default_region: str = "East US"
    default_resource_group: str = "repro-project"
    default_inactivity_seconds: int = 3600

    # Readiness / idle probes
    readiness_probe_path: str = "/status"
    idle_probe_path: str = "/status/idle"
    probe_interval_seconds: float = Field(default=5.0, gt=0)
    probe_timeout_seconds: float = 5.0
    deploy_wait_seconds: int = 180

    # Compute provider calls
    compute_timeout_seconds: float = 300.0
    provider_max_attempts: int = Field(default=5, ge=1)
    provider_backoff_base_seconds: float = 10.0
    provider_backoff_max_seconds: float = 120.0

    # Reconcilers
    background_loops_enabled: bool = True
    auto_destroy_interval_seconds: float = 60.0
    auto_remediate_interval_seconds: float = 60.0
    supervisor_max_restarts: int = 100
    supervisor_restart_delay_seconds: float = 1.0
    shutdown_grace_seconds: float = Field(default=10.0, ge=0)

    # Azure Resource Manager
    arm_base_url: str = "https://management.azure.com"
    arm_scope: str = "https://management.azure.com/.default"
    server_image: str = "actlabs/repro:latest"
    server_port: int = 8881
    server_cpu: float = 0.5
    server_memory_gb: float = 0.5
    hub_subscription_id: str = ""
    hub_resource_group: str = ""
    hub_storage_account: str = ""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Probe and retry knobs are plain settings; tests shrink them and inject a
# no-op sleep into the lifecycle service instead of monkeypatching asyncio.
