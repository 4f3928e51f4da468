"""
Centralized configuration for rolloutcore.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (ROLLOUTCORE_*)
3. .env file
4. Default values

Example:
    from rolloutcore.config import get_config

    config = get_config()
    print(config.strategy)  # From ROLLOUTCORE_STRATEGY or default

    # Override at runtime
    config = get_config(strategy="canary", percentage=20)
"""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from rolloutcore.contracts.timeouts import (
    POD_POLL_INTERVAL_S,
    POD_POLL_ITERATIONS,
    SERVICE_POLL_INTERVAL_S,
    SERVICE_POLL_ITERATIONS,
    SUBPROCESS_DEFAULT_TIMEOUT_S,
)
from rolloutcore.contracts.types import (
    Action,
    DeploymentStrategy,
    RouteStrategy,
    TrafficSplitMethod,
)


class RolloutConfig(BaseSettings):
    """
    Inputs for one rollout invocation.

    All settings can be overridden via environment variables
    prefixed with ROLLOUTCORE_.

    Example:
        export ROLLOUTCORE_STRATEGY=canary
        export ROLLOUTCORE_PERCENTAGE=20
    """

    model_config = SettingsConfigDict(
        env_prefix="ROLLOUTCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cluster
    namespace: str = Field(default="default", description="Target Kubernetes namespace")
    kubectl_path: str = Field(default="kubectl", description="kubectl binary to invoke")
    insecure_skip_tls_verify: bool = Field(
        default=False,
        description="Pass --insecure-skip-tls-verify to every kubectl call",
    )

    # Strategy selection
    strategy: DeploymentStrategy = Field(default=DeploymentStrategy.BASIC)
    action: Action = Field(default=Action.DEPLOY)
    traffic_split_method: TrafficSplitMethod = Field(default=TrafficSplitMethod.POD)
    route_method: RouteStrategy = Field(default=RouteStrategy.SERVICE)

    # Canary inputs
    percentage: Optional[int] = Field(
        default=None,
        ge=0,
        le=100,
        description="Traffic percentage routed to canary and baseline",
    )
    baseline_and_canary_replicas: Optional[int] = Field(
        default=None,
        ge=0,
        le=100,
        description="Explicit replica count for canary and baseline (overrides percentage)",
    )

    force: bool = Field(default=False, description="Apply with --force")
    image_pull_secrets: Annotated[List[str], NoDecode] = Field(default_factory=list)
    annotations: Dict[str, str] = Field(default_factory=dict)

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(default="info")
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for log shippers, text for console)",
    )

    # Polling
    pod_poll_interval_seconds: float = Field(default=POD_POLL_INTERVAL_S, ge=0)
    pod_poll_iterations: int = Field(default=POD_POLL_ITERATIONS, ge=1)
    service_poll_interval_seconds: float = Field(default=SERVICE_POLL_INTERVAL_S, ge=0)
    service_poll_iterations: int = Field(default=SERVICE_POLL_ITERATIONS, ge=1)
    subprocess_timeout_seconds: float = Field(default=SUBPROCESS_DEFAULT_TIMEOUT_S, gt=0)

    @field_validator("strategy", "action", "traffic_split_method", "route_method", mode="before")
    @classmethod
    def lowercase_enum(cls, v):
        """Accept enum values case-insensitively."""
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("image_pull_secrets", mode="before")
    @classmethod
    def split_secrets(cls, v):
        """Accept a newline or comma separated string."""
        if isinstance(v, str):
            return [s.strip() for s in v.replace(",", "\n").splitlines() if s.strip()]
        return v


# Global singleton
_config: Optional[RolloutConfig] = None


def get_config(**overrides) -> RolloutConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.
    """
    global _config

    if overrides or _config is None:
        _config = RolloutConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
