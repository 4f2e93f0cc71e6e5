"""
Integration Manager - Configuration.

============================================================
CONFIGURABLE BEHAVIOUR
============================================================

- Health fan-out: concurrency bound, per-probe timeout,
  slow-probe threshold (all off by default)
- Sync jobs: worker count, progress step and delay
- Maintenance: sync job retention, integration health check
- Bulk operations: export download base URL
- Rate limiting: requests per window

Configuration can be loaded from:
- Default values
- Environment variables
- YAML config file

============================================================
"""

import os
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from core.exceptions import ConfigurationError


load_dotenv()

logger = logging.getLogger(__name__)


INTEGRATION_CHECK_TYPES = ("random", "http")


# =============================================================
# SECTIONS
# =============================================================


@dataclass
class HealthCheckSettings:
    """
    Service health fan-out.

    None disables the corresponding limit.
    """
    probe_concurrency: Optional[int] = None
    probe_timeout_seconds: Optional[float] = None
    degraded_threshold_ms: Optional[float] = None

    def __post_init__(self) -> None:
        if self.probe_concurrency is not None and self.probe_concurrency < 1:
            raise ConfigurationError(
                "probe_concurrency must be >= 1", config_key="probe_concurrency"
            )
        if self.probe_timeout_seconds is not None and self.probe_timeout_seconds <= 0:
            raise ConfigurationError(
                "probe_timeout_seconds must be > 0", config_key="probe_timeout_seconds"
            )


@dataclass
class SyncSettings:
    """Sync job processing."""
    worker_count: int = 2
    progress_step: int = 10
    step_delay_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.worker_count < 1:
            raise ConfigurationError("worker_count must be >= 1", config_key="worker_count")
        if not 1 <= self.progress_step <= 100:
            raise ConfigurationError("progress_step must be 1-100", config_key="progress_step")


@dataclass
class MaintenanceSettings:
    """Maintenance task parameters."""
    sync_job_retention_days: int = 30
    integration_check: str = "random"
    healthy_probability: float = 0.9
    http_timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.integration_check not in INTEGRATION_CHECK_TYPES:
            raise ConfigurationError(
                f"integration_check must be one of {INTEGRATION_CHECK_TYPES}",
                config_key="integration_check",
            )
        if not 0.0 <= self.healthy_probability <= 1.0:
            raise ConfigurationError(
                "healthy_probability must be 0-1", config_key="healthy_probability"
            )


@dataclass
class RateLimitSettings:
    """Fixed-window API rate limit."""
    requests: int = 1000
    window_seconds: int = 3600


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class IntegrationConfig:
    """
    Main configuration for the integration manager.

    Combines all sub-configurations.
    """
    health: HealthCheckSettings = field(default_factory=HealthCheckSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    maintenance: MaintenanceSettings = field(default_factory=MaintenanceSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)

    export_base_url: str = "https://storage.example.com/exports"
    error_queue_size: int = 100

    @classmethod
    def from_env(cls) -> "IntegrationConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - INTEGRATION_PROBE_CONCURRENCY
        - INTEGRATION_PROBE_TIMEOUT
        - INTEGRATION_DEGRADED_THRESHOLD_MS
        - INTEGRATION_SYNC_WORKERS
        - INTEGRATION_SYNC_STEP_DELAY
        - INTEGRATION_SYNC_RETENTION_DAYS
        - INTEGRATION_HEALTH_CHECK (random | http)
        - INTEGRATION_EXPORT_BASE_URL
        - INTEGRATION_RATE_LIMIT_REQUESTS
        - INTEGRATION_RATE_LIMIT_WINDOW
        """
        config = cls()

        if os.getenv("INTEGRATION_PROBE_CONCURRENCY"):
            config.health.probe_concurrency = int(os.getenv("INTEGRATION_PROBE_CONCURRENCY"))
        if os.getenv("INTEGRATION_PROBE_TIMEOUT"):
            config.health.probe_timeout_seconds = float(os.getenv("INTEGRATION_PROBE_TIMEOUT"))
        if os.getenv("INTEGRATION_DEGRADED_THRESHOLD_MS"):
            config.health.degraded_threshold_ms = float(os.getenv("INTEGRATION_DEGRADED_THRESHOLD_MS"))

        if os.getenv("INTEGRATION_SYNC_WORKERS"):
            config.sync.worker_count = int(os.getenv("INTEGRATION_SYNC_WORKERS"))
        if os.getenv("INTEGRATION_SYNC_STEP_DELAY"):
            config.sync.step_delay_seconds = float(os.getenv("INTEGRATION_SYNC_STEP_DELAY"))

        if os.getenv("INTEGRATION_SYNC_RETENTION_DAYS"):
            config.maintenance.sync_job_retention_days = int(os.getenv("INTEGRATION_SYNC_RETENTION_DAYS"))
        if os.getenv("INTEGRATION_HEALTH_CHECK"):
            config.maintenance.integration_check = os.getenv("INTEGRATION_HEALTH_CHECK").lower()

        if os.getenv("INTEGRATION_EXPORT_BASE_URL"):
            config.export_base_url = os.getenv("INTEGRATION_EXPORT_BASE_URL").rstrip("/")

        if os.getenv("INTEGRATION_RATE_LIMIT_REQUESTS"):
            config.rate_limit.requests = int(os.getenv("INTEGRATION_RATE_LIMIT_REQUESTS"))
        if os.getenv("INTEGRATION_RATE_LIMIT_WINDOW"):
            config.rate_limit.window_seconds = int(os.getenv("INTEGRATION_RATE_LIMIT_WINDOW"))

        # Re-run section validation on env overrides
        config.health.__post_init__()
        config.sync.__post_init__()
        config.maintenance.__post_init__()

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "IntegrationConfig":
        """
        Load configuration from a YAML file.

        Sections mirror the dataclass layout:

            health: {probe_concurrency: 8}
            sync: {worker_count: 4}
            maintenance: {integration_check: http}
            rate_limit: {requests: 500}
            export_base_url: https://...

        Raises:
            ConfigurationError if the file is missing or malformed
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config from {path}: {e}", cause=e) from e

        try:
            config = cls(
                health=HealthCheckSettings(**data.get("health", {})),
                sync=SyncSettings(**data.get("sync", {})),
                maintenance=MaintenanceSettings(**data.get("maintenance", {})),
                rate_limit=RateLimitSettings(**data.get("rate_limit", {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Unknown setting in {path}: {e}", cause=e) from e

        if "export_base_url" in data:
            config.export_base_url = str(data["export_base_url"]).rstrip("/")
        if "error_queue_size" in data:
            config.error_queue_size = int(data["error_queue_size"])

        logger.info(f"Loaded integration config from {path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[IntegrationConfig] = None


def get_config() -> IntegrationConfig:
    """Get the global integration configuration."""
    global _default_config
    if _default_config is None:
        _default_config = IntegrationConfig.from_env()
    return _default_config


def set_config(config: IntegrationConfig) -> None:
    """Set the global integration configuration."""
    global _default_config
    _default_config = config
