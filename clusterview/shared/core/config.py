from functools import lru_cache
from threading import Lock
from typing import Optional
import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator

# Environment Constants
ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


_settings_reload_lock = Lock()


def reload_settings_from_environment() -> "Settings":
    """
    Atomically rebuild and replace cached settings from environment values.

    Providers built before the reload keep the values they were constructed with.
    """
    logger = structlog.get_logger()
    with _settings_reload_lock:
        logger.info("settings_reload_started")
        get_settings.cache_clear()
        refreshed = get_settings()
        logger.info("settings_reload_completed")
        return refreshed


class Settings(BaseSettings):
    """
    Main configuration for ClusterView.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "ClusterView"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT options: development, staging, production
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # Monitoring backend (Ganglia rrd.py collector)
    GANGLIA_COLLECTOR_URL: str = "http://localhost"
    GANGLIA_TIMEOUT_SECONDS: float = 5.0
    GANGLIA_MAX_CONCURRENCY: int = 8
    # Component name -> Ganglia cluster namespace, merged over the built-in table.
    GANGLIA_COMPONENT_NAMESPACES: dict[str, str] = {}
    # Cluster name -> Ganglia namespace for cluster-level metrics.
    GANGLIA_CLUSTER_NAMESPACES: dict[str, str] = {}
    GANGLIA_HOST_NAMESPACE: str = "HDPSlaves"
    GANGLIA_DEFAULT_CLUSTER_NAMESPACE: str = "HDPSlaves"

    # None loads the packaged ganglia_properties.json
    METRIC_DESCRIPTORS_PATH: Optional[str] = None

    # Backing store
    STORE_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        """Centralized validation orchestrator, grouped by concern."""
        if self.TESTING and self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
            raise ValueError(
                "TESTING must be false in staging/production runtime environments."
            )

        self._validate_monitoring_config()
        self._validate_store_config()
        return self

    def _validate_monitoring_config(self) -> None:
        if not self.GANGLIA_COLLECTOR_URL.startswith(("http://", "https://")):
            raise ValueError("GANGLIA_COLLECTOR_URL must be an http(s) URL.")
        if self.GANGLIA_TIMEOUT_SECONDS <= 0:
            raise ValueError("GANGLIA_TIMEOUT_SECONDS must be > 0.")
        if self.GANGLIA_TIMEOUT_SECONDS > 60:
            raise ValueError("GANGLIA_TIMEOUT_SECONDS must be <= 60.")
        if self.GANGLIA_MAX_CONCURRENCY < 1:
            raise ValueError("GANGLIA_MAX_CONCURRENCY must be >= 1.")
        if not self.GANGLIA_HOST_NAMESPACE.strip():
            raise ValueError("GANGLIA_HOST_NAMESPACE must not be empty.")

    def _validate_store_config(self) -> None:
        if self.STORE_TIMEOUT_SECONDS <= 0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be > 0.")

    @property
    def is_production(self) -> bool:
        """True only when ENVIRONMENT is explicitly set to 'production'."""
        return self.ENVIRONMENT == ENV_PRODUCTION
