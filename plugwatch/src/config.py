"""
Configuration loaded from ``PLUG_*`` environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Provider credentials and URLs always come from the environment or a
``.env`` file; nothing is hardcoded.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from plugwatch.src.models import Thresholds


class PlugSettings(BaseSettings):
    """Smart plug telemetry configuration.

    Attributes:
        client_id: Provider API client id.
        client_secret: Provider API client secret.
        api_url: Provider API base URL (must be HTTPS).
        api_version: Value sent in the ``v`` header.
        request_timeout_s: Per-request HTTP timeout in seconds.
        poll_interval_s: Seconds between device polls in the daemon.
        redis_url: Redis URL for the snapshot cache. Empty disables it.
        cache_ttl_s: Snapshot cache TTL in seconds.
        health_file_path: JSON health file written by the daemon.
        warning_power_w: Room warning band threshold in watts.
        alert_power_w: Room alert band / high-power alert threshold.
        critical_power_w: High-severity / unauthorized-device threshold.
        capacity_w: Power counted as 100% of a room's capacity.
    """

    client_id: str
    client_secret: str
    api_url: str = "https://openapi.tuyaus.com"
    api_version: str = "1.0"
    request_timeout_s: float = 10.0
    poll_interval_s: int = 30
    redis_url: str = ""
    cache_ttl_s: int = 60
    health_file_path: str = "/data/health.json"
    warning_power_w: float = 3000
    alert_power_w: float = 5000
    critical_power_w: float = 8000
    capacity_w: float = 6000

    model_config = SettingsConfigDict(
        env_prefix="PLUG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("api_url")
    @classmethod
    def api_url_must_be_https(cls, v: str) -> str:
        """Reject non-HTTPS provider URLs; requests carry credentials."""
        if not v.startswith("https://"):
            raise ValueError(
                f"PLUG_API_URL must use HTTPS (got: '{v[:20]}...')"
            )
        return v.rstrip("/")

    @field_validator("request_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PLUG_REQUEST_TIMEOUT_S must be > 0")
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least 1 second."""
        if v < 1:
            raise ValueError("PLUG_POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("capacity_w")
    @classmethod
    def capacity_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PLUG_CAPACITY_W must be > 0")
        return v

    @model_validator(mode="after")
    def _thresholds_ascending(self) -> "PlugSettings":
        """Warning, alert and critical thresholds must strictly increase."""
        if not (
            self.warning_power_w < self.alert_power_w < self.critical_power_w
        ):
            raise ValueError(
                "Power thresholds must satisfy "
                "PLUG_WARNING_POWER_W < PLUG_ALERT_POWER_W < PLUG_CRITICAL_POWER_W"
            )
        return self

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            warning_power_w=self.warning_power_w,
            alert_power_w=self.alert_power_w,
            critical_power_w=self.critical_power_w,
            capacity_w=self.capacity_w,
        )


def get_settings() -> PlugSettings:
    """Create and return a PlugSettings instance.

    Returns:
        PlugSettings: Validated configuration from environment variables.
    """
    return PlugSettings()
