"""
Backend configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
ThingSpeak credentials, the tariff and the carbon emission factor come from
environment variables or a .env file; the analytics engine itself never
reads the environment and receives an AnalyticsConfig instead.

CHANGELOG:
- 2026-10-07: Add CORS_ORIGINS and LOG_LEVEL
- 2026-10-02: Initial creation (STORY-005)

TODO:
- None
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings

from backend.src.analytics import (
    DEFAULT_EMISSION_FACTOR,
    DEFAULT_TARIFF_RATE,
    AnalyticsConfig,
)

MAX_FEED_RESULTS = 8000
"""Upper bound ThingSpeak accepts for the ``results`` feed parameter."""


class MonitorSettings(BaseSettings):
    """Backend configuration for the energy monitor API.

    All values are loaded from environment variables and have defaults, so
    the API can start without a channel configured (feeds then fail with an
    upstream error rather than at startup).

    Attributes:
        thingspeak_channel_id: ThingSpeak channel of the monitored appliance.
        thingspeak_read_api_key: Read API key for feed requests.
        thingspeak_write_api_key: Write API key for relay commands.
        thingspeak_base_url: ThingSpeak API base URL (must be HTTPS).
        request_timeout_s: Timeout for every ThingSpeak request, in seconds.
        default_results: Feed entries requested when ``results`` is omitted.
        energy_tariff: Energy price in currency units per kWh.
        carbon_factor: Carbon emission factor in kg CO2 per kWh.
        cors_origins: Comma-separated allowed CORS origins, or ``*``.
        log_level: Root logging level.
    """

    thingspeak_channel_id: str = ""
    thingspeak_read_api_key: str = ""
    thingspeak_write_api_key: str = ""
    thingspeak_base_url: str = "https://api.thingspeak.com"
    request_timeout_s: float = 10.0
    default_results: int = 100
    energy_tariff: float = DEFAULT_TARIFF_RATE
    carbon_factor: float = DEFAULT_EMISSION_FACTOR
    cors_origins: str = "*"
    log_level: str = "INFO"

    @field_validator("thingspeak_base_url")
    @classmethod
    def base_url_must_be_https(cls, v: str) -> str:
        """Validate that the ThingSpeak base URL uses HTTPS, without trailing slash."""
        if not v.lower().startswith("https://"):
            raise ValueError(
                f"THINGSPEAK_BASE_URL must use HTTPS (got: '{v[:30]}')"
            )
        return v.rstrip("/")

    @field_validator("request_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        """Validate the request timeout is positive."""
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    @field_validator("default_results")
    @classmethod
    def default_results_must_be_valid(cls, v: int) -> int:
        """Validate the default feed size is within ThingSpeak's limit."""
        if v < 1 or v > MAX_FEED_RESULTS:
            raise ValueError(f"DEFAULT_RESULTS must be >= 1 and <= {MAX_FEED_RESULTS}")
        return v

    @field_validator("energy_tariff", "carbon_factor")
    @classmethod
    def rate_must_be_non_negative(cls, v: float) -> float:
        """Validate tariff and emission factor are non-negative."""
        if v < 0:
            raise ValueError("ENERGY_TARIFF and CARBON_FACTOR must be >= 0")
        return v

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS origins split on commas, blanks dropped."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def analytics_config(self) -> AnalyticsConfig:
        """Build the analytics engine configuration from these settings."""
        return AnalyticsConfig(
            tariff_rate=self.energy_tariff,
            emission_factor=self.carbon_factor,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}
