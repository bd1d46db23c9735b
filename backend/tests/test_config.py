"""
Unit tests for backend configuration (MonitorSettings) and the appliance catalogue.

Tests verify:
- Config loads from environment variables with correct defaults.
- THINGSPEAK_BASE_URL is validated as HTTPS.
- Numeric constraints are enforced (timeout, default results, tariff).
- analytics_config() carries tariff and emission factor to the engine.
- The catalogue exposes the configured channel and public fields only.

CHANGELOG:
- 2026-10-07: Cover CORS_ORIGINS and LOG_LEVEL
- 2026-10-02: Initial creation (STORY-005)

TODO:
- None
"""

import pytest
from backend.src.analytics import AnalyticsConfig
from backend.src.config import MonitorSettings
from backend.src.registry import build_registry, find_appliance
from pydantic import ValidationError


class TestMonitorSettingsLoadsFromEnv:
    """Config loads all values from environment variables."""

    def test_loads_all_env_vars(self, env_vars_full: dict[str, str]) -> None:
        """All env vars are read and assigned correctly."""
        settings = MonitorSettings()

        assert settings.thingspeak_channel_id == env_vars_full["THINGSPEAK_CHANNEL_ID"]
        assert settings.thingspeak_read_api_key == env_vars_full["THINGSPEAK_READ_API_KEY"]
        assert (
            settings.thingspeak_write_api_key == env_vars_full["THINGSPEAK_WRITE_API_KEY"]
        )
        assert settings.request_timeout_s == 5.0
        assert settings.default_results == 250
        assert settings.energy_tariff == 6.5
        assert settings.carbon_factor == 0.7
        assert settings.log_level == "DEBUG"

    def test_trailing_slash_stripped_from_base_url(
        self, env_vars_full: dict[str, str]
    ) -> None:
        assert MonitorSettings().thingspeak_base_url == "https://ts.example.com"

    def test_cors_origin_list(self, env_vars_full: dict[str, str]) -> None:
        assert MonitorSettings().cors_origin_list == [
            "https://dash.example.com",
            "http://localhost:5173",
        ]

    def test_defaults_applied_when_vars_missing(self) -> None:
        """Every variable is optional and falls back to its default."""
        settings = MonitorSettings()

        assert settings.thingspeak_channel_id == ""
        assert settings.thingspeak_base_url == "https://api.thingspeak.com"
        assert settings.request_timeout_s == 10.0
        assert settings.default_results == 100
        assert settings.energy_tariff == 8.0
        assert settings.carbon_factor == 0.82
        assert settings.cors_origin_list == ["*"]
        assert settings.log_level == "INFO"

    def test_loads_from_dotenv_file(self, tmp_path) -> None:
        """A .env file in the working directory is honoured."""
        (tmp_path / ".env").write_text("ENERGY_TARIFF=12.25\nTHINGSPEAK_CHANNEL_ID=77\n")
        settings = MonitorSettings()
        assert settings.energy_tariff == 12.25
        assert settings.thingspeak_channel_id == "77"


class TestMonitorSettingsValidation:
    """Invalid values are rejected at construction."""

    def test_http_base_url_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("THINGSPEAK_BASE_URL", "http://api.thingspeak.com")
        with pytest.raises(ValidationError, match="HTTPS"):
            MonitorSettings()

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_non_positive_timeout_rejected(
        self, monkeypatch: pytest.MonkeyPatch, value: str
    ) -> None:
        monkeypatch.setenv("REQUEST_TIMEOUT_S", value)
        with pytest.raises(ValidationError, match="REQUEST_TIMEOUT_S"):
            MonitorSettings()

    @pytest.mark.parametrize("value", ["0", "8001"])
    def test_default_results_out_of_range(
        self, monkeypatch: pytest.MonkeyPatch, value: str
    ) -> None:
        monkeypatch.setenv("DEFAULT_RESULTS", value)
        with pytest.raises(ValidationError, match="DEFAULT_RESULTS"):
            MonitorSettings()

    @pytest.mark.parametrize("var", ["ENERGY_TARIFF", "CARBON_FACTOR"])
    def test_negative_rate_rejected(self, monkeypatch: pytest.MonkeyPatch, var: str) -> None:
        monkeypatch.setenv(var, "-0.5")
        with pytest.raises(ValidationError):
            MonitorSettings()

    def test_non_numeric_tariff_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENERGY_TARIFF", "cheap")
        with pytest.raises(ValidationError):
            MonitorSettings()

    def test_zero_tariff_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENERGY_TARIFF", "0")
        assert MonitorSettings().energy_tariff == 0.0


class TestAnalyticsConfig:
    """Settings feed the analytics engine through AnalyticsConfig."""

    def test_analytics_config_from_settings(self, env_vars_full: dict[str, str]) -> None:
        config = MonitorSettings().analytics_config()
        assert config == AnalyticsConfig(tariff_rate=6.5, emission_factor=0.7)

    def test_default_analytics_config(self) -> None:
        assert MonitorSettings().analytics_config() == AnalyticsConfig()


class TestRegistry:
    """The appliance catalogue is built from settings."""

    def test_single_bulb_on_configured_channel(
        self, env_vars_full: dict[str, str]
    ) -> None:
        registry = build_registry(MonitorSettings())
        assert len(registry) == 1
        bulb = registry[0]
        assert bulb.appliance_id == "LOAD_01"
        assert bulb.device_id == "ESP001"
        assert bulb.channel_id == env_vars_full["THINGSPEAK_CHANNEL_ID"]

    def test_summary_hides_channel(self) -> None:
        summary = build_registry(MonitorSettings())[0].summary()
        assert summary == {
            "deviceId": "ESP001",
            "applianceName": "Bulb",
            "applianceId": "LOAD_01",
            "icon": "💡",
            "type": "lighting",
            "ratedPower": 60,
        }

    def test_find_appliance(self) -> None:
        registry = build_registry(MonitorSettings())
        assert find_appliance(registry, "LOAD_01") is registry[0]
        assert find_appliance(registry, "LOAD_99") is None
