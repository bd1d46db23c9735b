"""
Pydantic models for parsed telemetry samples and the analytics bundle.

ParsedSample is the typed form of one ThingSpeak feed entry after coercion.
AnalyticsBundle is the immutable result of one analytics computation and is
serialised to JSON with the camelCase field names the dashboard consumes
(``totalEnergy``, ``relayStatus``, ``powerData``...). Python attributes stay
snake_case; aliases are generated with ``to_camel``.

Feed and FeedChannel describe the raw feed response returned by the
ThingSpeak channel API.

CHANGELOG:
- 2026-10-19: Accept non-object feed entries (parsed to defaults)
- 2026-10-04: Add Feed/FeedChannel for the ThingSpeak client (STORY-006)
- 2026-10-02: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class _FrozenModel(BaseModel):
    """Immutable model serialised with camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ParsedSample(_FrozenModel):
    """A single telemetry sample after coercion to numeric values.

    Attributes:
        timestamp: Feed timestamp as received (ISO-8601), or None if absent.
        voltage: RMS voltage in volts.
        current: RMS current in amperes.
        power: Active power in watts.
        energy: Cumulative energy counter in kWh (monotonic, not a rate).
        temperature: Device temperature in degrees Celsius.
        relay_status: Relay state, 1 = ON, 0 = OFF.
    """

    timestamp: str | None = None
    voltage: float = 0.0
    current: float = 0.0
    power: float = 0.0
    energy: float = 0.0
    temperature: float = 0.0
    relay_status: Literal[0, 1] = 0


class LatestReading(_FrozenModel):
    """User-facing subset of the most recent sample."""

    voltage: float = 0.0
    current: float = 0.0
    power: float = 0.0
    temperature: float = 0.0
    relay_status: Literal[0, 1] = 0
    timestamp: str | None = None

    @classmethod
    def from_sample(cls, sample: ParsedSample) -> LatestReading:
        return cls(
            voltage=sample.voltage,
            current=sample.current,
            power=sample.power,
            temperature=sample.temperature,
            relay_status=sample.relay_status,
            timestamp=sample.timestamp,
        )


class Alert(_FrozenModel):
    """Threshold alert produced by one analytics computation.

    ``kind`` is serialised as ``type`` for the dashboard alerts panel.
    """

    kind: Literal["warning", "danger"] = Field(alias="type")
    message: str


class DailyEnergy(_FrozenModel):
    """Energy consumed on one calendar day (max - min of the counter)."""

    date: str
    energy: float


class AnalyticsMetrics(_FrozenModel):
    """Named scalar metrics derived from a sample window.

    Attributes:
        total_energy: Maximum of the cumulative energy counter (kWh).
        today_energy: Counter delta within the current calendar day (kWh).
        avg_power: Mean of positive power readings (W).
        peak_power: Maximum positive power reading (W).
        min_power: Minimum positive power reading (W).
        power_fluctuation: Coefficient of variation of power (%).
        load_factor: avg_power / peak_power (%).
        voltage_stability: 100 - coefficient of variation of voltage (%).
        current_stability: 100 - coefficient of variation of current (%).
        energy_cost: total_energy x tariff.
        daily_cost: today_energy x tariff.
        monthly_projection: daily_cost x 30.
        carbon_emission: total_energy x emission factor (kg CO2).
        max_temperature: Maximum positive temperature (C).
        avg_temperature: Mean positive temperature (C).
        overheat_warning: True when max_temperature exceeds 50 C.
        on_time: Hours attributed to relay ON.
        off_time: Hours attributed to relay OFF.
        switch_count: Number of relay state changes.
        bulb_lifetime_usage: on_time as a percentage of rated lifetime.
        alerts: Threshold alerts, in evaluation order.
    """

    total_energy: float = 0.0
    today_energy: float = 0.0
    avg_power: float = 0.0
    peak_power: float = 0.0
    min_power: float = 0.0
    power_fluctuation: float = 0.0
    load_factor: float = 0.0
    voltage_stability: float = 100.0
    current_stability: float = 100.0
    energy_cost: float = 0.0
    daily_cost: float = 0.0
    monthly_projection: float = 0.0
    carbon_emission: float = 0.0
    max_temperature: float = 0.0
    avg_temperature: float = 0.0
    overheat_warning: bool = False
    on_time: float = 0.0
    off_time: float = 0.0
    switch_count: int = 0
    bulb_lifetime_usage: float = 0.0
    alerts: tuple[Alert, ...] = ()


class ChartSeries(_FrozenModel):
    """Parallel arrays for charting, one value per sample."""

    timestamps: tuple[str | None, ...] = ()
    power_data: tuple[float, ...] = ()
    temperature_data: tuple[float, ...] = ()
    voltage_data: tuple[float, ...] = ()
    current_data: tuple[float, ...] = ()
    energy_data: tuple[float, ...] = ()
    daily_energy: tuple[DailyEnergy, ...] = ()


class AnalyticsBundle(_FrozenModel):
    """Result of one analytics computation: latest reading, metrics, charts."""

    latest: LatestReading = Field(default_factory=LatestReading)
    analytics: AnalyticsMetrics = Field(default_factory=AnalyticsMetrics)
    charts: ChartSeries = Field(default_factory=ChartSeries)


class FeedChannel(BaseModel):
    """Channel metadata returned alongside a ThingSpeak feed."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str | None = None
    last_entry_id: int | None = None


class Feed(BaseModel):
    """Raw ThingSpeak feed response.

    Feed entries are kept as received, without per-entry validation; coercion
    is the parser's job, so a null or non-object entry degrades to a default
    sample instead of failing validation of the whole response.
    """

    model_config = ConfigDict(extra="ignore")

    channel: FeedChannel = Field(default_factory=FeedChannel)
    feeds: list[Any] = Field(default_factory=list)

    @field_validator("channel", "feeds", mode="before")
    @classmethod
    def _null_as_empty(cls, v: Any, info: ValidationInfo) -> Any:
        """Treat an explicit null as an empty channel or feed list."""
        if v is None:
            return {} if info.field_name == "channel" else []
        return v
