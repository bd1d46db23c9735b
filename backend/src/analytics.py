"""
Analytics engine: derive metrics, alerts and chart series from a feed window.

``compute_analytics`` takes the ordered (oldest-to-newest) feed entries of one
appliance and returns an immutable AnalyticsBundle. The computation is a set
of independent passes over the same parsed sample list:

    power stats       avg / peak / min of positive power, fluctuation index
    energy & cost     counter maximum, today's counter delta, tariff costs
    stability         load factor, voltage and current stability
    environment       carbon emission, temperature max / average
    relay usage       ON/OFF hours and switch count (fold over sample pairs)
    daily energy      per-date counter delta, first-seen date order
    alerts            fixed threshold rules against the latest sample

The engine is pure: no I/O, no shared state, no caching. The clock used for
the "today" window is injected through ``now`` so results are reproducible.

Known limitation: energy is a cumulative counter and the total is its
maximum. A counter reset (device reboot, overflow) produces stale or negative
totals; no reset detection is attempted.

Stability indices are 100 minus the coefficient of variation and are not
clamped, so extreme data can push them below 0.

CHANGELOG:
- 2026-10-19: Bound the today window at ``now``
- 2026-10-09: Count a relay switch on the first sample pair
- 2026-10-06: Inject ``now`` instead of reading the clock in the today window
- 2026-10-03: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from functools import reduce
from itertools import pairwise
from typing import Any

from backend.src.models import (
    Alert,
    AnalyticsBundle,
    AnalyticsMetrics,
    ChartSeries,
    DailyEnergy,
    LatestReading,
    ParsedSample,
)
from backend.src.parser import parse_samples, parse_timestamp

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy constants
# ---------------------------------------------------------------------------

DEFAULT_TARIFF_RATE = 8.0
"""Currency units per kWh."""

DEFAULT_EMISSION_FACTOR = 0.82
"""kg CO2-equivalent per kWh."""

HIGH_POWER_THRESHOLD_W = 100.0
OVERHEAT_THRESHOLD_C = 50.0
VOLTAGE_STABILITY_ALERT_PCT = 90.0
POWER_FLUCTUATION_ALERT_PCT = 30.0

RATED_LIFETIME_HOURS = 1000.0
"""Rated lifetime of an incandescent bulb, for the linear wear estimate."""

MONTHLY_PROJECTION_DAYS = 30

_SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class AnalyticsConfig:
    """Externally supplied constants for cost and emission figures.

    Attributes:
        tariff_rate: Energy price in currency units per kWh.
        emission_factor: Carbon emission in kg CO2 per kWh.
    """

    tariff_rate: float = DEFAULT_TARIFF_RATE
    emission_factor: float = DEFAULT_EMISSION_FACTOR


@dataclass(frozen=True)
class PowerStats:
    """Statistics over strictly positive power readings."""

    average: float = 0.0
    peak: float = 0.0
    minimum: float = 0.0
    fluctuation: float = 0.0


@dataclass(frozen=True)
class RelayUsage:
    """Relay duty-cycle accounting, in hours, plus the switch count."""

    on_time: float = 0.0
    off_time: float = 0.0
    switch_count: int = 0


# ---------------------------------------------------------------------------
# Statistics helpers
# ---------------------------------------------------------------------------


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def population_stddev(values: Sequence[float]) -> float:
    """Standard deviation dividing by N (not N - 1). 0 for an empty sequence."""
    if not values:
        return 0.0
    mean = _mean(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return variance**0.5


def _positive(values: Sequence[float]) -> list[float]:
    return [v for v in values if v > 0]


def stability_index(values: Sequence[float]) -> float:
    """100 minus the coefficient of variation of the positive *values*.

    Returns 100 when there are no positive readings: absence of data is not
    reported as instability.
    """
    positive = _positive(values)
    average = _mean(positive)
    if average <= 0:
        return 100.0
    return round(100 - (population_stddev(positive) / average) * 100, 2)


# ---------------------------------------------------------------------------
# Aggregation passes
# ---------------------------------------------------------------------------


def compute_power_stats(samples: Sequence[ParsedSample]) -> PowerStats:
    """Average, peak, minimum and fluctuation index of positive power readings.

    Zero and negative readings are device-off or sensor artifacts and are
    excluded so they do not drag the mean down.
    """
    powers = _positive([s.power for s in samples])
    if not powers:
        return PowerStats()

    average = round(_mean(powers), 2)
    fluctuation = (
        round((population_stddev(powers) / average) * 100, 2) if average > 0 else 0.0
    )
    return PowerStats(
        average=average,
        peak=round(max(powers), 2),
        minimum=round(min(powers), 2),
        fluctuation=fluctuation,
    )


def compute_total_energy(samples: Sequence[ParsedSample]) -> float:
    """Maximum of the positive cumulative energy readings, in kWh."""
    energies = _positive([s.energy for s in samples])
    return round(max(energies), 4) if energies else 0.0


def compute_today_energy(samples: Sequence[ParsedSample], now: datetime) -> float:
    """Energy counter delta (max - min) from local midnight up to *now*.

    Samples stamped after *now* and samples whose timestamp cannot be parsed
    never fall in the window.
    """
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    energies = []
    for sample in samples:
        ts = parse_timestamp(sample.timestamp)
        if ts is not None and day_start <= ts <= now and sample.energy > 0:
            energies.append(sample.energy)

    if not energies:
        return 0.0
    return round(max(energies) - min(energies), 4)


def _elapsed_hours(start: datetime | None, end: datetime | None) -> float:
    if start is None or end is None:
        return 0.0
    return (end - start).total_seconds() / _SECONDS_PER_HOUR


def _accumulate_relay(
    usage: RelayUsage,
    pair: tuple[tuple[ParsedSample, datetime | None], tuple[ParsedSample, datetime | None]],
) -> RelayUsage:
    (prev, prev_ts), (cur, cur_ts) = pair
    hours = _elapsed_hours(prev_ts, cur_ts)
    switches = usage.switch_count + (cur.relay_status != prev.relay_status)

    # The interval belongs to the state observed at its start.
    if prev.relay_status == 1:
        return replace(usage, on_time=usage.on_time + hours, switch_count=switches)
    return replace(usage, off_time=usage.off_time + hours, switch_count=switches)


def compute_relay_usage(samples: Sequence[ParsedSample]) -> RelayUsage:
    """Fold adjacent sample pairs into ON/OFF hours and a switch count.

    A pair whose timestamps cannot both be parsed contributes no time but is
    still compared for a state change.
    """
    stamped = [(s, parse_timestamp(s.timestamp)) for s in samples]
    return reduce(_accumulate_relay, pairwise(stamped), RelayUsage())


def compute_daily_energy(samples: Sequence[ParsedSample]) -> tuple[DailyEnergy, ...]:
    """Per-date energy counter delta, in first-seen date order.

    The date is the part of the timestamp before ``T``; no timezone
    conversion is applied.
    """
    buckets: dict[str, tuple[float, float]] = {}

    for sample in samples:
        if not sample.timestamp:
            continue
        day = sample.timestamp.split("T", 1)[0]
        if day not in buckets:
            buckets[day] = (sample.energy, sample.energy)
        else:
            low, high = buckets[day]
            buckets[day] = (min(low, sample.energy), max(high, sample.energy))

    return tuple(
        DailyEnergy(date=day, energy=round(high - low, 4))
        for day, (low, high) in buckets.items()
    )


def _fmt(value: float) -> str:
    """Render a number without a trailing ``.0`` for alert messages."""
    return str(int(value)) if float(value).is_integer() else str(value)


def evaluate_alerts(
    latest: ParsedSample,
    *,
    voltage_stability: float,
    power_fluctuation: float,
) -> tuple[Alert, ...]:
    """Evaluate the threshold rules, in fixed order.

    Alerts are recomputed from scratch on every call; there is no debouncing.
    """
    alerts: list[Alert] = []

    if latest.power > HIGH_POWER_THRESHOLD_W:
        alerts.append(
            Alert(kind="warning", message=f"High power consumption: {_fmt(latest.power)}W")
        )
    if latest.temperature > OVERHEAT_THRESHOLD_C:
        alerts.append(
            Alert(
                kind="danger",
                message=f"Overheating detected: {_fmt(latest.temperature)}°C",
            )
        )
    if voltage_stability < VOLTAGE_STABILITY_ALERT_PCT:
        alerts.append(
            Alert(
                kind="warning",
                message=f"Voltage fluctuation high: {_fmt(voltage_stability)}% stability",
            )
        )
    if power_fluctuation > POWER_FLUCTUATION_ALERT_PCT:
        alerts.append(
            Alert(
                kind="warning",
                message=f"Power fluctuation detected: {_fmt(power_fluctuation)}%",
            )
        )

    return tuple(alerts)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def empty_bundle() -> AnalyticsBundle:
    """Canonical bundle for an empty feed.

    All metrics are zero except voltage and current stability, which are 100
    (no evidence of instability). Chart arrays and alerts are empty.
    """
    return AnalyticsBundle(
        latest=LatestReading(),
        analytics=AnalyticsMetrics(voltage_stability=100.0, current_stability=100.0),
        charts=ChartSeries(),
    )


def compute_analytics(
    entries: Sequence[Mapping[str, Any] | ParsedSample] | None,
    config: AnalyticsConfig | None = None,
    *,
    now: datetime | None = None,
) -> AnalyticsBundle:
    """Compute the analytics bundle for an ordered feed window.

    Args:
        entries: Feed entries, oldest first. Raw ThingSpeak mappings are
            parsed; ParsedSample instances are used as-is. The engine does
            not sort: the latest sample is the last element.
        config: Tariff and emission factor. Defaults to AnalyticsConfig().
        now: Reference time for the "today" window. Naive values are taken
            as local time. Defaults to the current local time.

    Returns:
        AnalyticsBundle: latest reading, metrics and chart series. Never
        raises for malformed fields or empty input.
    """
    if not entries:
        return empty_bundle()

    config = config or AnalyticsConfig()
    now = (now or datetime.now()).astimezone()

    samples = parse_samples(entries)
    latest = samples[-1]

    power = compute_power_stats(samples)

    total_energy = compute_total_energy(samples)
    today_energy = compute_today_energy(samples, now)
    daily_cost = round(today_energy * config.tariff_rate, 2)

    voltage_stability = stability_index([s.voltage for s in samples])
    current_stability = stability_index([s.current for s in samples])
    load_factor = round((power.average / power.peak) * 100, 2) if power.peak > 0 else 0.0

    temps = _positive([s.temperature for s in samples])
    max_temperature = round(max(temps), 2) if temps else 0.0
    avg_temperature = round(_mean(temps), 2) if temps else 0.0

    relay = compute_relay_usage(samples)

    metrics = AnalyticsMetrics(
        total_energy=total_energy,
        today_energy=today_energy,
        avg_power=power.average,
        peak_power=power.peak,
        min_power=power.minimum,
        power_fluctuation=power.fluctuation,
        load_factor=load_factor,
        voltage_stability=voltage_stability,
        current_stability=current_stability,
        energy_cost=round(total_energy * config.tariff_rate, 2),
        daily_cost=daily_cost,
        monthly_projection=round(daily_cost * MONTHLY_PROJECTION_DAYS, 2),
        carbon_emission=round(total_energy * config.emission_factor, 4),
        max_temperature=max_temperature,
        avg_temperature=avg_temperature,
        overheat_warning=max_temperature > OVERHEAT_THRESHOLD_C,
        on_time=round(relay.on_time, 2),
        off_time=round(relay.off_time, 2),
        switch_count=relay.switch_count,
        bulb_lifetime_usage=round((relay.on_time / RATED_LIFETIME_HOURS) * 100, 2),
        alerts=evaluate_alerts(
            latest,
            voltage_stability=voltage_stability,
            power_fluctuation=power.fluctuation,
        ),
    )

    charts = ChartSeries(
        timestamps=tuple(s.timestamp for s in samples),
        power_data=tuple(s.power for s in samples),
        temperature_data=tuple(s.temperature for s in samples),
        voltage_data=tuple(s.voltage for s in samples),
        current_data=tuple(s.current for s in samples),
        energy_data=tuple(s.energy for s in samples),
        daily_energy=compute_daily_energy(samples),
    )

    logger.debug(
        "Analytics computed: samples=%d total_energy=%.4f avg_power=%.2f "
        "switches=%d alerts=%d",
        len(samples),
        metrics.total_energy,
        metrics.avg_power,
        metrics.switch_count,
        len(metrics.alerts),
    )

    return AnalyticsBundle(
        latest=LatestReading.from_sample(latest),
        analytics=metrics,
        charts=charts,
    )
