"""
Appliance catalogue: the loads the API serves analytics and relay control for.

Each appliance maps to one ThingSpeak channel. The catalogue is static and
built from settings at startup; it is read-only at runtime.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from backend.src.config import MonitorSettings


@dataclass(frozen=True)
class Appliance:
    """A monitored appliance and the ThingSpeak channel that carries its data.

    Attributes:
        appliance_id: Stable identifier used in API paths (e.g. ``LOAD_01``).
        appliance_name: Display name.
        device_id: Identifier of the metering device (ESP8266 board).
        channel_id: ThingSpeak channel holding the appliance telemetry.
        icon: Display icon for the dashboard.
        rated_power: Nameplate power in watts.
        type: Appliance category (lighting, motor, ...).
    """

    appliance_id: str
    appliance_name: str
    device_id: str
    channel_id: str
    icon: str
    rated_power: float
    type: str

    def summary(self) -> dict:
        """Public listing fields (the channel id is not exposed)."""
        return {
            "deviceId": self.device_id,
            "applianceName": self.appliance_name,
            "applianceId": self.appliance_id,
            "icon": self.icon,
            "type": self.type,
            "ratedPower": self.rated_power,
        }


def build_registry(settings: MonitorSettings) -> tuple[Appliance, ...]:
    """Return the configured appliances.

    A single bulb on ``ESP001`` is wired today; additional loads get their
    own channel and entry here.
    """
    return (
        Appliance(
            appliance_id="LOAD_01",
            appliance_name="Bulb",
            device_id="ESP001",
            channel_id=settings.thingspeak_channel_id,
            icon="💡",
            rated_power=60,
            type="lighting",
        ),
    )


def find_appliance(appliances: Iterable[Appliance], appliance_id: str) -> Appliance | None:
    """Look up an appliance by id, or ``None`` if it is not registered."""
    return next((a for a in appliances if a.appliance_id == appliance_id), None)
