"""
Pure parser that converts raw ThingSpeak feed entries into ParsedSample.

A feed entry is a mapping with ``created_at`` and ``field1``..``field6``
values, any of which may be missing, null or non-numeric. The telemetry feed
is noisy, so parsing never raises: a value that cannot be coerced becomes 0
(relay status becomes OFF) and the rest of the batch is processed normally.

This is a pure function: no side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-05: Map relay values other than 1 to OFF
- 2026-10-03: Add parse_timestamp for duty-cycle and "today" windows
- 2026-10-02: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from backend.src.models import ParsedSample

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Mapping from ParsedSample field names to ThingSpeak channel fields.
# ---------------------------------------------------------------------------

FIELD_MAP: dict[str, str] = {
    "voltage": "field1",
    "current": "field2",
    "power": "field3",
    "energy": "field4",
    "temperature": "field5",
    "relay_status": "field6",
}
"""Maps ParsedSample field name -> ThingSpeak field key."""

TIMESTAMP_KEY = "created_at"


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def coerce_float(value: Any, *, default: float = 0.0) -> float:
    """Coerce a feed value to a finite float, or *default* if impossible."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        logger.debug("Non-numeric feed value %r, using %s", value, default)
        return default
    if not math.isfinite(number):
        return default
    return number


def coerce_relay(value: Any) -> int:
    """Coerce a feed value to a relay state: 1 for ON, 0 for anything else."""
    return 1 if coerce_float(value) == 1 else 0


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 feed timestamp into an aware datetime.

    A trailing ``Z`` is accepted. Naive timestamps are taken as UTC.

    Returns:
        The parsed datetime, or ``None`` if *value* is missing or malformed.
    """
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable feed timestamp %r", value)
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_sample(raw: Mapping[str, Any]) -> ParsedSample:
    """Convert one raw feed entry into a ParsedSample.

    Every numeric field defaults to 0 and the relay status defaults to OFF
    when the value is missing or cannot be parsed. The timestamp is kept as
    the original string so chart labels and daily buckets reflect exactly
    what the device reported.

    Args:
        raw: A ThingSpeak feed entry.

    Returns:
        The coerced :class:`ParsedSample`. Never raises.
    """
    if not isinstance(raw, Mapping):
        logger.debug("Feed entry is not a mapping (%s), using defaults", type(raw).__name__)
        raw = {}
    timestamp = raw.get(TIMESTAMP_KEY)
    return ParsedSample(
        timestamp=timestamp if isinstance(timestamp, str) and timestamp else None,
        voltage=coerce_float(raw.get(FIELD_MAP["voltage"])),
        current=coerce_float(raw.get(FIELD_MAP["current"])),
        power=coerce_float(raw.get(FIELD_MAP["power"])),
        energy=coerce_float(raw.get(FIELD_MAP["energy"])),
        temperature=coerce_float(raw.get(FIELD_MAP["temperature"])),
        relay_status=coerce_relay(raw.get(FIELD_MAP["relay_status"])),
    )


def parse_samples(
    raw_entries: Sequence[Mapping[str, Any] | ParsedSample] | None,
) -> list[ParsedSample]:
    """Parse a feed, preserving input order. ``None`` yields an empty list.

    Entries that are already ParsedSample instances are passed through.
    """
    if not raw_entries:
        return []
    return [
        entry if isinstance(entry, ParsedSample) else parse_sample(entry)
        for entry in raw_entries
    ]
