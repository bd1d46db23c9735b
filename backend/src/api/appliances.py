"""
Appliance endpoints: catalogue listing, feed analytics and relay control.

- GET  /api/appliances                 list the configured appliances
- GET  /api/appliance/{id}/data        fetch the ThingSpeak feed and return
                                       the analytics bundle
- POST /api/appliance/{id}/relay       write a relay ON/OFF command

ThingSpeak failures are translated into HTTP errors here; the analytics
engine itself never fails on feed content.

CHANGELOG:
- 2026-10-08: Map ThingSpeak write rejections to 429
- 2026-10-05: Initial creation (STORY-009)

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import BaseModel

from backend.src.analytics import compute_analytics
from backend.src.api.deps import FeedClient, Registry, Settings
from backend.src.config import MAX_FEED_RESULTS
from backend.src.registry import find_appliance
from backend.src.thingspeak import ThingSpeakError, ThingSpeakRateLimitError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["appliances"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RelayCommand(BaseModel):
    """Relay command body.

    ``state`` is validated by the route rather than by pydantic so that any
    value other than the integers 0 and 1 yields a 400 with a clear message.
    """

    state: Any = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_results(raw: str | None, default: int) -> int:
    """Parse the ``results`` query value, falling back to *default*.

    Missing, non-numeric and non-positive values use the default; large
    values are capped at the ThingSpeak limit.
    """
    try:
        results = int(raw) if raw is not None else 0
    except ValueError:
        results = 0
    if results < 1:
        return default
    return min(results, MAX_FEED_RESULTS)


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail=message)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/appliances")
async def list_appliances(registry: Registry) -> dict:
    """Return every configured appliance with its public fields."""
    appliances = [a.summary() for a in registry]
    return {"success": True, "count": len(appliances), "appliances": appliances}


@router.get("/appliance/{appliance_id}/data")
async def get_appliance_data(
    appliance_id: str,
    registry: Registry,
    settings: Settings,
    client: FeedClient,
    results: Annotated[
        str | None,
        Query(description="Number of most recent feed entries to analyse."),
    ] = None,
) -> dict:
    """Fetch the appliance's channel feed and return computed analytics.

    Raises:
        HTTPException: 404 if the appliance is not registered.
        HTTPException: upstream status if ThingSpeak answered with an error.
        HTTPException: 500 if ThingSpeak could not be reached.
    """
    appliance = find_appliance(registry, appliance_id)
    if appliance is None:
        raise _not_found(f'Appliance with ID "{appliance_id}" not found')

    count = _resolve_results(results, settings.default_results)

    try:
        feed = await client.fetch_feed(appliance.channel_id, count)
    except ThingSpeakError as exc:
        logger.error("Error fetching appliance data for %s: %s", appliance_id, exc)
        if exc.status_code is not None:
            raise HTTPException(
                status_code=exc.status_code,
                detail={"error": "ThingSpeak API error", "details": exc.details},
            ) from exc
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to fetch appliance data", "details": str(exc)},
        ) from exc

    bundle = compute_analytics(feed.feeds, settings.analytics_config())
    payload = bundle.model_dump(mode="json", by_alias=True)

    logger.info(
        "Analytics served: appliance=%s entries=%d alerts=%d",
        appliance_id,
        len(feed.feeds),
        len(bundle.analytics.alerts),
    )

    return {
        "success": True,
        "appliance": {
            "id": appliance.appliance_id,
            "name": appliance.appliance_name,
            "deviceId": appliance.device_id,
            "icon": appliance.icon,
            "type": appliance.type,
            "ratedPower": appliance.rated_power,
        },
        "channel": {
            "id": feed.channel.id,
            "name": feed.channel.name,
            "lastEntryId": feed.channel.last_entry_id,
            "entriesCount": len(feed.feeds),
        },
        **payload,
    }


@router.post("/appliance/{appliance_id}/relay")
async def control_relay(
    appliance_id: str,
    registry: Registry,
    client: FeedClient,
    command: Annotated[RelayCommand | None, Body()] = None,
) -> dict:
    """Write a relay ON/OFF command for the appliance.

    The metering device polls the channel and applies the latest relay
    value, so success here means ThingSpeak accepted the write.

    Raises:
        HTTPException: 404 if the appliance is not registered.
        HTTPException: 400 if ``state`` is not exactly 0 or 1.
        HTTPException: 429 if ThingSpeak rejected the write (rate limit).
        HTTPException: 500 for any other ThingSpeak failure.
    """
    appliance = find_appliance(registry, appliance_id)
    if appliance is None:
        raise _not_found("Appliance not found")

    state = command.state if command is not None else None
    if type(state) is not int or state not in (0, 1):
        raise HTTPException(status_code=400, detail="State must be 0 (OFF) or 1 (ON)")

    try:
        entry_id = await client.write_relay(state)
    except ThingSpeakRateLimitError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except ThingSpeakError as exc:
        logger.error("Error controlling relay for %s: %s", appliance_id, exc)
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to control relay", "details": str(exc)},
        ) from exc

    return {
        "success": True,
        "appliance": {"id": appliance.appliance_id, "name": appliance.appliance_name},
        "relay": {
            "state": state,
            "stateLabel": "ON" if state == 1 else "OFF",
            "entryId": entry_id,
        },
    }
