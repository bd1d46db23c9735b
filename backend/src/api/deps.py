"""
FastAPI dependency injection providers.

Exposes the settings, appliance catalogue and ThingSpeak client created in
the application lifespan (stored on ``app.state``) through Depends(), so
tests can swap them with ``app.dependency_overrides``.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-008)
"""

from typing import Annotated

from fastapi import Depends, Request

from backend.src.config import MonitorSettings
from backend.src.registry import Appliance
from backend.src.thingspeak import ThingSpeakClient


def get_settings(request: Request) -> MonitorSettings:
    """Return the settings loaded at startup."""
    return request.app.state.settings


def get_registry(request: Request) -> tuple[Appliance, ...]:
    """Return the appliance catalogue built at startup."""
    return request.app.state.registry


def get_feed_client(request: Request) -> ThingSpeakClient:
    """Return the shared ThingSpeak client."""
    return request.app.state.feed_client


# Type aliases for route signatures.
# Usage in route handlers:
#   async def my_route(client: FeedClient):
#       feed = await client.fetch_feed(...)
Settings = Annotated[MonitorSettings, Depends(get_settings)]
Registry = Annotated[tuple[Appliance, ...], Depends(get_registry)]
FeedClient = Annotated[ThingSpeakClient, Depends(get_feed_client)]
