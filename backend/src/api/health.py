"""
Health check endpoint for the energy monitor API.

GET /api/health returns the service status, process uptime and the current
UTC time. No upstream call is made, so it reflects API liveness only.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-008)

TODO:
- None
"""

import time
from datetime import UTC, datetime

from fastapi import APIRouter

router = APIRouter(prefix="/api", tags=["health"])

_STARTED_AT = time.monotonic()


@router.get("/health")
async def health() -> dict:
    """Return service status, uptime in seconds and an ISO timestamp."""
    return {
        "status": "online",
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }
