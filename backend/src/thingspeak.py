"""
HTTPS client for the ThingSpeak channel API.

Reads a channel feed (the telemetry source) and writes relay commands (the
command sink). Every request carries the configured timeout; failures are
raised as ThingSpeakError so route handlers can map them to HTTP responses.
The base URL must be HTTPS and TLS certificate verification is always on.

Operations:
- fetch_feed(channel_id, results): GET the last *results* feed entries.
- write_relay(state): POST the relay field, returning the new entry id.

CHANGELOG:
- 2026-10-19: Read the entry id from the JSON write response
- 2026-10-08: Raise ThingSpeakRateLimitError when a write returns entry id 0
- 2026-10-04: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from backend.src.models import Feed
from backend.src.parser import FIELD_MAP

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 10.0


class ThingSpeakError(Exception):
    """A ThingSpeak request failed.

    Attributes:
        status_code: Upstream HTTP status, or ``None`` for network errors.
        details: Upstream response body (parsed JSON when possible).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ThingSpeakRateLimitError(ThingSpeakError):
    """ThingSpeak rejected a write (entry id 0), usually the 15 s write limit."""


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ThingSpeakClient:
    """Client for ThingSpeak feed reads and relay writes.

    Args:
        base_url: ThingSpeak API base URL. Must start with ``https://``.
        read_api_key: Channel read API key.
        write_api_key: Channel write API key.
        timeout_s: Timeout applied to every request, in seconds.

    Raises:
        ValueError: If *base_url* does not start with ``https://``.

    Usage::

        client = ThingSpeakClient(
            base_url="https://api.thingspeak.com",
            read_api_key="READKEY",
            write_api_key="WRITEKEY",
        )
        feed = await client.fetch_feed("123456", results=100)
        entry_id = await client.write_relay(1)
    """

    def __init__(
        self,
        base_url: str,
        read_api_key: str,
        write_api_key: str,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        if not base_url.lower().startswith("https://"):
            raise ValueError(f"ThingSpeak base URL must use HTTPS (got: '{base_url}').")
        self._base_url = base_url.rstrip("/")
        self._read_api_key = read_api_key
        self._write_api_key = write_api_key
        self._timeout_s = timeout_s

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed_url(self, channel_id: str) -> str:
        """Feed endpoint URL for *channel_id*."""
        return f"{self._base_url}/channels/{channel_id}/feeds.json"

    @property
    def write_url(self) -> str:
        """Channel update endpoint URL."""
        return f"{self._base_url}/update.json"

    async def fetch_feed(self, channel_id: str, results: int) -> Feed:
        """Fetch the most recent *results* entries of a channel, oldest first.

        Args:
            channel_id: ThingSpeak channel id.
            results: Number of entries to request.

        Returns:
            Feed: Channel metadata and the raw feed entries.

        Raises:
            ThingSpeakError: On network failure, timeout, non-2xx status or
                an unparseable response body.
        """
        params = {"api_key": self._read_api_key, "results": results}
        response = await self._request("GET", self.feed_url(channel_id), params=params)

        try:
            return Feed.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("Malformed feed response for channel %s: %s", channel_id, exc)
            raise ThingSpeakError(
                "Malformed ThingSpeak feed response",
                details=response.text,
            ) from exc

    async def write_relay(self, state: int) -> int:
        """Write a relay command to the channel's relay field.

        The device polls the channel and applies the latest relay value.
        ThingSpeak answers an accepted write with the created entry as a JSON
        object and a rejected one (usually the 15 s write limit) with a bare
        ``0``.

        Args:
            state: 1 for ON, 0 for OFF.

        Returns:
            int: The ``entry_id`` of the created entry.

        Raises:
            ThingSpeakRateLimitError: If ThingSpeak returns entry id 0.
            ThingSpeakError: On network failure, timeout, non-2xx status or
                a body without an integer entry id.
        """
        params = {"api_key": self._write_api_key, FIELD_MAP["relay_status"]: state}
        response = await self._request("POST", self.write_url, params=params)

        try:
            body = response.json()
        except ValueError as exc:
            raise ThingSpeakError(
                "Unexpected ThingSpeak write response",
                details=response.text,
            ) from exc

        entry_id = body.get("entry_id") if isinstance(body, dict) else body
        if isinstance(entry_id, bool) or not isinstance(entry_id, int):
            raise ThingSpeakError(
                "Unexpected ThingSpeak write response",
                details=body,
            )

        if entry_id == 0:
            logger.warning("Relay write rejected by ThingSpeak (entry id 0)")
            raise ThingSpeakRateLimitError(
                "ThingSpeak rate limit. Wait 15 seconds between writes.",
                status_code=response.status_code,
            )

        logger.info("Relay write accepted: state=%d entry_id=%d", state, entry_id)
        return entry_id

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any],
    ) -> httpx.Response:
        """Send one request and raise ThingSpeakError on any failure."""
        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout_s) as client:
                response = await client.request(method, url, params=params)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning("ThingSpeak %s %s failed (network error): %s", method, url, exc)
            raise ThingSpeakError(f"ThingSpeak request failed: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("ThingSpeak %s %s failed: %s", method, url, exc)
            raise ThingSpeakError(f"ThingSpeak request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.warning(
                "ThingSpeak %s %s returned HTTP %d",
                method,
                url,
                response.status_code,
            )
            raise ThingSpeakError(
                "ThingSpeak API error",
                status_code=response.status_code,
                details=_response_details(response),
            )

        return response
