"""
Shared test fixtures for the energy monitor backend.

All monitor env vars are cleaned before each test so configuration tests are
isolated. Provides feed-entry builders for analytics tests and a TestClient
whose ThingSpeak client is replaced by an AsyncMock.

CHANGELOG:
- 2026-10-05: Add client and mock_feed_client fixtures (STORY-009)
- 2026-10-02: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# All MonitorSettings environment variable names, used for cleanup.
_ALL_MONITOR_ENV_VARS = (
    "THINGSPEAK_CHANNEL_ID",
    "THINGSPEAK_READ_API_KEY",
    "THINGSPEAK_WRITE_API_KEY",
    "THINGSPEAK_BASE_URL",
    "REQUEST_TIMEOUT_S",
    "DEFAULT_RESULTS",
    "ENERGY_TARIFF",
    "CARBON_FACTOR",
    "CORS_ORIGINS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_monitor_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all monitor env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_MONITOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every MonitorSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "THINGSPEAK_CHANNEL_ID": "2468135",
        "THINGSPEAK_READ_API_KEY": "READKEY123",
        "THINGSPEAK_WRITE_API_KEY": "WRITEKEY456",
        "THINGSPEAK_BASE_URL": "https://ts.example.com/",
        "REQUEST_TIMEOUT_S": "5",
        "DEFAULT_RESULTS": "250",
        "ENERGY_TARIFF": "6.5",
        "CARBON_FACTOR": "0.7",
        "CORS_ORIGINS": "https://dash.example.com, http://localhost:5173",
        "LOG_LEVEL": "DEBUG",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def mock_feed_client() -> AsyncMock:
    """Create a mock ThingSpeakClient.

    Returns:
        AsyncMock: ``fetch_feed`` and ``write_relay`` are awaitable mocks.
    """
    client = AsyncMock()
    client.fetch_feed = AsyncMock()
    client.write_relay = AsyncMock()
    return client


@pytest.fixture()
def client(
    monkeypatch: pytest.MonkeyPatch,
    mock_feed_client: AsyncMock,
) -> Generator[TestClient, None, None]:
    """Create a FastAPI TestClient with the ThingSpeak client mocked out.

    Uses a context manager so the lifespan (settings, registry) runs; the
    feed client dependency is then overridden with ``mock_feed_client``.

    Yields:
        TestClient: Configured test client for the FastAPI app.
    """
    monkeypatch.setenv("THINGSPEAK_CHANNEL_ID", "2468135")
    monkeypatch.setenv("THINGSPEAK_READ_API_KEY", "READKEY123")
    monkeypatch.setenv("THINGSPEAK_WRITE_API_KEY", "WRITEKEY456")

    from backend.src.api.deps import get_feed_client
    from backend.src.api.main import app

    app.dependency_overrides[get_feed_client] = lambda: mock_feed_client
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
