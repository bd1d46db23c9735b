"""
FastAPI application entry point for the energy monitor API.

Loads MonitorSettings at startup, builds the appliance catalogue and the
ThingSpeak client and stores them on app.state for the dependency providers.
Every error response uses the envelope ``{"success": false, "error": ...}``
expected by the dashboard.

Run with ``uvicorn backend.src.api.main:app``.

CHANGELOG:
- 2026-10-07: Structured JSON logging and request logging middleware
- 2026-10-06: Error envelope handlers (404 fallback, 500, validation)
- 2026-10-05: Register appliances router (STORY-009)
- 2026-10-04: Initial creation (STORY-008)
"""

import hashlib
import json
import logging
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.src.api.appliances import router as appliances_router
from backend.src.api.health import router as health_router
from backend.src.config import MonitorSettings
from backend.src.registry import build_registry
from backend.src.thingspeak import ThingSpeakClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal single-line JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger with a JSON handler writing to stderr.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR). Unknown
            names fall back to INFO.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def _masked_key(value: str | None) -> str:
    """Return a short non-reversible key fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: MonitorSettings) -> None:
    """Log a config summary at startup, with API keys masked."""
    logger.info(
        "Energy monitor API starting with config: "
        "thingspeak_base_url=%s, channel_id=%s, request_timeout_s=%s, "
        "default_results=%s, energy_tariff=%s, carbon_factor=%s, "
        "read_key=%s, write_key=%s",
        settings.thingspeak_base_url,
        settings.thingspeak_channel_id or "<unset>",
        settings.request_timeout_s,
        settings.default_results,
        settings.energy_tariff,
        settings.carbon_factor,
        _masked_key(settings.thingspeak_read_api_key),
        _masked_key(settings.thingspeak_write_api_key),
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: load settings and wire shared collaborators.

    Startup:
        - Loads MonitorSettings from the environment.
        - Builds the appliance catalogue and the ThingSpeak client.

    Shutdown:
        - Logs that the API is shutting down.
    """
    settings = MonitorSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    app.state.settings = settings
    app.state.registry = build_registry(settings)
    app.state.feed_client = ThingSpeakClient(
        base_url=settings.thingspeak_base_url,
        read_api_key=settings.thingspeak_read_api_key,
        write_api_key=settings.thingspeak_write_api_key,
        timeout_s=settings.request_timeout_s,
    )
    if not settings.thingspeak_channel_id:
        logger.warning("THINGSPEAK_CHANNEL_ID is not set; feed requests will fail")

    logger.info("Energy monitor API ready (%d appliance(s))", len(app.state.registry))
    yield
    logger.info("Energy monitor API shutting down")


app = FastAPI(
    title="IoT Energy Monitor API",
    description="Appliance telemetry analytics and relay control over ThingSpeak.",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware must be registered before startup, so CORS origins are read at
# import. An invalid environment or .env raises ValidationError on import,
# not in the lifespan.
app.add_middleware(
    CORSMiddleware,
    allow_origins=MonitorSettings().cors_origin_list,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def log_requests(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Log method, path and response status of every request."""
    response = await call_next(request)
    logger.info("%s %s -> %d", request.method, request.url.path, response.status_code)
    return response


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render HTTP errors as ``{"success": false, "error": ...}``.

    A dict detail is merged into the envelope (``error`` plus ``details``);
    an unmatched route becomes ``Endpoint not found``.
    """
    if exc.status_code == 404 and exc.detail == "Not Found":
        body: dict = {"success": False, "error": "Endpoint not found"}
    elif isinstance(exc.detail, dict):
        body = {"success": False, **exc.detail}
    else:
        body = {"success": False, "error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render request validation errors in the envelope, keeping 422."""
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Invalid request",
            "details": json.loads(json.dumps(exc.errors(), default=str)),
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and return a generic 500 envelope."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


app.include_router(health_router)
app.include_router(appliances_router)
