"""
SafeWave - Backend Entrypoint

FastAPI application factory and server configuration.
Run with: uvicorn main:app --reload   (from the backend/ directory)
"""

from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from safewave import __version__
from safewave.api import routes
from safewave.config import Settings, get_settings
from safewave.core.accumulator import DistressAccumulator
from safewave.core.alert_log import create_alert_log
from safewave.core.arbiter import AlertArbiter
from safewave.core.dispatcher import NotificationDispatcher
from safewave.core.exceptions import SafeWaveError, SensorError
from safewave.core.logging import LogContext, setup_structured_logging
from safewave.core.monitor import DistressMonitor
from safewave.core.sampler import SignalSampler
from safewave.services.alarm import LoggingAlarm
from safewave.services.call_gateway import create_call_gateway
from safewave.services.classifier import create_classifier
from safewave.services.contacts import create_contact_store
from safewave.services.email_gateway import create_email_gateway
from safewave.services.frames import create_frame_source
from safewave.services.location import create_location_provider
from safewave.telephony import router as relay

logger = logging.getLogger(__name__)


def build_monitor(settings: Settings, arbiter: AlertArbiter) -> Optional[DistressMonitor]:
    """
    Assemble automated detection.

    Returns None when the classifier cannot be loaded; the manual SOS path
    keeps working without it.
    """
    try:
        classifier = create_classifier(settings)
    except SensorError as e:
        logger.error("Automated detection unavailable: %s", e.message)
        return None

    sampler = SignalSampler(
        classifier=classifier,
        frame_source=create_frame_source(settings),
        interval_seconds=settings.sampler_interval_seconds,
    )
    return DistressMonitor(sampler, DistressAccumulator.from_settings(settings), arbiter)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Create gateways, stores and the alert arbiter
        - Build automated detection if the classifier loads

    Shutdown:
        - Stop automated detection and release the camera
        - Abort any alert still armed or in cooldown
    """
    settings: Settings = app.state.settings

    # === Startup ===
    logger.info("SafeWave starting in %s mode", settings.app_env)

    alert_log = create_alert_log(settings)
    contact_store = create_contact_store(settings)
    dispatcher = NotificationDispatcher(
        email_gateway=create_email_gateway(settings),
        call_gateway=create_call_gateway(settings),
    )
    arbiter = AlertArbiter.from_settings(
        settings,
        dispatcher=dispatcher,
        contact_store=contact_store,
        location_provider=create_location_provider(settings),
        alarm=LoggingAlarm(),
        alert_log=alert_log,
    )

    app.state.alert_log = alert_log
    app.state.contact_store = contact_store
    app.state.arbiter = arbiter
    app.state.monitor = build_monitor(settings, arbiter)
    app.state.voice_provider = relay.build_voice_provider(settings)

    logger.info(
        "Alerting ready: window=%gs, cooldown=%gs, email=%s, call=%s",
        settings.armed_window_seconds,
        settings.cooldown_seconds,
        dispatcher.email_gateway.gateway_id,
        dispatcher.call_gateway.gateway_id,
    )

    yield

    # === Shutdown ===
    logger.info("SafeWave shutting down")
    if app.state.monitor is not None:
        await app.state.monitor.stop()
    await arbiter.shutdown()
    logger.info("Shutdown complete")


async def safewave_error_handler(request: Request, exc: SafeWaveError) -> JSONResponse:
    """Map domain errors to JSON responses."""
    logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    app = FastAPI(
        title="SafeWave",
        description="Personal safety alerting: SOS countdown, email and call dispatch",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Request context ---
    @app.middleware("http")
    async def correlation_context(request: Request, call_next):
        correlation_id = request.headers.get("x-request-id") or uuid4().hex[:12]
        with LogContext(correlation_id=correlation_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response

    # --- Errors ---
    app.add_exception_handler(SafeWaveError, safewave_error_handler)

    # --- Routes ---
    app.include_router(routes.router)
    app.include_router(relay.router)

    @app.get("/")
    async def root():
        """Root health check."""
        return {
            "service": "SafeWave",
            "status": "operational",
            "version": __version__,
        }

    return app


_settings = get_settings()
setup_structured_logging(
    _settings.app_log_level,
    json_format=_settings.log_json_format or _settings.is_production,
)

# Create app instance
app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=_settings.backend_host, port=_settings.backend_port)
