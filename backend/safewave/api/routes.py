"""
SafeWave - REST API Routes

Endpoints for the SOS flow, contacts, location sharing, automated
detection and system health.

Architecture:
    Every alert operation goes through the AlertArbiter held on app.state,
    so the HTTP button and the distress monitor share one state machine.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import List, Optional
import logging

from safewave import __version__
from safewave.config import Settings
from safewave.core.alert_log import AlertLog
from safewave.core.arbiter import AlertArbiter
from safewave.core.monitor import DistressMonitor
from safewave.core.types import Contact, Coordinates, DeliveryStatus
from safewave.services.contacts import ContactStore

from .schemas import (
    AlertLogEntrySchema,
    AlertStatusResponse,
    CallTestRequest,
    CancelResponse,
    ContactListResponse,
    ContactSchema,
    HealthResponse,
    LocationShareRequest,
    MonitorStatusResponse,
    NotificationReportSchema,
    NotificationResultSchema,
    TriggerRequest,
    TriggerResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


# =============================================================================
# Dependencies
# =============================================================================

def get_arbiter(request: Request) -> AlertArbiter:
    """Dependency to get the alert arbiter from app state."""
    return request.app.state.arbiter


def get_alert_log(request: Request) -> AlertLog:
    return request.app.state.alert_log


def get_contact_store(request: Request) -> ContactStore:
    return request.app.state.contact_store


def get_monitor(request: Request) -> Optional[DistressMonitor]:
    """Distress monitor, or None when automated detection is unavailable."""
    return getattr(request.app.state, "monitor", None)


def get_settings(request: Request) -> Settings:
    """Dependency to get settings from app state."""
    return request.app.state.settings


# =============================================================================
# Health & Status
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(
    arbiter: AlertArbiter = Depends(get_arbiter),
    monitor: Optional[DistressMonitor] = Depends(get_monitor),
    settings: Settings = Depends(get_settings),
):
    """
    System health check.

    Automated detection being unavailable degrades the service but the
    manual SOS path still works.
    """
    dispatcher = arbiter.dispatcher
    components = {
        "api": "operational",
        "arbiter": arbiter.state.value,
        "email_gateway": dispatcher.email_gateway.gateway_id,
        "call_gateway": dispatcher.call_gateway.gateway_id,
        "location_backend": settings.location_backend,
        "monitor": "available" if monitor is not None else "unavailable",
        "call_relay": "configured" if settings.twilio_configured else "not_configured",
    }

    return HealthResponse(
        status="healthy" if monitor is not None else "degraded",
        version=__version__,
        components=components,
    )


# =============================================================================
# Alerts
# =============================================================================

@router.post("/alerts/trigger", response_model=TriggerResponse)
async def trigger_alert(
    body: Optional[TriggerRequest] = None,
    arbiter: AlertArbiter = Depends(get_arbiter),
):
    """
    Arm an SOS alert.

    The alert dispatches after the cancel window unless canceled. A
    trigger while another alert is in progress is accepted=false.
    """
    session = await arbiter.trigger(reason=body.reason if body else "manual")
    return TriggerResponse(
        accepted=session is not None,
        state=arbiter.state.value,
        session=session.to_dict() if session else None,
    )


@router.post("/alerts/cancel", response_model=CancelResponse)
async def cancel_alert(arbiter: AlertArbiter = Depends(get_arbiter)):
    """Cancel the armed alert. No-op outside the cancel window."""
    canceled = await arbiter.cancel()
    return CancelResponse(canceled=canceled, state=arbiter.state.value)


@router.get("/alerts/status", response_model=AlertStatusResponse)
async def alert_status(arbiter: AlertArbiter = Depends(get_arbiter)):
    report = arbiter.last_report
    return AlertStatusResponse(
        **arbiter.status(),
        last_report=report.to_dict() if report else None,
    )


@router.get("/alerts/reports", response_model=List[NotificationReportSchema])
async def list_reports(
    limit: int = Query(default=10, ge=1, le=100),
    alert_log: AlertLog = Depends(get_alert_log),
):
    """Recent dispatch reports, newest first."""
    reports = await alert_log.get_recent_reports(limit=limit)
    return [NotificationReportSchema(**r.to_dict()) for r in reports]


@router.get("/alerts/log", response_model=List[AlertLogEntrySchema])
async def list_log_entries(
    limit: int = Query(default=30, ge=1, le=500),
    alert_log: AlertLog = Depends(get_alert_log),
):
    """Recent log lines, newest first."""
    entries = await alert_log.get_recent_entries(limit=limit)
    return [AlertLogEntrySchema(**e.to_dict()) for e in entries]


@router.post("/alerts/test-call", response_model=NotificationResultSchema)
async def place_test_call(
    body: CallTestRequest,
    arbiter: AlertArbiter = Depends(get_arbiter),
):
    """Place one call through the call gateway outside the alert flow."""
    result = await arbiter.send_test_call(body.number)
    if result.status == DeliveryStatus.INVALID:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return NotificationResultSchema(**result.to_dict())


# =============================================================================
# Location
# =============================================================================

@router.post("/location", status_code=status.HTTP_204_NO_CONTENT)
async def share_location(
    body: LocationShareRequest,
    arbiter: AlertArbiter = Depends(get_arbiter),
):
    """Share a fix; the next dispatch falls back to it if a fresh fix fails."""
    await arbiter.share_location(Coordinates(lat=body.lat, lon=body.lon))


# =============================================================================
# Contacts
# =============================================================================

@router.get("/contacts", response_model=ContactListResponse)
async def list_contacts(store: ContactStore = Depends(get_contact_store)):
    contacts = await store.list_contacts()
    return ContactListResponse(
        contacts=[ContactSchema(**c.to_dict()) for c in contacts],
        count=len(contacts),
    )


@router.post("/contacts", response_model=ContactSchema, status_code=status.HTTP_201_CREATED)
async def add_contact(
    body: ContactSchema,
    store: ContactStore = Depends(get_contact_store),
):
    """
    Add an emergency contact.

    Validation failures surface as 400 through the SafeWaveError handler.
    """
    saved = await store.add_contact(Contact(name=body.name, email=body.email, phone=body.phone))
    return ContactSchema(**saved.to_dict())


@router.delete("/contacts/{index}", response_model=ContactSchema)
async def remove_contact(
    index: int,
    store: ContactStore = Depends(get_contact_store),
):
    try:
        removed = await store.remove_contact(index)
    except IndexError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No contact at index {index}",
        )
    return ContactSchema(**removed.to_dict())


@router.delete("/contacts", status_code=status.HTTP_204_NO_CONTENT)
async def clear_contacts(store: ContactStore = Depends(get_contact_store)):
    await store.clear()


# =============================================================================
# Automated Detection
# =============================================================================

def _monitor_status(monitor: Optional[DistressMonitor]) -> MonitorStatusResponse:
    if monitor is None:
        return MonitorStatusResponse(available=False)
    return MonitorStatusResponse(available=True, **monitor.status())


def _require_monitor(monitor: Optional[DistressMonitor]) -> DistressMonitor:
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automated detection is unavailable on this server",
        )
    return monitor


@router.get("/monitor", response_model=MonitorStatusResponse)
async def monitor_status(monitor: Optional[DistressMonitor] = Depends(get_monitor)):
    return _monitor_status(monitor)


@router.post("/monitor/start", response_model=MonitorStatusResponse)
async def start_monitor(monitor: Optional[DistressMonitor] = Depends(get_monitor)):
    """
    Start automated detection.

    A camera failure is reported in ``last_error`` with running=false; the
    manual SOS path is unaffected.
    """
    monitor = _require_monitor(monitor)
    await monitor.start()
    return _monitor_status(monitor)


@router.post("/monitor/stop", response_model=MonitorStatusResponse)
async def stop_monitor(monitor: Optional[DistressMonitor] = Depends(get_monitor)):
    monitor = _require_monitor(monitor)
    await monitor.stop()
    return _monitor_status(monitor)
