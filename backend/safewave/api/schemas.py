"""
SafeWave - API Schemas

Pydantic models for request/response validation.
These define the contract between the client UI and the backend.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ===========================================
# Alert Schemas
# ===========================================

class TriggerRequest(BaseModel):
    """Manual SOS trigger."""

    reason: str = Field(default="manual", description="Why the alert was raised")


class TriggerResponse(BaseModel):
    """Result of a trigger request."""

    accepted: bool = Field(description="False if an alert was already in progress")
    state: str
    session: Optional[Dict[str, Any]] = None


class CancelResponse(BaseModel):
    canceled: bool
    state: str


class AlertStatusResponse(BaseModel):
    """Current arbiter state."""

    state: str
    session: Optional[Dict[str, Any]] = None
    dispatch_count: int = 0
    last_known_location: Optional[Dict[str, float]] = None
    last_report: Optional[Dict[str, Any]] = None


class NotificationResultSchema(BaseModel):
    channel: str
    recipient: str
    status: str
    error: Optional[str] = None
    reference: Optional[str] = None


class NotificationReportSchema(BaseModel):
    """One dispatch outcome, in stable result order."""

    alert_id: Optional[str] = None
    results: List[NotificationResultSchema] = Field(default_factory=list)
    email_status: Optional[str] = None
    error: Optional[str] = None
    created_at: str
    summary: str


class AlertLogEntrySchema(BaseModel):
    timestamp: str
    level: str
    alert_id: Optional[str] = None
    message: str


class CallTestRequest(BaseModel):
    number: str = Field(min_length=1, description="Number to call, with country code")


# ===========================================
# Location Schemas
# ===========================================

class LocationShareRequest(BaseModel):
    """A location fix shared by the client."""

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


# ===========================================
# Contact Schemas
# ===========================================

class ContactSchema(BaseModel):
    """Emergency contact as stored under ``safe_contacts``."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class ContactListResponse(BaseModel):
    contacts: List[ContactSchema]
    count: int


# ===========================================
# Monitor Schemas
# ===========================================

class MonitorStatusResponse(BaseModel):
    """Automated detection status."""

    available: bool
    running: bool = False
    level: float = 0.0
    required_seconds: Optional[float] = None
    events_emitted: int = 0
    ticks: int = 0
    skipped_ticks: int = 0
    last_error: Optional[str] = None


# ===========================================
# Health
# ===========================================

class HealthResponse(BaseModel):
    """System health check response."""

    status: str = Field(description="Overall system status")
    version: str
    components: Dict[str, Any] = Field(default_factory=dict)
