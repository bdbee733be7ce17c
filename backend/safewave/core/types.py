"""
SafeWave - Core Domain Types

Internal type definitions shared by the detection engine, the alert arbiter
and the notification dispatcher.

Design Notes:
- These types are the "lingua franca" between core components.
- API layer converts these to/from Pydantic schemas for external communication.
- Results and reports are frozen: once a dispatch produces them they are
  only read (logged, stored, serialized).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, NewType, Optional, Tuple


# =============================================================================
# Type Aliases
# =============================================================================

AlertId = NewType("AlertId", str)
"""Unique identifier for an alert session. Opaque string (UUID4 hex)."""

LabelScores = Mapping[str, float]
"""Classifier output: expression label → probability in [0, 1]."""


# =============================================================================
# Enums
# =============================================================================

class AlertState(str, Enum):
    """Lifecycle state of the alert arbiter."""
    IDLE = "idle"
    ARMED = "armed"
    DISPATCHING = "dispatching"
    COOLDOWN = "cooldown"


class TriggerSource(str, Enum):
    """Where a trigger came from."""
    MANUAL = "manual"
    EMOTION = "emotion"


class Channel(str, Enum):
    """Notification channel."""
    EMAIL = "email"
    CALL = "call"


class DeliveryStatus(str, Enum):
    """Outcome of one notification attempt."""
    SENT = "sent"
    FAILED = "failed"
    INVALID = "invalid"


# =============================================================================
# Contacts & Location
# =============================================================================

@dataclass(frozen=True)
class Contact:
    """An emergency contact. At least one of email/phone is present."""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Contact":
        return cls(
            name=str(data.get("name") or ""),
            email=_text_field(data.get("email")),
            phone=_text_field(data.get("phone")),
        )


def _text_field(value: Any) -> Optional[str]:
    # Integer phone numbers become strings, other non-string values are dropped
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value or None
    return None


@dataclass(frozen=True)
class Coordinates:
    """A geolocation fix."""
    lat: float
    lon: float

    def format(self) -> str:
        return f"{self.lat},{self.lon}"


# =============================================================================
# Detection
# =============================================================================

@dataclass(frozen=True)
class DistressSample:
    """
    One classifier output for a video frame.

    A tick with no face or a classifier failure is represented by ``None``
    rather than by a sample.
    """
    timestamp: float
    label_scores: Dict[str, float]


@dataclass(frozen=True)
class SustainedDistress:
    """Emitted once by the accumulator when distress has been sustained."""
    score: float
    label_scores: Dict[str, float]
    timestamp: float = field(default_factory=time.monotonic)


# =============================================================================
# Alert Session
# =============================================================================

@dataclass
class AlertSession:
    """
    The single logical alert owned by the arbiter.

    Mutated by the arbiter as it moves through its states; the API layer
    only reads snapshots via ``to_dict``.
    """
    id: AlertId
    reason: str
    source: TriggerSource = TriggerSource.MANUAL
    score: Optional[float] = None
    state: AlertState = AlertState.ARMED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    armed_deadline: Optional[datetime] = None
    cooldown_until: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        reason: str,
        source: TriggerSource = TriggerSource.MANUAL,
        score: Optional[float] = None,
    ) -> "AlertSession":
        return cls(id=AlertId(uuid.uuid4().hex), reason=reason, source=source, score=score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reason": self.reason,
            "source": self.source.value,
            "score": self.score,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "armed_deadline": self.armed_deadline.isoformat() if self.armed_deadline else None,
            "cooldown_until": self.cooldown_until.isoformat() if self.cooldown_until else None,
        }


@dataclass(frozen=True)
class AlertContext:
    """Everything the dispatcher needs to word a notification."""
    message: str
    coordinates: Optional[Coordinates] = None
    sender_label: str = "SafeWave User"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Notification Results
# =============================================================================

@dataclass(frozen=True)
class NotificationResult:
    """Outcome of notifying one recipient (or one email batch) on one channel."""
    channel: Channel
    recipient: str
    status: DeliveryStatus
    error: Optional[str] = None
    reference: Optional[str] = None  # provider id, e.g. a call SID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel.value,
            "recipient": self.recipient,
            "status": self.status.value,
            "error": self.error,
            "reference": self.reference,
        }


@dataclass(frozen=True)
class NotificationReport:
    """
    Aggregated outcome of one dispatch.

    Attributes:
        alert_id: Session that produced the report
        results: Results in stable input order (Invalid entries included)
        email_status: Overall email batch outcome, None if nobody had email
        error: Dispatch-level failure message, if the pipeline itself failed
    """
    alert_id: Optional[str]
    results: Tuple[NotificationResult, ...] = ()
    email_status: Optional[DeliveryStatus] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def by_channel(self, channel: Channel) -> List[NotificationResult]:
        return [r for r in self.results if r.channel == channel]

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.results if r.status == DeliveryStatus.SENT)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if r.status != DeliveryStatus.SENT)

    @property
    def all_failed(self) -> bool:
        return self.sent_count == 0

    def summary(self) -> str:
        """One-line human-readable summary for the alert log."""
        if self.error:
            return f"Dispatch failed: {self.error}"
        if not self.results:
            return "No contacts to notify"
        email = self.email_status.value if self.email_status else "none"
        calls = self.by_channel(Channel.CALL)
        calls_sent = sum(1 for r in calls if r.status == DeliveryStatus.SENT)
        return (
            f"Dispatch complete: email={email}, "
            f"calls={calls_sent}/{len(calls)} sent, "
            f"{self.failed_count} failed or invalid"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "results": [r.to_dict() for r in self.results],
            "email_status": self.email_status.value if self.email_status else None,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "summary": self.summary(),
        }


# =============================================================================
# Alert Log Entries
# =============================================================================

@dataclass(frozen=True)
class AlertLogEntry:
    """A human-readable line for the log panel."""
    message: str
    level: str = "info"
    alert_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "alert_id": self.alert_id,
            "message": self.message,
        }
