"""
SafeWave - Structured Logging

JSON or human-readable log output with the current request and alert
attached to every record.

PRIVACY NOTICE:
    Recipient phone numbers and email addresses passed as structured
    ``data`` are masked before they are written. Free-text messages are
    the caller's responsibility (see telephony.privacy.mask_phone_number).
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# =============================================================================
# Context Variables
# =============================================================================

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
alert_id_var: ContextVar[Optional[str]] = ContextVar("alert_id", default=None)


# =============================================================================
# Masking Utilities
# =============================================================================

# Substrings of structured-data keys whose values identify a person
_RECIPIENT_KEYS = ("phone", "email", "recipient", "to", "number")
_SECRET_KEYS = ("password", "token", "secret", "sid")


def mask_alert_id(aid: Optional[str]) -> Optional[str]:
    """Shorten an alert id (uuid4 hex) to its first 8 characters."""
    if not aid:
        return None
    return aid[:8]


def _mask_value(value: Any) -> Any:
    if not isinstance(value, str):
        return "[REDACTED]"
    return f"***{value[-2:]}" if len(value) > 2 else "***"


def mask_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask recipient and credential fields, recursing into nested dicts.

    Strings keep their last two characters (``+919876543210`` becomes
    ``***10``); anything else under a sensitive key becomes ``[REDACTED]``.
    """
    masked: Dict[str, Any] = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(k in key_lower for k in _RECIPIENT_KEYS + _SECRET_KEYS):
            masked[key] = _mask_value(value)
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value
    return masked


def current_context() -> Dict[str, str]:
    """Request and alert fields for the record being formatted."""
    context = {}
    correlation_id = correlation_id_var.get()
    if correlation_id:
        context["correlation_id"] = correlation_id
    alert_id = alert_id_var.get()
    if alert_id:
        context["alert_id"] = mask_alert_id(alert_id)
    return context


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, timezone.utc)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Example:
        {"timestamp": "...Z", "level": "WARNING", "logger": "safewave.core.arbiter",
         "correlation_id": "9f1c2a7b03de", "alert_id": "3f2a9c1b",
         "message": "SOS initiated (manual): you have 5 seconds to cancel"}

    Records logged with ``extra={"data": {...}}`` carry a masked ``data`` field.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": _record_time(record).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
        }
        log_entry.update(current_context())
        log_entry["message"] = record.getMessage()

        data = getattr(record, "data", None)
        if data:
            log_entry["data"] = mask_sensitive_data(data)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``time | LEVEL | logger [req=..., alert=...] | message`` for development."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        parts = []
        if "correlation_id" in context:
            parts.append(f"req={context['correlation_id']}")
        if "alert_id" in context:
            parts.append(f"alert={context['alert_id']}")
        context_str = f" [{', '.join(parts)}]" if parts else ""

        timestamp = _record_time(record).strftime("%Y-%m-%d %H:%M:%S")
        message = f"{timestamp} | {record.levelname:<8} | {record.name}{context_str} | {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_structured_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines for production, human-readable otherwise
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Request-level logs from these libraries duplicate the gateway logs
    for noisy in ("uvicorn.access", "httpx", "twilio.http_client"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# =============================================================================
# Context Managers
# =============================================================================

class LogContext:
    """
    Bind a request and/or alert to every record logged inside the block.

    Usage:
        with LogContext(alert_id=session.id):
            logger.info("Dispatching alert")

    Previous values are restored on exit, so contexts nest.
    """

    def __init__(self, correlation_id: Optional[str] = None, alert_id: Optional[str] = None):
        self._values = [(correlation_id_var, correlation_id), (alert_id_var, alert_id)]
        self._tokens = []

    def __enter__(self) -> "LogContext":
        for var, value in self._values:
            if value:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
        return False
