"""
SafeWave - Error Types

Every error carries a stable ``code`` and the HTTP status the API layer
answers with.

Propagation policy:
    Components that own an external call catch these at their boundary and
    turn them into NotificationResult entries or log entries. Nothing here
    is allowed to escape into the AlertArbiter.
"""

from typing import Any, Dict, Optional


class SafeWaveError(Exception):
    """Root of the SafeWave error tree."""

    code: str = "UNKNOWN_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(SafeWaveError):
    """Missing or inconsistent configuration (e.g. gateway credentials)."""
    code = "CONFIGURATION_ERROR"
    status_code = 500


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(SafeWaveError):
    """Input validation error."""
    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidPhoneNumberError(ValidationError):
    """Phone number does not satisfy the format rule."""
    code = "INVALID_PHONE_NUMBER"


class InvalidContactError(ValidationError):
    """Contact has neither a usable email nor phone."""
    code = "INVALID_CONTACT"


# =============================================================================
# Transport Errors
# =============================================================================

class TransportError(SafeWaveError):
    """Network or gateway failure."""
    code = "TRANSPORT_ERROR"
    status_code = 502


class EmailDeliveryError(TransportError):
    """Email gateway rejected or failed the batch."""
    code = "EMAIL_DELIVERY_ERROR"


class CallDeliveryError(TransportError):
    """Call gateway failed to place a call."""
    code = "CALL_DELIVERY_ERROR"


# =============================================================================
# Sensor Errors
# =============================================================================

class SensorError(SafeWaveError):
    """Error in the automated detection sensors."""
    code = "SENSOR_ERROR"
    status_code = 503


class CameraUnavailableError(SensorError):
    """Camera could not be opened or was lost."""
    code = "CAMERA_UNAVAILABLE"


class ClassifierLoadError(SensorError):
    """Expression classifier could not be loaded."""
    code = "CLASSIFIER_LOAD_ERROR"
