"""
SafeWave - Call Relay Module

Server side of the call channel: accepts the relay wire contract and
places voice calls through a provider.

Components:
- router: POST /api/call endpoint
- models: wire contract schemas (shared with the HTTP call gateway)
- privacy: phone number validation and masking
- providers: voice provider implementations

PRIVACY NOTICE:
    Phone numbers are masked in every log line.
"""

from .models import CallRelayError, CallRelayRequest, CallRelayResponse, CallRelayResult
from .privacy import is_valid_contact_phone, is_valid_relay_phone, mask_phone_number

__all__ = [
    "CallRelayRequest",
    "CallRelayResponse",
    "CallRelayResult",
    "CallRelayError",
    "is_valid_contact_phone",
    "is_valid_relay_phone",
    "mask_phone_number",
]
