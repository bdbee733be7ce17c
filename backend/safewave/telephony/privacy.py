"""
SafeWave - Phone Number Utilities

Phone number validation and masking shared by the dispatcher, the contact
store and the call relay.

IMPORTANT:
    Raw phone numbers must NEVER be logged in cleartext.
    Use mask_phone_number() for every log line that names a recipient.
"""

import re
from typing import Optional

# Contact entry: optional leading +, 7-15 digits
CONTACT_PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")

# Relay forwarding: optional leading +, any number of digits
RELAY_PHONE_PATTERN = re.compile(r"^\+?\d+$")

_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"\D")


def strip_whitespace(number: str) -> str:
    """Remove every whitespace character from a phone number."""
    return _WHITESPACE.sub("", number)


def is_valid_contact_phone(number: Optional[str]) -> bool:
    """
    Validate a phone number against the contact-entry rule.

    Examples:
        "+91 98765 43210" → True
        "+11234567"       → True
        "123456"          → False (too short)
        "notanumber"      → False
    """
    if not number or not isinstance(number, str):
        return False
    return bool(CONTACT_PHONE_PATTERN.match(strip_whitespace(number)))


def is_valid_relay_phone(number: object) -> bool:
    """Validate a phone number against the looser relay rule."""
    if not isinstance(number, str):
        return False
    return bool(RELAY_PHONE_PATTERN.match(strip_whitespace(number)))


def mask_phone_number(number: Optional[str]) -> str:
    """
    Reduce a phone number to its last two digits for log lines.

    Examples:
        "+91 98765 43210" → ***10
        "7"               → ***
        None              → unknown
    """
    if not number:
        return "unknown"
    digits = _NON_DIGIT.sub("", str(number))
    return f"***{digits[-2:]}" if len(digits) >= 2 else "***"
