"""
SafeWave - Notification Templates

Message wording shared by the email and call channels.
"""

from __future__ import annotations

from typing import Dict, Optional

from safewave.core.types import AlertContext

LOCATION_UNAVAILABLE = "Not available"


def format_timestamp(context: AlertContext) -> str:
    return context.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def format_location(context: AlertContext) -> str:
    """Coordinates as ``lat,lon`` or the literal "Not available"."""
    if context.coordinates is None:
        return LOCATION_UNAVAILABLE
    return context.coordinates.format()


def build_call_message(context: AlertContext) -> str:
    """
    Message spoken to each call recipient.

    Example: ``I need help. Location: 12.9716,77.5946``
    """
    return f"I need help. Location: {format_location(context)}"


def build_email_fields(context: AlertContext) -> Dict[str, str]:
    """
    Template fields for the batched alert email.

    Keys:
        from_name: Sender label shown to contacts
        message: Alert message
        lat / lon: Coordinates, each "Not available" without a fix
        location: Combined ``lat,lon`` or "Not available"
        time: Alert timestamp
    """
    coords = context.coordinates
    return {
        "from_name": context.sender_label,
        "message": context.message,
        "lat": str(coords.lat) if coords else LOCATION_UNAVAILABLE,
        "lon": str(coords.lon) if coords else LOCATION_UNAVAILABLE,
        "location": format_location(context),
        "time": format_timestamp(context),
    }


def render_email(fields: Dict[str, str]) -> tuple[str, str]:
    """
    Render template fields into an email (subject, plain-text body).
    """
    subject = f"[SafeWave] Emergency alert from {fields.get('from_name', 'A user')}"
    lines = [
        f"{fields.get('from_name', 'A user')} has triggered an emergency alert.",
        "",
        fields.get("message", ""),
        "",
        f"Location: {fields.get('location', LOCATION_UNAVAILABLE)}",
    ]
    if fields.get("location", LOCATION_UNAVAILABLE) != LOCATION_UNAVAILABLE:
        lines.append(
            f"Map: https://www.openstreetmap.org/?mlat={fields['lat']}&mlon={fields['lon']}#map=16/"
            f"{fields['lat']}/{fields['lon']}"
        )
    lines.extend([
        f"Time: {fields.get('time', 'unknown')}",
        "",
        "This is an automated alert. Please respond as soon as possible.",
    ])
    return subject, "\n".join(lines)


def build_relay_say_text(from_name: Optional[str], message: Optional[str]) -> str:
    """Text the voice provider speaks on a relayed call."""
    return (
        f"{from_name or 'A user'} has triggered an emergency. "
        f"{message or 'Please respond.'} This is an automated alert."
    )
