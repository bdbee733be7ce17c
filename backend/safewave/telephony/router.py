"""
SafeWave - Call Relay Endpoint

POST /api/call: places one voice call per number and reports a result per
entry. Runs server side because the provider credentials must not reach
the client.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaValidationError

from safewave.config import Settings, get_settings
from safewave.core.templates import build_relay_say_text
from .models import CallRelayRequest, CallRelayResponse, CallRelayResult
from .privacy import is_valid_relay_phone, mask_phone_number, strip_whitespace
from .providers import TwilioVoiceProvider, VoiceCallProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["call-relay"])

INVALID_PHONE_ERROR = "Invalid phone format"


# =============================================================================
# Dependencies
# =============================================================================

def get_relay_settings(request: Request) -> Settings:
    """Settings the app was built with, falling back to the environment."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_voice_provider(request: Request) -> Optional[VoiceCallProvider]:
    """Configured voice provider, or None when credentials are missing."""
    return getattr(request.app.state, "voice_provider", None)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# =============================================================================
# Endpoint
# =============================================================================

@router.post(
    "/call",
    summary="Relay emergency voice calls",
    description="Place one voice call per number, speaking the alert message.",
)
async def relay_call(
    request: Request,
    settings: Settings = Depends(get_relay_settings),
    provider: Optional[VoiceCallProvider] = Depends(get_voice_provider),
) -> JSONResponse:
    """
    Relay a call request to the voice provider.

    Failure modes:
    - 403 when the Origin header does not match RELAY_ALLOWED_ORIGIN
    - 400 when ``to`` is missing, not a list or empty
    - 500 when the provider is not configured or raises
    """
    allowed_origin = settings.relay_allowed_origin
    if allowed_origin != "*" and request.headers.get("origin") != allowed_origin:
        logger.warning("Call relay rejected origin %r", request.headers.get("origin"))
        return _error(403, "Origin not allowed")

    try:
        body = await request.json()
        payload = CallRelayRequest.model_validate(body if isinstance(body, dict) else {})
    except (ValueError, SchemaValidationError) as e:
        logger.warning("Invalid call relay request: %s", e)
        return _error(400, "Invalid request body")

    recipients = payload.to
    if not isinstance(recipients, list) or not recipients:
        return _error(400, "No recipients")

    if provider is None:
        logger.error("Call relay invoked but the voice provider is not configured")
        return _error(500, "Twilio not configured on server")

    say_text = build_relay_say_text(payload.from_name, payload.message)
    results: List[CallRelayResult] = []

    try:
        for entry in recipients:
            if not is_valid_relay_phone(entry):
                results.append(CallRelayResult(to=entry, error=INVALID_PHONE_ERROR))
                continue

            placed = await provider.place_call(strip_whitespace(entry), say_text)
            results.append(CallRelayResult(to=entry, sid=placed.sid, status=placed.status))
    except Exception as e:
        logger.error("Voice provider %s failed: %s", provider.name, e)
        return _error(500, str(e) or e.__class__.__name__)

    logger.info(
        "Call relay placed %d of %d calls (%s)",
        sum(1 for r in results if r.succeeded),
        len(results),
        ", ".join(mask_phone_number(r.to) for r in results if isinstance(r.to, str)),
    )

    response = CallRelayResponse(ok=True, results=results)
    return JSONResponse(content=response.model_dump(exclude_none=True))


def build_voice_provider(settings: Settings) -> Optional[VoiceCallProvider]:
    """Create the Twilio provider when all three credentials are set."""
    if not settings.twilio_configured:
        logger.info("Twilio credentials not set; call relay will answer 500")
        return None

    return TwilioVoiceProvider.from_settings(settings)
