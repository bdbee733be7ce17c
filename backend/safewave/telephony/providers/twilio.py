"""
SafeWave - Twilio Voice Provider

Places relayed calls with the Twilio REST API. The Twilio client is
synchronous, so calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from xml.sax.saxutils import escape

from twilio.rest import Client as TwilioClient

from safewave.config import Settings
from safewave.core.exceptions import ConfigurationError
from safewave.telephony.privacy import mask_phone_number
from .base import PlacedCall, VoiceCallProvider

logger = logging.getLogger(__name__)


def build_twiml(say_text: str, voice: str = "alice") -> str:
    """Call instructions that speak ``say_text`` once."""
    return f'<Response><Say voice="{voice}">{escape(say_text)}</Say></Response>'


class TwilioVoiceProvider(VoiceCallProvider):
    """Twilio Programmable Voice."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[TwilioClient] = None,
    ):
        if not (account_sid and auth_token and from_number):
            raise ConfigurationError("Twilio not configured on server")
        self._from_number = from_number
        self._client = client or TwilioClient(account_sid, auth_token)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwilioVoiceProvider":
        return cls(
            account_sid=settings.twilio_sid,
            auth_token=settings.twilio_token,
            from_number=settings.twilio_from,
        )

    @property
    def name(self) -> str:
        return "twilio"

    async def place_call(self, to: str, say_text: str) -> PlacedCall:
        call = await asyncio.to_thread(
            self._client.calls.create,
            to=to,
            from_=self._from_number,
            twiml=build_twiml(say_text),
        )
        logger.info("Twilio call created for %s (status=%s)", mask_phone_number(to), call.status)
        return PlacedCall(sid=call.sid, status=call.status)
