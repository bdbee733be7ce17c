"""
SafeWave - Voice Providers

Provider-specific implementations for placing relayed calls.

Supported Providers:
- twilio: Twilio Programmable Voice
"""

from .base import PlacedCall, VoiceCallProvider
from .twilio import TwilioVoiceProvider

__all__ = ["PlacedCall", "VoiceCallProvider", "TwilioVoiceProvider"]
