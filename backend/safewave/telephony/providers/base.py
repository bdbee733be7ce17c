"""
SafeWave - Voice Provider Base

Abstract base class for voice call provider implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlacedCall:
    """Provider acknowledgement for one outbound call."""
    sid: str
    status: Optional[str] = None


class VoiceCallProvider(ABC):
    """
    Abstract base class for voice providers.

    Implementations handle provider-specific:
    - Authentication
    - Call instructions (e.g. TwiML)
    - Mapping the provider's call resource to PlacedCall
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @abstractmethod
    async def place_call(self, to: str, say_text: str) -> PlacedCall:
        """
        Place an outbound call that speaks ``say_text``.

        Args:
            to: Destination number (already validated)
            say_text: Text to speak when the call is answered

        Returns:
            PlacedCall with the provider's call id

        Raises:
            Exception: Any provider error; the relay turns it into HTTP 500
        """
        ...
