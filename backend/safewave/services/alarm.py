"""
SafeWave - Local Alarm

The siren is best-effort. Playback itself is owned by the client; on
the server side sounding the alarm records that it was requested so the
UI can pick it up.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Alarm(Protocol):
    """Protocol for the local alarm. Implementations must not block."""

    @abstractmethod
    def sound(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


class LoggingAlarm:
    """Alarm that records and logs activation."""

    def __init__(self):
        self.sounding = False
        self.sounded_at: Optional[datetime] = None
        self.activations = 0

    def sound(self) -> None:
        self.sounding = True
        self.sounded_at = datetime.now(timezone.utc)
        self.activations += 1
        logger.warning("Alarm sounded")

    def stop(self) -> None:
        if self.sounding:
            logger.info("Alarm stopped")
        self.sounding = False
