"""
SafeWave - Distress Monitor

Wires automated detection into the arbiter:

    SignalSampler ──sample──▶ DistressAccumulator ──SustainedDistress──▶ AlertArbiter

A sensor failure only disables automated detection. The arbiter, and
with it the manual SOS path, is untouched.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from safewave.core.accumulator import DistressAccumulator
from safewave.core.arbiter import AlertArbiter
from safewave.core.exceptions import SensorError
from safewave.core.sampler import SignalSampler
from safewave.core.types import DistressSample

logger = logging.getLogger(__name__)


class DistressMonitor:
    """Starts and stops automated distress detection."""

    def __init__(
        self,
        sampler: SignalSampler,
        accumulator: DistressAccumulator,
        arbiter: AlertArbiter,
    ):
        self._sampler = sampler
        self._accumulator = accumulator
        self._arbiter = arbiter
        self.last_error: Optional[str] = None
        self.events_emitted = 0

    @property
    def running(self) -> bool:
        return self._sampler.running

    @property
    def accumulator(self) -> DistressAccumulator:
        return self._accumulator

    async def start(self) -> bool:
        """
        Begin monitoring.

        Returns:
            True if monitoring is running, False if the sensors failed
        """
        if self.running:
            return True

        self._accumulator.reset()
        try:
            await self._sampler.start(self.handle_sample)
        except SensorError as e:
            self.last_error = e.message
            logger.error("Automated detection disabled: %s", e.message)
            await self._sampler.stop()
            return False

        self.last_error = None
        return True

    async def stop(self) -> None:
        await self._sampler.stop()
        self._accumulator.reset()

    async def handle_sample(self, sample: Optional[DistressSample], now: float) -> None:
        """Feed one tick to the accumulator and forward any event."""
        event = self._accumulator.update(sample, timestamp=now)
        if event is None:
            return
        self.events_emitted += 1
        await self._arbiter.on_sustained_distress(event)

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "level": round(self._accumulator.level, 3),
            "required_seconds": self._accumulator.required_seconds,
            "events_emitted": self.events_emitted,
            "ticks": self._sampler.ticks,
            "skipped_ticks": self._sampler.skipped_ticks,
            "last_error": self.last_error,
        }
