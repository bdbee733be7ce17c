"""
SafeWave - Signal Sampler

Pulls one expression classification per tick from the camera and the
classifier, and hands the result (or None) to a callback.

Behavior:
    - Fixed cadence (interval_seconds, default 1.0 s)
    - At most one classification in flight; a tick that finds the previous
      call still running is skipped
    - No face, an unreadable frame and classifier exceptions all become None
    - The frame source is opened on start and released on every exit path
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from safewave.core.types import DistressSample
from safewave.services.classifier import ClassifierGateway
from safewave.services.frames import FrameSource

logger = logging.getLogger(__name__)

SampleCallback = Callable[[Optional[DistressSample], float], Awaitable[None]]
"""Receives the sample (or None) and the tick time."""


class SignalSampler:
    """
    Periodic, non-overlapping classifier polling.

    Attributes:
        classifier: Expression classifier gateway
        frame_source: Camera, exclusively owned while running
        interval_seconds: Tick period
    """

    def __init__(
        self,
        classifier: ClassifierGateway,
        frame_source: FrameSource,
        interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._classifier = classifier
        self._frame_source = frame_source
        self._interval = interval_seconds
        self._clock = clock

        self._task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self.ticks = 0
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def classifier(self) -> ClassifierGateway:
        return self._classifier

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, on_sample: SampleCallback) -> None:
        """
        Open the camera and begin ticking.

        Raises:
            SensorError: The camera could not be opened
        """
        if self.running:
            return

        await self._frame_source.open()
        self._task = asyncio.create_task(self._run(on_sample), name="signal-sampler")
        logger.info(
            "SignalSampler started: classifier=%s, interval=%.2fs",
            self._classifier.model_id,
            self._interval,
        )

    async def stop(self) -> None:
        """Stop ticking and release the camera."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.wait({task})
        # The loop's finally releases the camera; this covers a failed start
        await self._frame_source.close()
        logger.info("SignalSampler stopped after %d ticks (%d skipped)", self.ticks, self.skipped_ticks)

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    async def sample_once(self) -> Optional[DistressSample]:
        """
        Take one classification.

        Returns:
            DistressSample, or None for no frame / no face / classifier error
        """
        try:
            frame = await self._frame_source.read()
            if frame is None:
                return None
            scores = await self._classifier.detect(frame)
        except Exception as e:
            logger.warning("Emotion detect error: %s", e)
            return None

        if not scores:
            return None
        return DistressSample(timestamp=self._clock(), label_scores=dict(scores))

    async def _run(self, on_sample: SampleCallback) -> None:
        try:
            while True:
                self.ticks += 1
                if self._in_flight is not None and not self._in_flight.done():
                    self.skipped_ticks += 1
                    logger.debug("Classifier still busy, skipping tick %d", self.ticks)
                else:
                    self._in_flight = asyncio.create_task(self._sample_and_emit(on_sample))
                await asyncio.sleep(self._interval)
        finally:
            in_flight, self._in_flight = self._in_flight, None
            if in_flight is not None and not in_flight.done():
                in_flight.cancel()
                await asyncio.wait({in_flight})
            await self._frame_source.close()

    async def _sample_and_emit(self, on_sample: SampleCallback) -> None:
        sample = await self.sample_once()
        try:
            await on_sample(sample, self._clock())
        except Exception:
            logger.exception("Sample handler failed")
