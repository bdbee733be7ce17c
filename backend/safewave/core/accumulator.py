"""
SafeWave - Distress Accumulator

Leaky integrator that turns a noisy stream of per-frame expression scores
into a single SustainedDistress event.

Model:
    level ∈ [0, cap_accum] measures sustained time above threshold.

    Each tick with elapsed dt seconds:
        above threshold → level = min(cap_accum, level + dt)
        otherwise       → level = max(0, level - dt * decay_rate)

    When level reaches required_seconds the accumulator emits once and
    resets level to 0, so a new event needs required_seconds of fresh
    accumulation.

    combined_score is the max over the configured negative-affect labels.
    A missing sample (no face, classifier error) counts as a below-threshold
    tick.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from safewave.config import Settings
from safewave.core.exceptions import ConfigurationError
from safewave.core.types import DistressSample, LabelScores, SustainedDistress

logger = logging.getLogger(__name__)

DEFAULT_DISTRESS_LABELS = ("fear", "angry", "sad")


class DistressAccumulator:
    """
    Debounce state machine over a single continuous ``level``.

    Attributes:
        level: Current accumulated seconds above threshold
        last_sample_time: Timestamp of the previous tick, if any
    """

    def __init__(
        self,
        labels: Iterable[str] = DEFAULT_DISTRESS_LABELS,
        score_threshold: float = 0.65,
        required_seconds: float = 2.0,
        cap_accum: float = 4.0,
        decay_rate: float = 2.0,
        default_dt: float = 0.1,
    ):
        """
        Initialize the accumulator.

        Args:
            labels: Negative-affect labels combined by max
            score_threshold: Minimum combined score counted as distress
            required_seconds: Accumulated seconds needed to fire
            cap_accum: Upper bound on level (>= required_seconds)
            decay_rate: Decay multiplier for below-threshold ticks (> 1)
            default_dt: Elapsed time assumed when no previous timestamp exists

        Raises:
            ConfigurationError: If the tuning parameters are inconsistent
        """
        self._labels = tuple(labels)
        if not self._labels:
            raise ConfigurationError("At least one distress label is required")
        if required_seconds <= 0 or default_dt <= 0:
            raise ConfigurationError(
                "required_seconds and default_dt must be positive",
                details={"required_seconds": required_seconds, "default_dt": default_dt},
            )
        if cap_accum < required_seconds:
            raise ConfigurationError(
                "cap_accum must be >= required_seconds",
                details={"cap_accum": cap_accum, "required_seconds": required_seconds},
            )
        if decay_rate <= 1:
            raise ConfigurationError(
                "decay_rate must be > 1 so decay outpaces accumulation",
                details={"decay_rate": decay_rate},
            )

        self._score_threshold = score_threshold
        self._required_seconds = required_seconds
        self._cap_accum = cap_accum
        self._decay_rate = decay_rate
        self._default_dt = default_dt

        self.level: float = 0.0
        self.last_sample_time: Optional[float] = None
        self._fired_count = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "DistressAccumulator":
        return cls(
            labels=settings.distress_labels_list,
            score_threshold=settings.score_threshold,
            required_seconds=settings.required_seconds,
            cap_accum=settings.cap_accum_seconds,
            decay_rate=settings.decay_rate,
            default_dt=settings.default_dt_seconds,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def labels(self) -> tuple:
        return self._labels

    @property
    def score_threshold(self) -> float:
        return self._score_threshold

    @property
    def required_seconds(self) -> float:
        return self._required_seconds

    @property
    def fired_count(self) -> int:
        """Number of SustainedDistress events emitted so far."""
        return self._fired_count

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def combined_score(self, label_scores: LabelScores) -> float:
        """Max score over the configured labels; absent labels count as 0."""
        return max(float(label_scores.get(label, 0.0) or 0.0) for label in self._labels)

    def update(
        self,
        sample: Optional[DistressSample],
        timestamp: Optional[float] = None,
    ) -> Optional[SustainedDistress]:
        """
        Feed one tick into the integrator.

        Args:
            sample: Classifier output, or None for no face / classifier error
            timestamp: Tick time for None samples (ignored when sample is given)

        Returns:
            SustainedDistress if this tick completed a cycle, else None
        """
        now = sample.timestamp if sample is not None else timestamp
        dt = self._elapsed(now)
        if now is not None:
            self.last_sample_time = now

        score = self.combined_score(sample.label_scores) if sample is not None else 0.0

        if sample is not None and score >= self._score_threshold:
            self.level = min(self._cap_accum, self.level + dt)
        else:
            self.level = max(0.0, self.level - dt * self._decay_rate)

        if self.level >= self._required_seconds:
            self.level = 0.0
            self._fired_count += 1
            logger.info(
                "Sustained distress detected: score=%.2f (cycle %d)",
                score, self._fired_count,
            )
            return SustainedDistress(
                score=score,
                label_scores=dict(sample.label_scores),
                timestamp=now if now is not None else time.monotonic(),
            )

        return None

    def reset(self) -> None:
        """Clear accumulated level and timing (e.g. when monitoring restarts)."""
        self.level = 0.0
        self.last_sample_time = None

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _elapsed(self, now: Optional[float]) -> float:
        if now is None or self.last_sample_time is None:
            return self._default_dt
        dt = now - self.last_sample_time
        # Clock went backwards or duplicate tick: fall back to the default step
        return dt if dt > 0 else self._default_dt
