"""
SafeWave - Expression Classifier Gateway

Turns a video frame into expression label scores.

Architecture:
    - Protocol defines the interface for all classifier implementations
    - DummyClassifierGateway: Scripted scores for development/testing
    - DeepFaceClassifierGateway: DeepFace emotion model (vision extra)

Output contract:
    ``detect`` returns ``{label: score}`` with scores in [0, 1], or None
    when no face was found. It may raise on transient errors; the sampler
    treats that the same as None.
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union, runtime_checkable

from safewave.config import Settings
from safewave.core.exceptions import ClassifierLoadError, ConfigurationError

logger = logging.getLogger(__name__)

ScriptStep = Union[Optional[Dict[str, float]], Exception]


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class ClassifierGateway(Protocol):
    """Protocol for facial-expression classifiers."""

    @abstractmethod
    async def detect(self, frame: Any) -> Optional[Dict[str, float]]:
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier for the underlying model (for logging/tracking)."""
        ...


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummyClassifierGateway:
    """
    Scripted classifier for development and testing.

    Each ``detect`` call consumes the next script step: a score mapping,
    None (no face), or an exception to raise. When the script runs out the
    classifier reports a calm neutral face.
    """

    def __init__(self, script: Iterable[ScriptStep] = (), latency_seconds: float = 0.0):
        self._script: List[ScriptStep] = list(script)
        self._latency = latency_seconds
        self.call_count = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def model_id(self) -> str:
        return "dummy-expressions"

    async def detect(self, frame: Any) -> Optional[Dict[str, float]]:
        self.call_count += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._latency:
                await asyncio.sleep(self._latency)
            if not self._script:
                return {"neutral": 0.9, "happy": 0.05, "sad": 0.05}
            step = self._script.pop(0)
            if isinstance(step, Exception):
                raise step
            return step
        finally:
            self.in_flight -= 1


# =============================================================================
# DeepFace Implementation
# =============================================================================

class DeepFaceClassifierGateway:
    """
    Emotion classifier backed by DeepFace.

    Requires the ``vision`` extra. DeepFace reports emotion percentages
    (0-100); they are scaled to [0, 1]. Its labels are angry, disgust,
    fear, happy, sad, surprise, neutral.
    """

    def __init__(self, detector_backend: str = "opencv"):
        self._detector_backend = detector_backend
        try:
            from deepface import DeepFace
        except ImportError as e:
            raise ClassifierLoadError(
                "DeepFaceClassifierGateway requires 'deepface'. "
                "Install with: pip install safewave[vision]"
            ) from e
        self._deepface = DeepFace
        logger.info("DeepFace classifier ready (detector=%s)", detector_backend)

    @property
    def model_id(self) -> str:
        return f"deepface-{self._detector_backend}"

    async def detect(self, frame: Any) -> Optional[Dict[str, float]]:
        results = await asyncio.to_thread(
            self._deepface.analyze,
            frame,
            actions=["emotion"],
            enforce_detection=False,
            detector_backend=self._detector_backend,
        )
        results = results if isinstance(results, list) else [results]
        faces = [r for r in results if r and r.get("face_confidence", 1.0) > 0]
        if not faces:
            return None
        emotions = faces[0].get("emotion") or {}
        return {label: float(value) / 100.0 for label, value in emotions.items()}


# =============================================================================
# Factory
# =============================================================================

def create_classifier(settings: Settings) -> ClassifierGateway:
    """
    Select the classifier from ``settings.classifier_backend``.

    Raises:
        ClassifierLoadError: The vision dependencies are missing
    """
    backend = settings.classifier_backend.lower()
    if backend == "deepface":
        return DeepFaceClassifierGateway()
    if backend == "dummy":
        return DummyClassifierGateway()
    raise ConfigurationError(f"Unknown classifier_backend: {settings.classifier_backend}")
