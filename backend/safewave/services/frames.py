"""
SafeWave - Frame Sources

Camera access for automated detection. A frame source is opened when
monitoring starts and closed when it stops; the sampler is its only user.

Implementations:
    - DummyFrameSource: Yields placeholder frames (no camera needed)
    - OpenCVFrameSource: Local webcam through cv2.VideoCapture
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

from safewave.config import Settings
from safewave.core.exceptions import CameraUnavailableError

logger = logging.getLogger(__name__)


@runtime_checkable
class FrameSource(Protocol):
    """Protocol for video frame sources."""

    @abstractmethod
    async def open(self) -> None:
        """Acquire the device. Raises CameraUnavailableError."""
        ...

    @abstractmethod
    async def read(self) -> Optional[Any]:
        """Grab the latest frame, or None if none is ready."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the device. Safe to call more than once."""
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...


class DummyFrameSource:
    """
    Placeholder frame source for development and testing.

    Args:
        fail_open: Raise CameraUnavailableError from open()
    """

    def __init__(self, fail_open: bool = False):
        self._fail_open = fail_open
        self._open = False
        self.frames_read = 0
        self.open_count = 0
        self.close_count = 0

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        if self._fail_open:
            raise CameraUnavailableError("Could not access webcam")
        self._open = True
        self.open_count += 1

    async def read(self) -> Optional[Any]:
        if not self._open:
            return None
        self.frames_read += 1
        return {"frame": self.frames_read}

    async def close(self) -> None:
        if self._open:
            self.close_count += 1
        self._open = False


class OpenCVFrameSource:
    """
    Webcam frame source backed by OpenCV.

    Requires the ``vision`` extra (opencv-python-headless). Blocking
    capture calls run in a worker thread.
    """

    def __init__(self, camera_index: int = 0):
        self._camera_index = camera_index
        self._capture = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    async def open(self) -> None:
        try:
            import cv2
        except ImportError as e:
            raise CameraUnavailableError(
                "OpenCVFrameSource requires 'opencv-python-headless'. "
                "Install with: pip install safewave[vision]"
            ) from e

        capture = await asyncio.to_thread(cv2.VideoCapture, self._camera_index)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(f"Could not open camera {self._camera_index}")
        self._capture = capture
        logger.info("Camera %d opened", self._camera_index)

    async def read(self) -> Optional[Any]:
        if self._capture is None:
            return None
        ok, frame = await asyncio.to_thread(self._capture.read)
        return frame if ok else None

    async def close(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            await asyncio.to_thread(capture.release)
            logger.info("Camera %d released", self._camera_index)


def create_frame_source(settings: Settings) -> FrameSource:
    """OpenCV camera for the deepface backend, placeholder frames otherwise."""
    if settings.classifier_backend.lower() == "deepface":
        return OpenCVFrameSource(camera_index=settings.camera_index)
    return DummyFrameSource()
