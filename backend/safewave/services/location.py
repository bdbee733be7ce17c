"""
SafeWave - Location Providers

One-shot geolocation with a timeout. A provider answers with a fix or
None; it never raises for "no fix available".

Implementations:
    - NullLocationProvider: Location is never available
    - StaticLocationProvider: Fixed configured coordinates
    - SharedLocationProvider: Last fix pushed by the client (POST /api/location)
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

from safewave.config import Settings
from safewave.core.exceptions import ConfigurationError
from safewave.core.types import Coordinates

logger = logging.getLogger(__name__)


@runtime_checkable
class LocationProvider(Protocol):
    """Protocol for geolocation sources."""

    @abstractmethod
    async def get_current_position(self, timeout_seconds: float) -> Optional[Coordinates]:
        """Return a fix, or None on timeout/denial."""
        ...


class NullLocationProvider:
    """Provider for environments without geolocation."""

    async def get_current_position(self, timeout_seconds: float) -> Optional[Coordinates]:
        return None


class StaticLocationProvider:
    """Always answers with the configured coordinates."""

    def __init__(self, coordinates: Coordinates):
        self._coordinates = coordinates

    async def get_current_position(self, timeout_seconds: float) -> Optional[Coordinates]:
        return self._coordinates


class SharedLocationProvider:
    """
    Holds the most recent fix shared by the client.

    ``get_current_position`` waits up to the timeout for a first fix if
    none has been shared yet, then answers with the latest one.
    """

    def __init__(self, initial: Optional[Coordinates] = None):
        self._latest = initial
        self._updated = asyncio.Event()
        if initial is not None:
            self._updated.set()

    @property
    def latest(self) -> Optional[Coordinates]:
        return self._latest

    def update(self, coordinates: Coordinates) -> None:
        self._latest = coordinates
        self._updated.set()
        logger.info("Location shared")

    async def get_current_position(self, timeout_seconds: float) -> Optional[Coordinates]:
        if self._latest is not None:
            return self._latest
        try:
            await asyncio.wait_for(self._updated.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            return None
        return self._latest


def create_location_provider(settings: Settings) -> LocationProvider:
    """Select the provider from ``settings.location_backend``."""
    backend = settings.location_backend.lower()
    if backend == "static":
        if settings.static_latitude is None or settings.static_longitude is None:
            raise ConfigurationError("static location backend needs STATIC_LATITUDE/STATIC_LONGITUDE")
        return StaticLocationProvider(
            Coordinates(lat=settings.static_latitude, lon=settings.static_longitude)
        )
    if backend == "shared":
        return SharedLocationProvider()
    if backend == "none":
        return NullLocationProvider()
    raise ConfigurationError(f"Unknown location_backend: {settings.location_backend}")
