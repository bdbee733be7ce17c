"""
SafeWave - Services Package

External collaborators of the alert core:
- Expression classifier and camera frames (automated detection)
- Location, contacts and the local alarm (dispatch inputs)
- Email and call gateways (notification channels)

Design Pattern:
    Each service defines a Protocol (interface) and one or more implementations.
    The app is configured with concrete implementations at startup,
    enabling dependency injection and easy testing/swapping of components.
"""

from .alarm import Alarm, LoggingAlarm
from .call_gateway import CallGateway, CallOutcome, DummyCallGateway, HttpCallGateway
from .classifier import ClassifierGateway, DeepFaceClassifierGateway, DummyClassifierGateway
from .contacts import ContactStore, InMemoryContactStore, JsonFileContactStore, validate_contact
from .email_gateway import DummyEmailGateway, EmailGateway, SmtpEmailGateway
from .frames import DummyFrameSource, FrameSource, OpenCVFrameSource
from .location import (
    LocationProvider,
    NullLocationProvider,
    SharedLocationProvider,
    StaticLocationProvider,
)

__all__ = [
    # Detection
    "ClassifierGateway",
    "DummyClassifierGateway",
    "DeepFaceClassifierGateway",
    "FrameSource",
    "DummyFrameSource",
    "OpenCVFrameSource",
    # Dispatch inputs
    "LocationProvider",
    "NullLocationProvider",
    "StaticLocationProvider",
    "SharedLocationProvider",
    "ContactStore",
    "InMemoryContactStore",
    "JsonFileContactStore",
    "validate_contact",
    "Alarm",
    "LoggingAlarm",
    # Channels
    "EmailGateway",
    "DummyEmailGateway",
    "SmtpEmailGateway",
    "CallGateway",
    "CallOutcome",
    "DummyCallGateway",
    "HttpCallGateway",
]
