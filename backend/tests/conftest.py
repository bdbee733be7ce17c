"""
SafeWave - Test Configuration and Fixtures

Shared fixtures for all test modules.
"""

import os
import sys
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

# Ensure backend package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from safewave.config import Settings
from safewave.core.accumulator import DistressAccumulator
from safewave.core.alert_log import InMemoryAlertLog
from safewave.core.arbiter import AlertArbiter
from safewave.core.dispatcher import NotificationDispatcher
from safewave.core.types import AlertContext, Contact, Coordinates
from safewave.services.alarm import LoggingAlarm
from safewave.services.call_gateway import DummyCallGateway
from safewave.services.contacts import InMemoryContactStore
from safewave.services.email_gateway import DummyEmailGateway
from safewave.services.location import StaticLocationProvider


# Short windows keep lifecycle tests fast
ARMED_WINDOW = 0.05
COOLDOWN = 0.05
LOCATION_TIMEOUT = 0.05


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests requiring external dependencies")


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """
    Create test settings with safe defaults.

    Every channel uses the in-memory dummy backend and the alert windows
    are shortened so a full SOS cycle takes a fraction of a second.
    """
    return Settings(
        app_env="testing",
        app_debug=True,
        app_log_level="WARNING",
        classifier_backend="dummy",
        sampler_interval_seconds=0.01,
        armed_window_seconds=ARMED_WINDOW,
        cooldown_seconds=COOLDOWN,
        location_timeout_seconds=LOCATION_TIMEOUT,
        location_backend="shared",
        contacts_path="",
        email_backend="dummy",
        call_backend="dummy",
        relay_allowed_origin="*",
        twilio_sid="",
        twilio_token="",
        twilio_from="",
    )


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def email_gateway() -> DummyEmailGateway:
    return DummyEmailGateway()


@pytest.fixture
def call_gateway() -> DummyCallGateway:
    return DummyCallGateway()


@pytest.fixture
def dispatcher(email_gateway: DummyEmailGateway, call_gateway: DummyCallGateway) -> NotificationDispatcher:
    """Dispatcher wired to recording gateways."""
    return NotificationDispatcher(email_gateway=email_gateway, call_gateway=call_gateway)


@pytest.fixture
def sample_contacts() -> List[Contact]:
    """One email-only contact and one phone-only contact."""
    return [
        Contact(name="Asha", email="asha@example.com"),
        Contact(name="Ravi", phone="+919876543210"),
    ]


@pytest.fixture
def contact_store(sample_contacts: List[Contact]) -> InMemoryContactStore:
    return InMemoryContactStore(sample_contacts)


@pytest.fixture
def coordinates() -> Coordinates:
    return Coordinates(lat=12.9716, lon=77.5946)


@pytest.fixture
def alert_context(coordinates: Coordinates) -> AlertContext:
    return AlertContext(
        message="I need help.",
        coordinates=coordinates,
        sender_label="Test User",
    )


@pytest.fixture
def alarm() -> LoggingAlarm:
    return LoggingAlarm()


@pytest.fixture
def alert_log() -> InMemoryAlertLog:
    return InMemoryAlertLog(max_entries=100, max_reports=10)


@pytest.fixture
def accumulator() -> DistressAccumulator:
    """
    Accumulator with a 0.5 s default step.

    Steps of 0.5 and 0.25 s are exact in binary floating point, so level
    arithmetic in tests compares exactly.
    """
    return DistressAccumulator(
        labels=("fear", "angry", "sad"),
        score_threshold=0.65,
        required_seconds=2.0,
        cap_accum=4.0,
        decay_rate=2.0,
        default_dt=0.5,
    )


# =============================================================================
# Arbiter Fixtures
# =============================================================================

@pytest.fixture
def arbiter(
    dispatcher: NotificationDispatcher,
    contact_store: InMemoryContactStore,
    coordinates: Coordinates,
    alarm: LoggingAlarm,
    alert_log: InMemoryAlertLog,
) -> AlertArbiter:
    """Arbiter with short windows and a fixed location."""
    return AlertArbiter(
        dispatcher=dispatcher,
        contact_store=contact_store,
        location_provider=StaticLocationProvider(coordinates),
        alarm=alarm,
        alert_log=alert_log,
        armed_window_seconds=ARMED_WINDOW,
        cooldown_seconds=COOLDOWN,
        location_timeout_seconds=LOCATION_TIMEOUT,
    )


# =============================================================================
# FastAPI App Fixture
# =============================================================================

@pytest.fixture
def app(test_settings: Settings):
    """Create a FastAPI app instance with dummy backends."""
    # Import here so sys.path is set first
    from main import create_app

    return create_app(test_settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app (runs the lifespan)."""
    with TestClient(app) as c:
        yield c
