"""
SafeWave - Core Package

Contains the detection engine, the alert orchestration and domain types:
- accumulator: leaky-integrator debounce over classifier scores
- sampler / monitor: periodic classification feeding the accumulator
- arbiter: alert lifecycle state machine
- dispatcher: multi-channel notification fan-out
- alert_log: log lines and reports for the operator

Only modules without service dependencies are re-exported here; import
the sampler, monitor, arbiter and dispatcher from their own modules.
"""

from .types import (
    AlertContext,
    AlertLogEntry,
    AlertSession,
    AlertState,
    Channel,
    Contact,
    Coordinates,
    DeliveryStatus,
    DistressSample,
    NotificationReport,
    NotificationResult,
    SustainedDistress,
    TriggerSource,
)
from .accumulator import DistressAccumulator
from .alert_log import AlertLog, InMemoryAlertLog, create_alert_log

__all__ = [
    "DistressAccumulator",
    "AlertLog",
    "InMemoryAlertLog",
    "create_alert_log",
    # Types
    "AlertContext",
    "AlertLogEntry",
    "AlertSession",
    "AlertState",
    "Channel",
    "Contact",
    "Coordinates",
    "DeliveryStatus",
    "DistressSample",
    "NotificationReport",
    "NotificationResult",
    "SustainedDistress",
    "TriggerSource",
]
