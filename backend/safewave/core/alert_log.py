"""
SafeWave - Alert Log

Stores human-readable log entries and NotificationReports for the
operator. This is the only place partial dispatch failures surface after
the fact, so reports are kept verbatim.

Notes:
    - In-memory store is bounded to prevent memory issues
    - All data is ephemeral (lost on restart)
    - Newest entries are returned first, matching the log panel
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from threading import Lock
from typing import List, Optional, Protocol, runtime_checkable

from safewave.config import Settings
from safewave.core.types import AlertLogEntry, NotificationReport

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol
# =============================================================================

@runtime_checkable
class AlertLog(Protocol):
    """
    Protocol for alert log storage.

    Implementations must be thread-safe and handle bounded storage.
    """

    @abstractmethod
    async def record_entry(self, entry: AlertLogEntry) -> None:
        """Record a human-readable log line."""
        ...

    @abstractmethod
    async def record_report(self, report: NotificationReport) -> None:
        """Record a dispatch report."""
        ...

    @abstractmethod
    async def get_recent_entries(self, limit: int = 30) -> List[AlertLogEntry]:
        """Most recent log lines, newest first."""
        ...

    @abstractmethod
    async def get_recent_reports(self, limit: int = 10) -> List[NotificationReport]:
        """Most recent reports, newest first."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Clear all stored entries and reports."""
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================

class InMemoryAlertLog:
    """
    In-memory implementation of AlertLog.

    Entries and reports are kept in separate bounded lists so a burst of
    log lines never evicts a report.
    """

    def __init__(self, max_entries: int = 500, max_reports: int = 100):
        """
        Initialize the in-memory log.

        Args:
            max_entries: Maximum number of log lines to keep
            max_reports: Maximum number of reports to keep
        """
        self._max_entries = max_entries
        self._max_reports = max_reports

        self._lock = Lock()
        self._entries: List[AlertLogEntry] = []
        self._reports: List[NotificationReport] = []

    async def record_entry(self, entry: AlertLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._max_entries:
                excess = len(self._entries) - self._max_entries
                self._entries = self._entries[excess:]
                logger.debug("Trimmed %d old entries from alert log", excess)

    async def record_report(self, report: NotificationReport) -> None:
        with self._lock:
            self._reports.append(report)
            if len(self._reports) > self._max_reports:
                self._reports = self._reports[len(self._reports) - self._max_reports:]

    async def get_recent_entries(self, limit: int = 30) -> List[AlertLogEntry]:
        with self._lock:
            return list(reversed(self._entries[-limit:])) if limit > 0 else []

    async def get_recent_reports(self, limit: int = 10) -> List[NotificationReport]:
        with self._lock:
            return list(reversed(self._reports[-limit:])) if limit > 0 else []

    async def get_report(self, alert_id: str) -> Optional[NotificationReport]:
        with self._lock:
            for report in reversed(self._reports):
                if report.alert_id == alert_id:
                    return report
        return None

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._reports.clear()
        logger.info("Alert log cleared")

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def report_count(self) -> int:
        with self._lock:
            return len(self._reports)


def create_alert_log(settings: Settings) -> InMemoryAlertLog:
    """Create the alert log from settings."""
    return InMemoryAlertLog(max_entries=settings.alert_log_max_entries)
