"""
SafeWave - Alert Arbiter

Single authority over the lifecycle of one alert. Both the manual SOS
button and the automated distress detector feed this arbiter.

States:
    IDLE ──trigger──▶ ARMED ──countdown──▶ DISPATCHING ──done──▶ COOLDOWN ──▶ IDLE
                        │
                        └──cancel──▶ IDLE   (no side effects, no report)

Invariants:
    - At most one AlertSession exists. A trigger while not IDLE is a logged
      no-op, so the button and the detector firing together dispatch once.
    - cancel() is honored only while ARMED. Once DISPATCHING starts the
      pipeline runs to completion.
    - The countdown, the dispatch and the cooldown run in one asyncio.Task
      per session. Arming cancels any task left from a previous session.
    - State transitions happen without an intervening await, so the
      check-then-transition needs no lock on a single event loop.

Dispatch pipeline (on entering DISPATCHING):
    1. Location fix bounded by location_timeout_seconds; falls back to the
       last known fix, then to "location unavailable"
    2. Local alarm, best-effort
    3. Current contacts
    4. NotificationDispatcher
    5. Report stored in the alert log

Usage:
    arbiter = AlertArbiter.from_settings(settings, dispatcher, contacts, location, alarm, alert_log)

    session = await arbiter.trigger("manual")
    await arbiter.cancel()              # within the window: nothing is sent
    report = await arbiter.join()       # otherwise wait for the report
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from safewave.config import Settings
from safewave.core.alert_log import AlertLog
from safewave.core.dispatcher import NotificationDispatcher
from safewave.core.logging import LogContext
from safewave.core.types import (
    AlertContext,
    AlertLogEntry,
    AlertSession,
    AlertState,
    Channel,
    Coordinates,
    DeliveryStatus,
    NotificationReport,
    NotificationResult,
    SustainedDistress,
    TriggerSource,
)
from safewave.services.alarm import Alarm
from safewave.services.contacts import ContactStore
from safewave.services.location import LocationProvider, SharedLocationProvider
from safewave.telephony.privacy import mask_phone_number

logger = logging.getLogger(__name__)


class AlertArbiter:
    """
    Owns the alert state machine and everything that used to be ambient
    state: the current session, its timer task and the last known location.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        contact_store: ContactStore,
        location_provider: LocationProvider,
        alarm: Alarm,
        alert_log: Optional[AlertLog] = None,
        armed_window_seconds: float = 5.0,
        cooldown_seconds: float = 5.0,
        location_timeout_seconds: float = 10.0,
        sender_label: str = "SafeWave User",
        alert_message: str = "I need help. Please reach out as soon as possible.",
    ):
        """
        Initialize the arbiter.

        Args:
            dispatcher: Multi-channel notifier
            contact_store: Source of the current contact list
            location_provider: One-shot geolocation
            alarm: Local siren (best-effort)
            alert_log: Optional store for log lines and reports
            armed_window_seconds: Cancel window after a trigger
            cooldown_seconds: Suppression window after a dispatch
            location_timeout_seconds: Upper bound on the location fetch
            sender_label: Name shown to contacts
            alert_message: Message body sent to contacts
        """
        self._dispatcher = dispatcher
        self._contact_store = contact_store
        self._location_provider = location_provider
        self._alarm = alarm
        self._alert_log = alert_log

        self._armed_window = armed_window_seconds
        self._cooldown = cooldown_seconds
        self._location_timeout = location_timeout_seconds
        self._sender_label = sender_label
        self._alert_message = alert_message

        self._session: Optional[AlertSession] = None
        self._task: Optional[asyncio.Task] = None
        self._last_known_coordinates: Optional[Coordinates] = None
        self._last_report: Optional[NotificationReport] = None
        self._dispatch_count = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        dispatcher: NotificationDispatcher,
        contact_store: ContactStore,
        location_provider: LocationProvider,
        alarm: Alarm,
        alert_log: Optional[AlertLog] = None,
    ) -> "AlertArbiter":
        return cls(
            dispatcher=dispatcher,
            contact_store=contact_store,
            location_provider=location_provider,
            alarm=alarm,
            alert_log=alert_log,
            armed_window_seconds=settings.armed_window_seconds,
            cooldown_seconds=settings.cooldown_seconds,
            location_timeout_seconds=settings.location_timeout_seconds,
            sender_label=settings.sender_label,
            alert_message=settings.alert_message,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AlertState:
        return self._session.state if self._session is not None else AlertState.IDLE

    @property
    def session(self) -> Optional[AlertSession]:
        return self._session

    @property
    def last_report(self) -> Optional[NotificationReport]:
        return self._last_report

    @property
    def last_known_coordinates(self) -> Optional[Coordinates]:
        return self._last_known_coordinates

    @property
    def dispatch_count(self) -> int:
        """Number of completed dispatches since startup."""
        return self._dispatch_count

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    # -------------------------------------------------------------------------
    # Entry Points
    # -------------------------------------------------------------------------

    async def trigger(
        self,
        reason: str = "manual",
        source: TriggerSource = TriggerSource.MANUAL,
        score: Optional[float] = None,
    ) -> Optional[AlertSession]:
        """
        Arm a new alert.

        Returns:
            The new session, or None if an alert is already in progress
        """
        if self._session is not None:
            current = self._session
            await self._record(
                f"SOS trigger ignored ({reason}): alert already {current.state.value}",
                alert_id=current.id,
            )
            return None

        self._clear_task()

        session = AlertSession.create(reason=reason, source=source, score=score)
        session.armed_deadline = datetime.now(timezone.utc) + timedelta(seconds=self._armed_window)
        self._session = session
        self._task = asyncio.create_task(self._run_session(session), name=f"alert-{session.id[:8]}")

        await self._record(
            f"SOS initiated ({reason}): you have {self._armed_window:g} seconds to cancel",
            level="warning",
            alert_id=session.id,
        )
        return session

    async def on_sustained_distress(self, event: SustainedDistress) -> Optional[AlertSession]:
        """Automated detector entry point."""
        return await self.trigger(reason="emotion", source=TriggerSource.EMOTION, score=event.score)

    async def cancel(self) -> bool:
        """
        Cancel the armed alert.

        Returns:
            True if an armed alert was canceled, False otherwise
        """
        session = self._session
        if session is None or session.state != AlertState.ARMED:
            logger.info("Cancel ignored: state is %s", self.state.value)
            return False

        self._clear_task()
        self._session = None
        await self._record("SOS canceled by user", alert_id=session.id)
        return True

    async def share_location(self, coordinates: Coordinates) -> None:
        """Record a fix shared by the client."""
        self._last_known_coordinates = coordinates
        if isinstance(self._location_provider, SharedLocationProvider):
            self._location_provider.update(coordinates)
        await self._record(f"Location shared: {coordinates.lat:.5f}, {coordinates.lon:.5f}")

    async def send_test_call(self, number: str) -> NotificationResult:
        """Place one call outside the alert flow."""
        context = AlertContext(message="Test call", sender_label=self._sender_label)
        result = await self._dispatcher.send_test_call(number, context)
        outcome = "OK" if result.status == DeliveryStatus.SENT else (result.error or "Failed")
        await self._record(
            f"Test call result for {mask_phone_number(number)}: {outcome}",
            level="info" if result.status == DeliveryStatus.SENT else "error",
        )
        return result

    async def join(self) -> Optional[NotificationReport]:
        """
        Wait until the current session (including cooldown) is over.

        Returns:
            The most recent report, which is stale if the session was canceled
        """
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self._last_report

    async def shutdown(self) -> None:
        """Stop any running session without dispatching."""
        task = self._task
        self._clear_task()
        if task is not None:
            await asyncio.wait({task})
        self._session = None
        self._alarm.stop()

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "session": self._session.to_dict() if self._session else None,
            "dispatch_count": self._dispatch_count,
            "last_known_location": (
                {"lat": self._last_known_coordinates.lat, "lon": self._last_known_coordinates.lon}
                if self._last_known_coordinates else None
            ),
        }

    # -------------------------------------------------------------------------
    # Session Flow
    # -------------------------------------------------------------------------

    async def _run_session(self, session: AlertSession) -> None:
        with LogContext(alert_id=session.id):
            try:
                await asyncio.sleep(self._armed_window)

                session.state = AlertState.DISPATCHING
                self._last_report = await self._dispatch(session)

                session.state = AlertState.COOLDOWN
                session.cooldown_until = datetime.now(timezone.utc) + timedelta(seconds=self._cooldown)
                await asyncio.sleep(self._cooldown)
            except asyncio.CancelledError:
                logger.debug("Session task cancelled in state %s", session.state.value)
                raise
            finally:
                if self._session is session:
                    self._session = None
                    logger.info("Alert cycle finished, arbiter idle")

    async def _dispatch(self, session: AlertSession) -> NotificationReport:
        try:
            coordinates = await self._locate(session)
            self._sound_alarm()
            contacts = await self._contact_store.list_contacts()
            context = AlertContext(
                message=self._alert_message,
                coordinates=coordinates,
                sender_label=self._sender_label,
            )
            report = await self._dispatcher.dispatch(contacts, context, alert_id=session.id)
        except Exception as e:
            logger.error("Dispatch pipeline failed: %s", e, exc_info=True)
            report = NotificationReport(alert_id=session.id, error=str(e) or type(e).__name__)

        self._dispatch_count += 1
        if self._alert_log is not None:
            await self._alert_log.record_report(report)

        for result in report.results:
            if result.status != DeliveryStatus.SENT:
                recipient = (
                    mask_phone_number(result.recipient)
                    if result.channel == Channel.CALL else result.recipient
                )
                await self._record(
                    f"{result.channel.value.title()} to {recipient} {result.status.value}: "
                    f"{result.error or 'unknown error'}",
                    level="error",
                    alert_id=session.id,
                )

        failed = report.error is not None or (bool(report.results) and report.all_failed)
        await self._record(report.summary(), level="error" if failed else "info", alert_id=session.id)
        await self._record("SOS sequence completed", alert_id=session.id)
        return report

    async def _locate(self, session: AlertSession) -> Optional[Coordinates]:
        try:
            coordinates = await asyncio.wait_for(
                self._location_provider.get_current_position(self._location_timeout),
                timeout=self._location_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Location request timed out after %gs", self._location_timeout)
            coordinates = None
        except Exception as e:
            logger.warning("Location error: %s", e)
            coordinates = None

        if coordinates is not None:
            self._last_known_coordinates = coordinates
            return coordinates

        if self._last_known_coordinates is not None:
            await self._record(
                "Location unavailable, using last known fix",
                level="warning",
                alert_id=session.id,
            )
            return self._last_known_coordinates

        await self._record("Location unavailable", level="warning", alert_id=session.id)
        return None

    def _sound_alarm(self) -> None:
        try:
            self._alarm.sound()
        except Exception as e:
            logger.warning("Alarm failed to sound: %s", e)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _clear_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _record(self, message: str, level: str = "info", alert_id: Optional[str] = None) -> None:
        logger.log(getattr(logging, level.upper(), logging.INFO), message)
        if self._alert_log is not None:
            await self._alert_log.record_entry(
                AlertLogEntry(message=message, level=level, alert_id=alert_id)
            )
