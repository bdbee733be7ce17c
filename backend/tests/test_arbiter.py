"""
SafeWave - Alert Arbiter Tests

Tests for the alert lifecycle state machine.
These tests verify:
- Cancel inside the window sends nothing
- Triggers while an alert is in progress are ignored
- A full cycle produces exactly one report
- Location fallback and pipeline failures still yield a report

Run with: pytest tests/test_arbiter.py -v
"""

import asyncio
from typing import Optional

import pytest

from safewave.core.alert_log import InMemoryAlertLog
from safewave.core.arbiter import AlertArbiter
from safewave.core.dispatcher import NotificationDispatcher
from safewave.core.types import (
    AlertState,
    Channel,
    Coordinates,
    DeliveryStatus,
    SustainedDistress,
    TriggerSource,
)
from safewave.services.alarm import LoggingAlarm
from safewave.services.call_gateway import DummyCallGateway
from safewave.services.contacts import InMemoryContactStore
from safewave.services.email_gateway import DummyEmailGateway
from safewave.services.location import NullLocationProvider, SharedLocationProvider

from conftest import ARMED_WINDOW, COOLDOWN, LOCATION_TIMEOUT


class SlowLocationProvider:
    """Never answers within the timeout."""

    async def get_current_position(self, timeout_seconds: float) -> Optional[Coordinates]:
        await asyncio.sleep(10)
        return Coordinates(lat=0.0, lon=0.0)


class BrokenContactStore(InMemoryContactStore):
    async def list_contacts(self):
        raise RuntimeError("storage unreadable")


def make_arbiter(
    dispatcher, contact_store, location_provider, alarm=None, alert_log=None, cooldown=COOLDOWN
) -> AlertArbiter:
    return AlertArbiter(
        dispatcher=dispatcher,
        contact_store=contact_store,
        location_provider=location_provider,
        alarm=alarm or LoggingAlarm(),
        alert_log=alert_log,
        armed_window_seconds=ARMED_WINDOW,
        cooldown_seconds=cooldown,
        location_timeout_seconds=LOCATION_TIMEOUT,
    )


async def wait_for_state(arbiter: AlertArbiter, state: AlertState, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while arbiter.state != state:
        assert loop.time() < deadline, f"arbiter never reached {state.value}"
        await asyncio.sleep(0.005)


async def log_messages(alert_log: InMemoryAlertLog) -> list:
    entries = await alert_log.get_recent_entries(limit=100)
    return [e.message for e in reversed(entries)]


class TestTrigger:
    """Tests for trigger()."""

    @pytest.mark.asyncio
    async def test_trigger_arms_session(self, arbiter: AlertArbiter):
        session = await arbiter.trigger("manual")

        assert session is not None
        assert arbiter.state == AlertState.ARMED
        assert session.source == TriggerSource.MANUAL
        assert session.armed_deadline is not None
        await arbiter.shutdown()

    @pytest.mark.asyncio
    async def test_trigger_while_armed_is_ignored(self, arbiter: AlertArbiter, call_gateway: DummyCallGateway):
        first = await arbiter.trigger("manual")
        second = await arbiter.trigger("manual")

        assert first is not None
        assert second is None
        assert arbiter.session is first

        await arbiter.join()
        assert arbiter.dispatch_count == 1
        assert call_gateway.dialled_numbers == ["+919876543210"]

    @pytest.mark.asyncio
    async def test_trigger_during_cooldown_is_ignored(self, dispatcher, contact_store, alert_log: InMemoryAlertLog):
        arbiter = make_arbiter(dispatcher, contact_store, NullLocationProvider(), alert_log=alert_log, cooldown=0.5)
        await arbiter.trigger("manual")
        await wait_for_state(arbiter, AlertState.COOLDOWN)

        assert await arbiter.trigger("manual") is None

        await arbiter.join()
        assert arbiter.state == AlertState.IDLE
        assert alert_log.report_count == 1
        assert any("SOS trigger ignored" in m for m in await log_messages(alert_log))

    @pytest.mark.asyncio
    async def test_button_and_detector_together_dispatch_once(self, arbiter: AlertArbiter):
        event = SustainedDistress(score=0.9, label_scores={"fear": 0.9})

        results = await asyncio.gather(
            arbiter.trigger("manual"),
            arbiter.on_sustained_distress(event),
        )

        assert sum(1 for r in results if r is not None) == 1
        await arbiter.join()
        assert arbiter.dispatch_count == 1

    @pytest.mark.asyncio
    async def test_detector_trigger_records_score(self, arbiter: AlertArbiter):
        session = await arbiter.on_sustained_distress(SustainedDistress(score=0.8, label_scores={"sad": 0.8}))

        assert session.source == TriggerSource.EMOTION
        assert session.reason == "emotion"
        assert session.score == 0.8
        await arbiter.shutdown()

    @pytest.mark.asyncio
    async def test_new_alert_allowed_after_cycle(self, arbiter: AlertArbiter):
        await arbiter.trigger("manual")
        await arbiter.join()

        assert await arbiter.trigger("manual") is not None
        await arbiter.join()
        assert arbiter.dispatch_count == 2


class TestCancel:
    """Tests for cancel()."""

    @pytest.mark.asyncio
    async def test_cancel_while_armed_sends_nothing(
        self,
        arbiter: AlertArbiter,
        email_gateway: DummyEmailGateway,
        call_gateway: DummyCallGateway,
        alarm: LoggingAlarm,
        alert_log: InMemoryAlertLog,
    ):
        await arbiter.trigger("manual")

        assert await arbiter.cancel() is True
        assert arbiter.state == AlertState.IDLE

        await asyncio.sleep(ARMED_WINDOW * 2)
        assert arbiter.dispatch_count == 0
        assert email_gateway.batches == []
        assert call_gateway.calls == []
        assert alarm.activations == 0
        assert alert_log.report_count == 0
        assert "SOS canceled by user" in await log_messages(alert_log)

    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_noop(self, arbiter: AlertArbiter):
        assert await arbiter.cancel() is False
        assert arbiter.state == AlertState.IDLE

    @pytest.mark.asyncio
    async def test_cancel_after_dispatch_started_is_ignored(self, dispatcher, contact_store):
        arbiter = make_arbiter(dispatcher, contact_store, NullLocationProvider(), cooldown=0.5)
        await arbiter.trigger("manual")
        await wait_for_state(arbiter, AlertState.COOLDOWN)

        assert await arbiter.cancel() is False
        await arbiter.join()
        assert arbiter.dispatch_count == 1

    @pytest.mark.asyncio
    async def test_trigger_after_cancel_starts_fresh_session(self, arbiter: AlertArbiter):
        first = await arbiter.trigger("manual")
        await arbiter.cancel()
        second = await arbiter.trigger("manual")

        assert second is not None
        assert second.id != first.id
        report = await arbiter.join()
        assert report.alert_id == second.id
        assert arbiter.dispatch_count == 1


class TestEndToEnd:
    """Full trigger → dispatch → cooldown cycle."""

    @pytest.mark.asyncio
    async def test_one_email_and_one_phone_contact(
        self,
        arbiter: AlertArbiter,
        alarm: LoggingAlarm,
        alert_log: InMemoryAlertLog,
    ):
        session = await arbiter.trigger("manual")
        report = await arbiter.join()

        assert report is not None
        assert report.alert_id == session.id
        assert len(report.results) == 2
        assert [r.channel for r in report.results] == [Channel.EMAIL, Channel.CALL]
        assert all(r.status == DeliveryStatus.SENT for r in report.results)
        assert alarm.activations == 1
        assert arbiter.state == AlertState.IDLE
        assert await alert_log.get_report(session.id) is report

        messages = await log_messages(alert_log)
        assert messages[0].startswith("SOS initiated (manual)")
        assert messages[-1] == "SOS sequence completed"

    @pytest.mark.asyncio
    async def test_report_produced_when_every_channel_fails(self, contact_store, alert_log):
        dispatcher = NotificationDispatcher(
            DummyEmailGateway(fail_with=RuntimeError("smtp down")),
            DummyCallGateway(fail_numbers={"+919876543210"}),
        )
        arbiter = make_arbiter(dispatcher, contact_store, NullLocationProvider(), alert_log=alert_log)

        await arbiter.trigger("manual")
        report = await arbiter.join()

        assert len(report.results) == 2
        assert report.all_failed
        messages = await log_messages(alert_log)
        assert any(m.startswith("Email to asha@example.com failed") for m in messages)
        assert any(m.startswith("Call to ***10 failed") for m in messages)

    @pytest.mark.asyncio
    async def test_pipeline_error_still_yields_report(self, dispatcher, alert_log):
        arbiter = make_arbiter(dispatcher, BrokenContactStore(), NullLocationProvider(), alert_log=alert_log)

        session = await arbiter.trigger("manual")
        report = await arbiter.join()

        assert report.alert_id == session.id
        assert report.error == "storage unreadable"
        assert report.summary() == "Dispatch failed: storage unreadable"
        assert arbiter.state == AlertState.IDLE
        assert alert_log.report_count == 1


class TestLocation:
    """Tests for the location step of the pipeline."""

    @pytest.mark.asyncio
    async def test_location_timeout_dispatches_without_coordinates(
        self, dispatcher, contact_store, call_gateway: DummyCallGateway, alert_log
    ):
        arbiter = make_arbiter(dispatcher, contact_store, SlowLocationProvider(), alert_log=alert_log)

        await arbiter.trigger("manual")
        report = await arbiter.join()

        assert report.sent_count == 2
        assert call_gateway.calls[0]["message"] == "I need help. Location: Not available"
        assert "Location unavailable" in await log_messages(alert_log)

    @pytest.mark.asyncio
    async def test_falls_back_to_last_known_fix(
        self, dispatcher, contact_store, call_gateway: DummyCallGateway, alert_log
    ):
        arbiter = make_arbiter(dispatcher, contact_store, NullLocationProvider(), alert_log=alert_log)
        await arbiter.share_location(Coordinates(lat=1.5, lon=2.5))

        await arbiter.trigger("manual")
        await arbiter.join()

        assert call_gateway.calls[0]["message"] == "I need help. Location: 1.5,2.5"
        assert "Location unavailable, using last known fix" in await log_messages(alert_log)

    @pytest.mark.asyncio
    async def test_shared_fix_feeds_shared_provider(self, dispatcher, contact_store, call_gateway):
        provider = SharedLocationProvider()
        arbiter = make_arbiter(dispatcher, contact_store, provider)

        await arbiter.share_location(Coordinates(lat=-33.5, lon=151.25))
        await arbiter.trigger("manual")
        await arbiter.join()

        assert provider.latest == Coordinates(lat=-33.5, lon=151.25)
        assert call_gateway.calls[0]["message"].endswith("-33.5,151.25")

    @pytest.mark.asyncio
    async def test_fresh_fix_updates_last_known(self, arbiter: AlertArbiter, coordinates: Coordinates):
        await arbiter.trigger("manual")
        await arbiter.join()

        assert arbiter.last_known_coordinates == coordinates


class TestStatus:
    """Tests for status() and shutdown()."""

    @pytest.mark.asyncio
    async def test_status_reflects_session(self, arbiter: AlertArbiter):
        assert arbiter.status()["state"] == "idle"

        session = await arbiter.trigger("manual")
        status = arbiter.status()

        assert status["state"] == "armed"
        assert status["session"]["id"] == session.id
        await arbiter.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_aborts_armed_alert(self, arbiter: AlertArbiter, call_gateway: DummyCallGateway):
        await arbiter.trigger("manual")
        await arbiter.shutdown()

        await asyncio.sleep(ARMED_WINDOW * 2)
        assert arbiter.state == AlertState.IDLE
        assert call_gateway.calls == []

    @pytest.mark.asyncio
    async def test_send_test_call_is_logged(self, arbiter: AlertArbiter, alert_log: InMemoryAlertLog):
        result = await arbiter.send_test_call("+15550000001")

        assert result.status == DeliveryStatus.SENT
        assert arbiter.state == AlertState.IDLE
        assert "Test call result for ***01: OK" in await log_messages(alert_log)
