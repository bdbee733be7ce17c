"""
SafeWave - Notification Dispatcher

Fans one alert out to every contact over email and voice call.

Channels:
    EMAIL: one batched request with every address. All-or-nothing: a
           failure is a single Failed result covering the batch.
    CALL:  one request per valid number, issued sequentially to bound
           load on the gateway. Each outcome is captured on its own, so a
           failing number never stops later numbers from being dialled.

Numbers that fail the contact phone rule are recorded as Invalid and never
reach the call gateway.

Report order:
    The email batch entry (if any) comes first, followed by one call entry
    per contact with a phone number, in contact order. Invalid entries keep
    their contact's position.

Failure policy:
    Every gateway exception is converted into a result entry here. The
    dispatcher never raises into its caller and never retries; retrying is
    left to the human operator.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from safewave.core.exceptions import SafeWaveError
from safewave.core.templates import build_call_message, build_email_fields
from safewave.core.types import (
    AlertContext,
    Channel,
    Contact,
    DeliveryStatus,
    NotificationReport,
    NotificationResult,
)
from safewave.services.call_gateway import CallGateway
from safewave.services.email_gateway import EmailGateway
from safewave.telephony.privacy import is_valid_contact_phone, mask_phone_number, strip_whitespace

logger = logging.getLogger(__name__)

INVALID_PHONE_ERROR = "Invalid phone format"


class NotificationDispatcher:
    """
    Multi-channel notifier for a single alert.

    Attributes:
        email_gateway: Batched email delivery
        call_gateway: Per-number call placement
    """

    def __init__(self, email_gateway: EmailGateway, call_gateway: CallGateway):
        self._email_gateway = email_gateway
        self._call_gateway = call_gateway

    @property
    def email_gateway(self) -> EmailGateway:
        return self._email_gateway

    @property
    def call_gateway(self) -> CallGateway:
        return self._call_gateway

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def dispatch(
        self,
        contacts: Sequence[Contact],
        context: AlertContext,
        alert_id: Optional[str] = None,
    ) -> NotificationReport:
        """
        Notify every contact and return the aggregated report.

        Args:
            contacts: Current contact list
            context: Message, coordinates and sender label
            alert_id: Session the report belongs to

        Returns:
            NotificationReport with all results in stable order
        """
        results: List[NotificationResult] = []

        email_result = await self._send_email(contacts, context)
        if email_result is not None:
            results.append(email_result)

        results.extend(await self._place_calls(contacts, context))

        report = NotificationReport(
            alert_id=alert_id,
            results=tuple(results),
            email_status=email_result.status if email_result else None,
        )
        logger.info(
            report.summary(),
            extra={"data": {"sent": report.sent_count, "failed": report.failed_count}},
        )
        return report

    async def send_test_call(self, number: str, context: AlertContext) -> NotificationResult:
        """Place a single call outside the alert flow."""
        if not is_valid_contact_phone(number):
            return NotificationResult(
                channel=Channel.CALL,
                recipient=number,
                status=DeliveryStatus.INVALID,
                error=INVALID_PHONE_ERROR,
            )
        return await self._call_one(strip_whitespace(number), "Test call from SafeWave", context.sender_label)

    # -------------------------------------------------------------------------
    # Email Channel
    # -------------------------------------------------------------------------

    @staticmethod
    def partition_emails(contacts: Sequence[Contact]) -> List[str]:
        addresses = []
        for c in contacts:
            if c.email is None:
                continue
            if not isinstance(c.email, str):
                logger.warning("Skipping non-text email for contact %r", c.name)
                continue
            if c.email.strip():
                addresses.append(c.email.strip())
        return addresses

    async def _send_email(
        self,
        contacts: Sequence[Contact],
        context: AlertContext,
    ) -> Optional[NotificationResult]:
        addresses = self.partition_emails(contacts)
        if not addresses:
            logger.info("No emails saved to notify")
            return None

        recipient = ",".join(addresses)
        fields = build_email_fields(context)

        try:
            await self._email_gateway.send(addresses, fields)
        except SafeWaveError as e:
            logger.error("Email send failed (%s): %s", e.code, e.message)
            return NotificationResult(
                channel=Channel.EMAIL,
                recipient=recipient,
                status=DeliveryStatus.FAILED,
                error=e.message,
            )
        except Exception as e:
            logger.error("Email send failed: %s", e, exc_info=True)
            return NotificationResult(
                channel=Channel.EMAIL,
                recipient=recipient,
                status=DeliveryStatus.FAILED,
                error=str(e) or type(e).__name__,
            )

        logger.info("Alert emailed to %d contact(s)", len(addresses))
        return NotificationResult(
            channel=Channel.EMAIL,
            recipient=recipient,
            status=DeliveryStatus.SENT,
        )

    # -------------------------------------------------------------------------
    # Call Channel
    # -------------------------------------------------------------------------

    async def _place_calls(
        self,
        contacts: Sequence[Contact],
        context: AlertContext,
    ) -> List[NotificationResult]:
        message = build_call_message(context)
        results: List[NotificationResult] = []

        phones = [c.phone for c in contacts if not _is_blank(c.phone)]
        if not phones:
            logger.info("No phone numbers saved to call")
            return results

        for phone in phones:
            if not is_valid_contact_phone(phone):
                logger.warning("Skipping invalid phone number %s", mask_phone_number(phone))
                results.append(NotificationResult(
                    channel=Channel.CALL,
                    recipient=str(phone),
                    status=DeliveryStatus.INVALID,
                    error=INVALID_PHONE_ERROR,
                ))
                continue

            # One call in flight at a time
            results.append(await self._call_one(strip_whitespace(phone), message, context.sender_label))

        return results

    async def _call_one(self, number: str, message: str, from_name: str) -> NotificationResult:
        masked = mask_phone_number(number)
        try:
            outcome = await self._call_gateway.place_call(number, message, from_name)
        except SafeWaveError as e:
            logger.error("Call to %s failed (%s): %s", masked, e.code, e.message)
            return NotificationResult(
                channel=Channel.CALL,
                recipient=number,
                status=DeliveryStatus.FAILED,
                error=e.message,
            )
        except Exception as e:
            logger.error("Call to %s failed: %s", masked, e, exc_info=True)
            return NotificationResult(
                channel=Channel.CALL,
                recipient=number,
                status=DeliveryStatus.FAILED,
                error=str(e) or type(e).__name__,
            )

        if not outcome.succeeded:
            logger.warning("Call to %s rejected: %s", masked, outcome.error)
            return NotificationResult(
                channel=Channel.CALL,
                recipient=number,
                status=DeliveryStatus.FAILED,
                error=outcome.error,
                reference=outcome.sid,
            )

        logger.info("Call to %s initiated (status=%s)", masked, outcome.status or "unknown")
        return NotificationResult(
            channel=Channel.CALL,
            recipient=number,
            status=DeliveryStatus.SENT,
            reference=outcome.sid,
        )


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
