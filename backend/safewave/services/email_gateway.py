"""
SafeWave - Email Gateway

Sends the batched alert email to every contact with an address.

Architecture:
    - Protocol defines the interface for all email gateway implementations
    - DummyEmailGateway: Records batches in memory for development/testing
    - SmtpEmailGateway: SMTP delivery with optional STARTTLS

Limitation:
    A send is all-or-nothing. SMTP gives no reliable per-address outcome
    for a single message, so callers treat a failure as covering the
    whole batch.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from abc import abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional, Protocol, runtime_checkable

from safewave.config import Settings
from safewave.core.exceptions import ConfigurationError, EmailDeliveryError
from safewave.core.templates import render_email

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class EmailGateway(Protocol):
    """
    Protocol for email gateways.

    Raises:
        EmailDeliveryError: The batch could not be delivered
        ConfigurationError: Gateway credentials are missing
    """

    @abstractmethod
    async def send(self, addresses: List[str], fields: Dict[str, str]) -> None:
        ...

    @property
    @abstractmethod
    def gateway_id(self) -> str:
        ...


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummyEmailGateway:
    """
    In-memory email gateway for development and testing.

    Args:
        fail_with: If set, every send raises this exception
    """

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.batches: List[Dict[str, object]] = []

    @property
    def gateway_id(self) -> str:
        return "dummy-email"

    async def send(self, addresses: List[str], fields: Dict[str, str]) -> None:
        self.batches.append({"addresses": list(addresses), "fields": dict(fields)})
        if self.fail_with is not None:
            raise self.fail_with


# =============================================================================
# SMTP Implementation
# =============================================================================

class SmtpEmailGateway:
    """Handles SMTP email sending with TLS."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender_email: str,
        use_tls: bool = True,
    ):
        """
        Initialize SMTP gateway.

        Args:
            host: SMTP server host
            port: SMTP server port
            username: Login user (empty to skip login)
            password: Login password
            sender_email: From address
            use_tls: Upgrade the connection with STARTTLS
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender_email = sender_email
        self.use_tls = use_tls

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpEmailGateway":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender_email=settings.smtp_sender_email,
            use_tls=settings.smtp_use_tls,
        )

    @property
    def gateway_id(self) -> str:
        return f"smtp:{self.host}:{self.port}"

    async def send(self, addresses: List[str], fields: Dict[str, str]) -> None:
        if not self.host or not self.sender_email:
            raise ConfigurationError("SMTP host and sender address must be configured")
        await asyncio.to_thread(self._send_sync, addresses, fields)

    def _send_sync(self, addresses: List[str], fields: Dict[str, str]) -> None:
        subject, body_text = render_email(fields)

        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender_email
        msg["To"] = ", ".join(addresses)
        msg["Subject"] = subject
        msg.attach(MIMEText(body_text, "plain"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e

        logger.info("Email sent successfully to %d recipient(s)", len(addresses))


# =============================================================================
# Factory
# =============================================================================

def create_email_gateway(settings: Settings) -> EmailGateway:
    """Select the email gateway from ``settings.email_backend``."""
    backend = settings.email_backend.lower()
    if backend == "smtp":
        logger.info("Using SmtpEmailGateway (host=%s)", settings.smtp_host or "<unset>")
        return SmtpEmailGateway.from_settings(settings)
    if backend == "dummy":
        return DummyEmailGateway()
    raise ConfigurationError(f"Unknown email_backend: {settings.email_backend}")
