"""
SafeWave - Call Gateway

Places voice calls to emergency contacts by way of the call relay.

Architecture:
    - Protocol defines the interface for all call gateway implementations
    - DummyCallGateway: Records calls in memory for development/testing
    - HttpCallGateway: POSTs the relay wire contract with httpx

One gateway call places one call. The dispatcher decides ordering and
failure isolation; a gateway only reports what happened to its number.
"""

from __future__ import annotations

import logging
import uuid
from abc import abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Set, runtime_checkable

import httpx
from pydantic import ValidationError as SchemaValidationError

from safewave.config import Settings
from safewave.core.exceptions import CallDeliveryError, ConfigurationError
from safewave.telephony.models import CallRelayError, CallRelayRequest, CallRelayResponse
from safewave.telephony.privacy import mask_phone_number

logger = logging.getLogger(__name__)


# =============================================================================
# Result Type
# =============================================================================

@dataclass(frozen=True)
class CallOutcome:
    """What the relay reported for one number."""
    to: str
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class CallGateway(Protocol):
    """
    Protocol for voice call gateways.

    ``place_call`` returns a CallOutcome when the relay answered (the
    outcome may still carry a per-number error) and raises when the
    request itself failed.

    Raises:
        CallDeliveryError: Network failure or top-level relay error
        ConfigurationError: Gateway is not configured
    """

    @abstractmethod
    async def place_call(self, number: str, message: str, from_name: str) -> CallOutcome:
        ...

    @property
    @abstractmethod
    def gateway_id(self) -> str:
        ...


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummyCallGateway:
    """
    In-memory call gateway for development and testing.

    Args:
        fail_numbers: Numbers for which the request raises CallDeliveryError
        reject_numbers: Numbers the relay answers with a per-number error
    """

    def __init__(
        self,
        fail_numbers: Optional[Set[str]] = None,
        reject_numbers: Optional[Set[str]] = None,
    ):
        self.fail_numbers = set(fail_numbers or ())
        self.reject_numbers = set(reject_numbers or ())
        self.calls: List[Dict[str, str]] = []

    @property
    def gateway_id(self) -> str:
        return "dummy-call"

    async def place_call(self, number: str, message: str, from_name: str) -> CallOutcome:
        self.calls.append({"to": number, "message": message, "from_name": from_name})
        if number in self.fail_numbers:
            raise CallDeliveryError("Simulated call gateway failure", details={"status_code": 500})
        if number in self.reject_numbers:
            return CallOutcome(to=number, error="Invalid phone format")
        return CallOutcome(to=number, sid=f"CA{uuid.uuid4().hex[:32]}", status="queued")

    @property
    def dialled_numbers(self) -> List[str]:
        return [c["to"] for c in self.calls]


# =============================================================================
# HTTP Implementation
# =============================================================================

class HttpCallGateway:
    """
    Call gateway speaking the relay wire contract over HTTP.

    Each call is its own request with a single-entry ``to`` list, so a
    rejected number is reported on its own and never shares a failure
    with other recipients.
    """

    def __init__(
        self,
        relay_url: str,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        origin: str = "",
    ):
        """
        Initialize the HTTP call gateway.

        Args:
            relay_url: Full URL of the relay's POST endpoint
            timeout_seconds: Per-request timeout
            client: Optional preconfigured client (tests inject a MockTransport)
            origin: Origin header sent with each request, matched by the relay's
                RELAY_ALLOWED_ORIGIN check. Empty sends no header.
        """
        if not relay_url:
            raise ConfigurationError("call_relay_url is not configured")
        self._relay_url = relay_url
        self._timeout = timeout_seconds
        self._client = client
        self._headers = {"Origin": origin} if origin else {}

    @property
    def gateway_id(self) -> str:
        return f"http-call:{self._relay_url}"

    async def place_call(self, number: str, message: str, from_name: str) -> CallOutcome:
        payload = CallRelayRequest(to=[number], message=message, from_name=from_name)

        try:
            if self._client is not None:
                response = await self._client.post(
                    self._relay_url,
                    json=payload.model_dump(),
                    headers=self._headers,
                    timeout=self._timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        self._relay_url, json=payload.model_dump(), headers=self._headers
                    )
        except httpx.HTTPError as e:
            logger.warning("Call request to %s failed: %s", mask_phone_number(number), e)
            raise CallDeliveryError(f"Call request failed: {e}") from e

        body = self._parse_json(response)

        if response.status_code >= 400:
            error = self._error_message(body, response.status_code)
            if response.status_code == 403:
                logger.warning(
                    "Call relay rejected our origin. Set CALL_CLIENT_ORIGIN to match "
                    "RELAY_ALLOWED_ORIGIN on the relay host."
                )
            raise CallDeliveryError(error, details={"status_code": response.status_code})

        try:
            parsed = CallRelayResponse.model_validate(body or {})
        except SchemaValidationError as e:
            raise CallDeliveryError(f"Malformed relay response: {e.error_count()} error(s)") from e

        if not parsed.ok:
            raise CallDeliveryError("Relay reported ok=false")

        for result in parsed.results:
            if result.to == number or len(parsed.results) == 1:
                return CallOutcome(
                    to=number,
                    sid=result.sid,
                    status=result.status,
                    error=result.error,
                )

        raise CallDeliveryError("Relay response did not include this number")

    @staticmethod
    def _parse_json(response: httpx.Response) -> Optional[dict]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    @staticmethod
    def _error_message(body: Optional[dict], status_code: int) -> str:
        if body is not None:
            try:
                return CallRelayError.model_validate(body).error
            except SchemaValidationError:
                pass
        return f"HTTP {status_code}"


# =============================================================================
# Factory
# =============================================================================

def create_call_gateway(settings: Settings) -> CallGateway:
    """Select the call gateway from ``settings.call_backend``."""
    backend = settings.call_backend.lower()
    if backend == "http":
        logger.info("Using HttpCallGateway (relay=%s)", settings.call_relay_url)
        return HttpCallGateway(
            relay_url=settings.call_relay_url,
            timeout_seconds=settings.call_request_timeout_seconds,
            origin=settings.call_client_origin,
        )
    if backend == "dummy":
        return DummyCallGateway()
    raise ConfigurationError(f"Unknown call_backend: {settings.call_backend}")
