"""
SafeWave - Call Relay Data Models

Pydantic models for the call relay wire contract. The HTTP call gateway
uses the same models to validate relay responses, so both ends share one
schema.

Request:   {"to": [str], "message": str, "from_name": str}
Success:   {"ok": true, "results": [{"to", "sid"?, "status"?, "error"?}]}
Failure:   {"error": str} with HTTP 400 / 403 / 500
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CallRelayRequest(BaseModel):
    """Request body for POST /api/call."""

    model_config = ConfigDict(extra="ignore")

    # Non-list and non-string entries are reported per entry by the relay
    to: Any = Field(default_factory=list, description="Phone numbers to call")
    message: Optional[str] = Field(default="", description="Alert message to speak")
    from_name: Optional[str] = Field(default="", description="Who triggered the alert")


class CallRelayResult(BaseModel):
    """Outcome for a single number."""

    model_config = ConfigDict(extra="ignore")

    to: Any = None
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class CallRelayResponse(BaseModel):
    """Successful relay response."""

    model_config = ConfigDict(extra="ignore")

    ok: bool = True
    results: List[CallRelayResult] = Field(default_factory=list)


class CallRelayError(BaseModel):
    """Top-level relay failure body."""

    model_config = ConfigDict(extra="ignore")

    error: str
