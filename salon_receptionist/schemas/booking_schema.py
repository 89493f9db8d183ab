"""Booking and availability data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class BookingRecord(BaseModel):
    """A complete booking as handed to the submission target.

    The start time is serialized as ISO-8601 with the business timezone
    offset, e.g. ``2026-10-20T16:00:00-04:00``.
    """

    service: str
    stylist: str
    start: datetime
    duration_minutes: int = 60
    name: str
    phone: str = Field(pattern=r"^\d{10}$")
    call_id: Optional[str] = None

    def to_payload(self) -> dict:
        """Webhook body with the timestamp as an offset-bearing ISO string."""
        payload = self.model_dump(mode="json")
        payload["start"] = self.start.isoformat()
        return payload


class BookingResponse(BaseModel):
    """Booking submission result."""
    success: bool
    booking_ref: Optional[str] = None
    message: str = ""
    created_at: Optional[datetime] = None


class CallAction(str, Enum):
    """What the telephony layer should do after speaking the reply."""

    LISTEN = "listen"
    HANGUP = "hangup"
    TRANSFER = "transfer"


class TurnReply(BaseModel):
    """The orchestrator's answer to one caller utterance."""
    text: str
    action: CallAction = CallAction.LISTEN
    transfer_to: Optional[str] = None
    state: str = ""
    booking_ref: Optional[str] = None
    audio_id: Optional[str] = None
