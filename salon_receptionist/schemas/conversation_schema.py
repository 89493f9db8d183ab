"""Schemas exchanged with the telephony layer while a turn is in flight."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from salon_receptionist.schemas.booking_schema import TurnReply


class Speaker(str, Enum):
    ASSISTANT = "assistant"
    CALLER = "caller"


class HoldReply(BaseModel):
    """Immediate answer to an utterance whose real reply is still being worked out."""

    token: str
    text: str
    audio_id: Optional[str] = None
    poll_after_sec: float = 1.0


class PollReply(BaseModel):
    """Answer to a poll: either the finished turn or another hold."""

    ready: bool
    reply: Optional[TurnReply] = None
    retry_after_sec: Optional[float] = None


class TranscriptTurn(BaseModel):
    """A single line of a call transcript."""

    speaker: Speaker
    text: str
    state: Optional[str] = None
