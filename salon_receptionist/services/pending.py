"""
Short-lived result slots for turns that finish after the hold message.

The telephony layer needs an answer within its response deadline, so a
slow turn is started as an asyncio task and the caller is told to hold.
The client then polls with a one-time token until the result is ready.

Expiry is cooperative: ``sweep`` forgets tokens older than the TTL but
never cancels their tasks. A task finishing after its token was swept is
simply discarded.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

from salon_receptionist.schemas.booking_schema import TurnReply

logger = logging.getLogger(__name__)


class PollStatus(str, Enum):
    """Result of polling a token."""

    READY = "ready"
    PENDING = "pending"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PollResult:
    status: PollStatus
    reply: Optional[TurnReply] = None


@dataclass
class _PendingEntry:
    task: "asyncio.Task[TurnReply]"
    created_at: float


class PendingTurnStore:
    """Maps one-time tokens to in-flight turn tasks."""

    def __init__(self, ttl_sec: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, _PendingEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def submit(self, work: Coroutine[Any, Any, TurnReply]) -> str:
        """Start the work in the background and return its poll token."""
        token = uuid.uuid4().hex
        task = asyncio.create_task(work)
        task.add_done_callback(lambda t, token=token: self._on_done(token, t))
        self._entries[token] = _PendingEntry(task=task, created_at=self._clock())
        return token

    def _on_done(self, token: str, task: "asyncio.Task[TurnReply]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background turn %s failed: %s", token[:8], exc, exc_info=exc)
        elif token not in self._entries:
            logger.info("Discarding result for expired token %s", token[:8])

    def poll(self, token: str) -> PollResult:
        """Check a token. A ready or failed result is handed out only once."""
        entry = self._entries.get(token)
        if entry is None:
            return PollResult(status=PollStatus.UNKNOWN)
        if not entry.task.done():
            return PollResult(status=PollStatus.PENDING)

        del self._entries[token]
        if entry.task.cancelled() or entry.task.exception() is not None:
            return PollResult(status=PollStatus.FAILED)
        return PollResult(status=PollStatus.READY, reply=entry.task.result())

    def sweep(self) -> int:
        """Forget tokens older than the TTL without cancelling their work."""
        cutoff = self._clock() - self.ttl_sec
        expired = [tok for tok, entry in self._entries.items() if entry.created_at < cutoff]
        for token in expired:
            del self._entries[token]
        if expired:
            logger.info("Swept %d expired turn tokens", len(expired))
        return len(expired)
