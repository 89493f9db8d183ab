"""
Per-call session state and the keyed session table.

Everything one call accumulates lives on a single ``CallSession``: the
booking draft, the confirmation state machine, the phone sub-flow, the
pending booking and the small bits of context side questions rely on
(last resolved date, last calendar conflict). Keeping them together lets
invariants such as "a pending booking is always complete" be enforced in
one place.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Optional

from salon_receptionist.conversation.draft import BookingDraft, PendingBooking, Slot
from salon_receptionist.conversation.phone_flow import PhoneCollector
from salon_receptionist.conversation.state_machine import BookingStateMachine, TransitionTrigger

logger = logging.getLogger(__name__)


@dataclass
class CallSession:
    """State for one phone call."""

    call_id: str
    draft: BookingDraft
    created_at: datetime
    last_seen: datetime
    state_machine: BookingStateMachine = field(default_factory=BookingStateMachine)
    phone: PhoneCollector = field(default_factory=PhoneCollector)
    history: list[dict[str, str]] = field(default_factory=list)
    pending: Optional[PendingBooking] = None
    last_prompt: Optional[str] = None
    last_slot: Optional[Slot] = None
    last_resolved_date: Optional[date] = None
    conflict_date: Optional[date] = None
    change_requested: bool = False
    retry_offered: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def touch(self, now: datetime) -> None:
        self.last_seen = now

    def is_stale(self, now: datetime, ttl_sec: float) -> bool:
        return (now - self.last_seen).total_seconds() > ttl_sec


class SessionStore:
    """Sessions keyed by call identifier."""

    def __init__(self, tz: tzinfo, ttl_sec: float) -> None:
        self.tz = tz
        self.ttl_sec = ttl_sec
        self._sessions: dict[str, CallSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._sessions

    def get(self, call_id: str) -> Optional[CallSession]:
        return self._sessions.get(call_id)

    def get_or_create(self, call_id: str, now: datetime) -> CallSession:
        """Return the session for a call, creating it on the first utterance."""
        session = self._sessions.get(call_id)
        if session is None:
            session = CallSession(
                call_id=call_id,
                draft=BookingDraft(tz=self.tz),
                created_at=now,
                last_seen=now,
            )
            self._sessions[call_id] = session
            logger.info("Session created for call %s", call_id)
        return session

    def end(self, call_id: str) -> None:
        """Destroy a session after hangup, transfer or commit."""
        if self._sessions.pop(call_id, None) is not None:
            logger.info("Session ended for call %s", call_id)

    def sweep(self, now: datetime) -> int:
        """Drop sessions idle longer than the TTL. Returns how many were removed.

        Sessions mid-turn are skipped; their turn refreshes the idle clock.
        """
        stale = [
            cid for cid, s in self._sessions.items()
            if not s.lock.locked() and s.is_stale(now, self.ttl_sec)
        ]
        for call_id in stale:
            del self._sessions[call_id]
        if stale:
            logger.info("Swept %d idle sessions", len(stale))
        return len(stale)

    def expire_pending(self, now: datetime, ttl_sec: float) -> int:
        """Drop pending bookings left unconfirmed longer than ``ttl_sec``."""
        expired = 0
        for session in self._sessions.values():
            if session.lock.locked():
                continue
            if session.pending is not None and session.pending.is_expired(now, ttl_sec):
                session.pending = None
                session.state_machine.transition(TransitionTrigger.PENDING_EXPIRED)
                expired += 1
        if expired:
            logger.info("Expired %d unconfirmed pending bookings", expired)
        return expired
