"""
Call-level facade used by the telephony layer.

``VoiceAssistant`` owns the session table, the pending-turn store, speech
synthesis and the turn orchestrator. A transport calls ``start_call`` once,
then ``submit_turn`` for every utterance; that returns a filler line and a
poll token right away while the turn runs in the background, and
``poll`` hands out the finished reply once it is ready.

Usage:
    assistant = VoiceAssistant.from_config(settings)
    greeting = await assistant.start_call("CA123")
    hold = await assistant.submit_turn("CA123", "a haircut with Cosmo")
    ... await asyncio.sleep(hold.poll_after_sec)
    result = assistant.poll(hold.token)
"""

import asyncio
import random
from typing import Callable, Optional

from salon_receptionist.config import AppConfig
from salon_receptionist.conversation.orchestrator import REPEAT_LINE, TurnOrchestrator
from salon_receptionist.conversation.session import SessionStore
from salon_receptionist.logging_context import get_call_logger, set_call_id
from salon_receptionist.schemas.booking_schema import CallAction, TurnReply
from salon_receptionist.schemas.conversation_schema import (
    HoldReply,
    PollReply,
    Speaker,
    TranscriptTurn,
)
from salon_receptionist.services.fallback import ConversationalFallback, OpenAIFallback
from salon_receptionist.services.pending import PendingTurnStore, PollStatus
from salon_receptionist.services.synthesis import (
    AudioStore,
    CartesiaSynthesizer,
    FillerCache,
    SpeechSynthesizer,
    synthesize_or_none,
)
from salon_receptionist.tools.availability import AvailabilityValidator
from salon_receptionist.tools.booking import (
    BookingSubmitter,
    InMemoryBookingSubmitter,
    WebhookBookingSubmitter,
)
from salon_receptionist.tools.calendar import CalendarProvider, GoogleCalendarProvider

logger = get_call_logger(__name__)


class VoiceAssistant:
    """Runs calls end to end on top of the turn orchestrator."""

    def __init__(
        self,
        config: AppConfig,
        orchestrator: TurnOrchestrator,
        synthesizer: Optional[SpeechSynthesizer] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.orchestrator = orchestrator
        self.synthesizer = synthesizer
        self.sessions = SessionStore(orchestrator.tz, config.timeouts.session_ttl_sec)
        self.pending = PendingTurnStore(config.timeouts.pending_turn_ttl_sec)
        self.audio = AudioStore()
        self.fillers = FillerCache(synthesizer, config.model.tts_attempts)
        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        calendar: Optional[CalendarProvider] = None,
        submitter: Optional[BookingSubmitter] = None,
        fallback: Optional[ConversationalFallback] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        clock: Optional[Callable] = None,
    ) -> "VoiceAssistant":
        """Wire up collaborators from configuration.

        Anything not passed explicitly is built from the environment when
        its credentials are present; otherwise it is left out (no calendar,
        no fallback, no synthesis) or replaced by the in-memory submitter.
        """
        integrations = config.integrations
        if calendar is None and integrations.google_service_account_json:
            calendar = GoogleCalendarProvider(
                integrations.google_service_account_json, integrations.calendar_id
            )
        if submitter is None:
            if integrations.booking_webhook_url:
                submitter = WebhookBookingSubmitter(
                    integrations.booking_webhook_url, integrations.booking_timeout_sec
                )
            else:
                logger.warning("BOOKING_WEBHOOK_URL not set, bookings are kept in memory")
                submitter = InMemoryBookingSubmitter()
        if fallback is None and config.model.openai_api_key:
            fallback = OpenAIFallback(config.model)
        if synthesizer is None and config.model.tts_api_key:
            synthesizer = CartesiaSynthesizer(config.model)

        validator = AvailabilityValidator(config.business, config.scheduling, calendar)
        orchestrator = TurnOrchestrator(config, validator, submitter, fallback, clock)
        return cls(config, orchestrator, synthesizer)

    # ------------------------------------------------------------------ #
    # Call lifecycle
    # ------------------------------------------------------------------ #

    async def start_call(self, call_id: str) -> TurnReply:
        """Create the session and return the greeting."""
        set_call_id(call_id)
        session = self.sessions.get_or_create(call_id, self.orchestrator.now())
        text = self.orchestrator.greeting()
        session.last_prompt = text
        session.history.append({"role": "assistant", "content": text})
        return await self._render(TurnReply(text=text, state=session.state_machine.current_state.value))

    async def handle_turn(self, call_id: str, utterance: str) -> TurnReply:
        """Run one turn to completion. Sessions end after commit or transfer."""
        set_call_id(call_id)
        session = self.sessions.get_or_create(call_id, self.orchestrator.now())
        async with session.lock:
            try:
                reply = await self.orchestrator.handle_turn(session, utterance)
            except Exception:
                logger.exception("Turn failed, asking the caller to repeat")
                session.last_prompt = session.last_prompt or REPEAT_LINE
                reply = TurnReply(
                    text=REPEAT_LINE, state=session.state_machine.current_state.value
                )
        if reply.action in (CallAction.HANGUP, CallAction.TRANSFER):
            self.sessions.end(call_id)
        return await self._render(reply)

    async def submit_turn(self, call_id: str, utterance: str) -> HoldReply:
        """Start a turn in the background and answer with a filler line."""
        set_call_id(call_id)
        token = self.pending.submit(self.handle_turn(call_id, utterance))
        filler = self.fillers.random_filler(self._rng)
        audio = self.fillers.get(filler)
        logger.debug("Turn submitted with token %s", token[:8])
        return HoldReply(
            token=token,
            text=filler,
            audio_id=self.audio.put(audio) if audio else None,
            poll_after_sec=self.config.timeouts.poll_interval_sec,
        )

    def poll(self, token: str) -> PollReply:
        """Check on a submitted turn."""
        result = self.pending.poll(token)
        if result.status is PollStatus.READY:
            return PollReply(ready=True, reply=result.reply)
        if result.status is PollStatus.PENDING:
            return PollReply(ready=False, retry_after_sec=self.config.timeouts.poll_interval_sec)
        # Failed or unknown tokens get the repeat line so the call keeps going
        audio = self.fillers.get(REPEAT_LINE)
        reply = TurnReply(text=REPEAT_LINE, audio_id=self.audio.put(audio) if audio else None)
        return PollReply(ready=True, reply=reply)

    def end_call(self, call_id: str) -> None:
        """Caller hung up."""
        self.sessions.end(call_id)

    # ------------------------------------------------------------------ #
    # Audio
    # ------------------------------------------------------------------ #

    async def warm_up(self) -> None:
        """Pre-render filler clips."""
        await self.fillers.warm()

    async def _render(self, reply: TurnReply) -> TurnReply:
        audio = await synthesize_or_none(
            self.synthesizer, reply.text, self.config.model.tts_attempts
        )
        if audio:
            reply.audio_id = self.audio.put(audio)
        return reply

    def get_audio(self, audio_id: str) -> Optional[bytes]:
        return self.audio.get(audio_id)

    # ------------------------------------------------------------------ #
    # Housekeeping
    # ------------------------------------------------------------------ #

    def transcript(self, call_id: str) -> list[TranscriptTurn]:
        """The call so far, oldest line first. Empty for unknown calls."""
        session = self.sessions.get(call_id)
        if session is None:
            return []
        return [
            TranscriptTurn(
                speaker=Speaker.CALLER if msg["role"] == "user" else Speaker.ASSISTANT,
                text=msg["content"],
            )
            for msg in session.history
        ]

    def sweep(self) -> dict[str, int]:
        """Expire stale turn tokens, unconfirmed bookings and idle sessions."""
        now = self.orchestrator.now()
        return {
            "turns": self.pending.sweep(),
            "bookings": self.sessions.expire_pending(
                now, self.config.timeouts.pending_booking_ttl_sec
            ),
            "sessions": self.sessions.sweep(now),
        }

    async def run_sweeper(self, stop: asyncio.Event) -> None:
        """Sweep periodically until ``stop`` is set."""
        interval = self.config.timeouts.sweep_interval_sec
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                self.sweep()
