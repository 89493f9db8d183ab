"""
Turn orchestrator: decides what the assistant says after each utterance.

Per utterance the orchestrator resolves any date/time reference, extracts
slot values, and then routes in priority order:

    empty utterance      -> repeat the last question
    side questions       -> "what day is that?", "what times are open?"
    pending booking      -> confirm / decline / implicit correction
    failed submission    -> retry or transfer
    phone sub-flow       -> collect and confirm digits
    otherwise            -> merge, validate, confirm or ask the next field

The conversational fallback is consulted only when a turn added nothing
to the draft; its output is sanitized, checked by the guardrails and
reconciled so it can never overwrite a field the draft already holds.
"""

import re
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from salon_receptionist.config import AppConfig
from salon_receptionist.conversation.date_resolver import (
    REASON_IN_PAST,
    DateTimeResolution,
    ResolutionKind,
    has_forward_intent,
    resolve_datetime,
)
from salon_receptionist.conversation.draft import (
    DraftPatch,
    PendingBooking,
    Slot,
    reconcile_fallback_action,
)
from salon_receptionist.conversation.guardrails import GuardrailPipeline, sanitize_spoken
from salon_receptionist.conversation.phone_flow import PhoneStep
from salon_receptionist.conversation.session import CallSession
from salon_receptionist.conversation.slot_extractor import SlotExtraction, extract_slots
from salon_receptionist.conversation.speech import (
    Confirmation,
    asks_availability,
    asks_what_date,
    classify_confirmation,
    clean_speech,
    is_empty_utterance,
    mentioned_field,
    wants_human,
)
from salon_receptionist.conversation.state_machine import BookingState, TransitionTrigger
from salon_receptionist.logging_context import get_call_logger, set_call_id
from salon_receptionist.prompts.prompt_templates import build_draft_context
from salon_receptionist.prompts.system_prompts import build_system_prompt
from salon_receptionist.schemas.booking_schema import CallAction, TurnReply
from salon_receptionist.services.fallback import ConversationalFallback, FallbackError
from salon_receptionist.tools.availability import (
    AvailabilityStatus,
    AvailabilityValidator,
    open_days_phrase,
)
from salon_receptionist.tools.booking import BookingSubmissionError, BookingSubmitter
from salon_receptionist.utils import (
    format_clock_for_speech,
    format_date_for_speech,
    format_datetime_for_speech,
)

logger = get_call_logger(__name__)

GREETING = "Thanks for calling {salon}, this is {agent}. How can I help you today?"
REPEAT_LINE = "Sorry, could you say that again?"
NEXT_WEEK_QUESTION = "What day next week were you looking for?"
CONFIRM_TEMPLATE = "Just to confirm: a {service} with {stylist} on {pretty}, correct?"
CORRECTION_TEMPLATE = "Got it, updating that to {pretty}. Is that correct?"
COMMIT_TEMPLATE = "Perfect {name}. You're all set for {pretty}."
SUBMIT_FAILED = (
    "Sorry, I couldn't save that appointment right now. "
    "Do you want to try again, or should I connect you to the salon?"
)
DECLINED = "No problem. What should I change? The day, the time, or the stylist?"
WHAT_DATE_TEMPLATE = "That would be {pretty}."
NO_DATE_YET = "We haven't picked a day yet. What day works best for you?"
TRANSFER_LINE = "Okay, I'll connect you to the salon now."
NO_TRANSFER_LINE = "Sorry, I can't connect you right now, but I can finish the booking for you."
CLOSED_DAY_TEMPLATE = "Sorry, we're closed on {closed}s. What day {open_days} works for you?"
OUTSIDE_HOURS_TEMPLATE = (
    "Sorry, we're only open {open} to {close}, and the appointment has to finish by closing. "
    "What time works for you?"
)
CONFLICT_TEMPLATE = "Sorry, {pretty} is already taken. What other time works for you?"
IN_PAST_LINE = "That time has already passed. What day and time work for you?"
SLOTS_TEMPLATE = "On {day} I have {times} open. Which works for you?"
NO_SLOTS_TEMPLATE = "Sorry, I don't have anything open on {day}. Is there another day that works?"
WHICH_DAY_LINE = "Which day would you like me to check?"
GOODBYE_LINE = "Thanks for calling. Goodbye."

_RETRY_RE = re.compile(r"\b(?:try again|again|retry|one more time)\b")
_CONNECT_RE = re.compile(r"\b(?:connect|transfer|put me through)\b")


def _join_times(times: list[datetime]) -> str:
    spoken = [format_clock_for_speech(t.hour, t.minute) for t in times]
    if len(spoken) == 1:
        return spoken[0]
    return ", ".join(spoken[:-1]) + f" or {spoken[-1]}"


class TurnOrchestrator:
    """Drives one call's booking dialogue, one utterance at a time."""

    def __init__(
        self,
        config: AppConfig,
        validator: AvailabilityValidator,
        submitter: BookingSubmitter,
        fallback: Optional[ConversationalFallback] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.validator = validator
        self.submitter = submitter
        self.fallback = fallback
        self.guardrails = GuardrailPipeline()
        self.tz = ZoneInfo(config.business.timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))

    @property
    def stylists(self) -> tuple[str, ...]:
        return self.config.business.stylists

    def now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def greeting(self) -> str:
        return GREETING.format(salon=self.config.business.name, agent=self.config.agent_name)

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    async def handle_turn(self, session: CallSession, utterance: str) -> TurnReply:
        """Produce the reply to one caller utterance."""
        set_call_id(session.call_id)
        now = self.now()
        session.touch(now)
        if not is_empty_utterance(utterance):
            session.history.append({"role": "user", "content": utterance})

        reply = await self._route(session, utterance or "", now)

        session.history.append({"role": "assistant", "content": reply.text})
        reply.state = session.state_machine.current_state.value
        logger.info(
            "Turn handled: state=%s action=%s",
            reply.state, reply.action.value,
        )
        return reply

    # ------------------------------------------------------------------ #
    # Reply helpers
    # ------------------------------------------------------------------ #

    def _say(self, session: CallSession, text: str, slot: Optional[Slot] = None) -> TurnReply:
        session.last_prompt = text
        session.last_slot = slot
        return TurnReply(text=text)

    def _ask_next(self, session: CallSession) -> TurnReply:
        defn = session.draft.next_missing_slot()
        if defn is None:
            return self._say(session, REPEAT_LINE)
        if defn.slot is Slot.PHONE and not session.phone.active:
            session.phone.start()
        return self._say(session, session.draft.question_for(defn, self.stylists), defn.slot)

    def _confirmation_line(self, session: CallSession) -> str:
        record = session.pending.record
        return CONFIRM_TEMPLATE.format(
            service=record.service,
            stylist=record.stylist,
            pretty=format_datetime_for_speech(record.start.astimezone(self.tz)),
        )

    def _open_pending(self, session: CallSession, now: datetime) -> None:
        session.pending = PendingBooking(
            record=session.draft.to_record(call_id=session.call_id), created_at=now
        )

    def _transfer(self, session: CallSession) -> TurnReply:
        number = self.config.business.transfer_phone
        session.state_machine.transition(TransitionTrigger.CALL_TRANSFERRED)
        session.pending = None
        logger.info("Transferring call to the salon")
        return TurnReply(text=TRANSFER_LINE, action=CallAction.TRANSFER, transfer_to=number)

    def _can_transfer(self, session: CallSession) -> bool:
        return bool(self.config.business.transfer_phone) and session.state_machine.can(
            TransitionTrigger.CALL_TRANSFERRED
        )

    def _unavailable_line(self, status: AvailabilityStatus, when: Optional[datetime]) -> str:
        biz = self.config.business
        if status is AvailabilityStatus.CLOSED_DAY:
            return CLOSED_DAY_TEMPLATE.format(
                closed=self.validator.closed_day_name,
                open_days=open_days_phrase(biz.closed_weekday),
            )
        if status is AvailabilityStatus.OUTSIDE_HOURS:
            return OUTSIDE_HOURS_TEMPLATE.format(
                open=format_clock_for_speech(biz.open_hour, 0),
                close=format_clock_for_speech(biz.close_hour % 24, 0),
            )
        return CONFLICT_TEMPLATE.format(pretty=format_datetime_for_speech(when))

    def _apply_unavailable(
        self, session: CallSession, status: AvailabilityStatus, when: Optional[datetime]
    ) -> TurnReply:
        """Clear the rejected half of the datetime and explain why."""
        line = self._unavailable_line(status, when)
        if status is AvailabilityStatus.CLOSED_DAY:
            session.draft.clear_date()
            return self._say(session, line, Slot.DATETIME)
        session.draft.clear_time()
        if status is AvailabilityStatus.CONFLICT and when is not None:
            session.conflict_date = when.date()
        return self._say(session, line, Slot.DATETIME)

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #

    async def _route(self, session: CallSession, utterance: str, now: datetime) -> TurnReply:
        sm = session.state_machine
        if sm.is_terminal():
            return TurnReply(text=GOODBYE_LINE, action=CallAction.HANGUP)

        if is_empty_utterance(utterance):
            return self._say(session, session.last_prompt or REPEAT_LINE, session.last_slot)

        if session.pending is not None and session.pending.is_expired(
            now, self.config.timeouts.pending_booking_ttl_sec
        ):
            logger.info("Pending booking expired before confirmation")
            session.pending = None
            sm.transition(TransitionTrigger.PENDING_EXPIRED)

        anchor = None
        if has_forward_intent(utterance):
            anchor = session.last_resolved_date or session.draft.date
        resolution = resolve_datetime(
            utterance, now, anchor, self.config.scheduling.bare_hour_pm_max
        )
        phone_context = session.phone.active or session.last_slot is Slot.PHONE
        extraction = extract_slots(
            utterance,
            self.stylists,
            expecting_name=session.last_slot is Slot.NAME and not phone_context,
            phone_context=phone_context,
        )

        if resolution.kind is ResolutionKind.AMBIGUOUS:
            return self._say(session, NEXT_WEEK_QUESTION, Slot.DATETIME)

        if asks_what_date(utterance):
            return self._answer_what_date(session, resolution)

        if asks_availability(utterance):
            return await self._answer_availability(session, resolution, now)

        escalate = any(
            v.severity == "escalate" for v in self.guardrails.check_user_input(utterance)
        )
        if escalate and extraction.is_empty and not resolution.has_date \
                and not resolution.has_time and self._can_transfer(session):
            return self._transfer(session)

        patch = self._build_patch(extraction, resolution)

        if sm.current_state is BookingState.AWAITING_CONFIRMATION:
            return await self._handle_pending(session, utterance, patch, extraction, now)

        if session.retry_offered:
            reply = await self._handle_retry_offer(session, utterance, now)
            if reply is not None:
                return reply

        if session.change_requested and patch.is_empty:
            field_name = mentioned_field(utterance)
            if field_name:
                session.change_requested = False
                return self._clear_and_ask(session, field_name)

        return await self._collect(session, utterance, patch, extraction, resolution, now)

    def _build_patch(self, extraction: SlotExtraction, resolution: DateTimeResolution) -> DraftPatch:
        return DraftPatch(
            service=extraction.service,
            stylist=extraction.stylist,
            name=extraction.name,
            date=resolution.date,
            time=resolution.time,
        )

    def _clear_and_ask(self, session: CallSession, field_name: str) -> TurnReply:
        if field_name == "phone":
            session.draft.clear("phone")
            return self._say(session, session.phone.start().line, Slot.PHONE)
        session.draft.clear(field_name)
        return self._ask_next(session)

    # ------------------------------------------------------------------ #
    # Side questions
    # ------------------------------------------------------------------ #

    def _answer_what_date(self, session: CallSession, resolution: DateTimeResolution) -> TurnReply:
        remembered = session.last_resolved_date or session.draft.date or resolution.date
        if remembered is None:
            return self._say(session, NO_DATE_YET, Slot.DATETIME)
        if session.draft.when is not None and session.draft.date == remembered:
            pretty = format_datetime_for_speech(session.draft.when)
        else:
            pretty = format_date_for_speech(remembered)
        # last_prompt is left alone so an empty next turn repeats the open question
        return TurnReply(text=WHAT_DATE_TEMPLATE.format(pretty=pretty))

    async def _answer_availability(
        self, session: CallSession, resolution: DateTimeResolution, now: datetime
    ) -> TurnReply:
        day: Optional[date] = resolution.date or session.conflict_date or session.draft.date
        if day is None:
            return self._say(session, WHICH_DAY_LINE, Slot.DATETIME)
        session.last_resolved_date = day
        if self.validator.is_closed_day(day):
            return self._say(
                session,
                self._unavailable_line(AvailabilityStatus.CLOSED_DAY, None),
                Slot.DATETIME,
            )
        slots = await self.validator.list_open_slots(day, session.draft.service, now)
        pretty_day = format_date_for_speech(day)
        if not slots:
            return self._say(session, NO_SLOTS_TEMPLATE.format(day=pretty_day), Slot.DATETIME)
        return self._say(
            session, SLOTS_TEMPLATE.format(day=pretty_day, times=_join_times(slots)), Slot.DATETIME
        )

    # ------------------------------------------------------------------ #
    # Confirmation loop
    # ------------------------------------------------------------------ #

    async def _handle_pending(
        self,
        session: CallSession,
        utterance: str,
        patch: DraftPatch,
        extraction: SlotExtraction,
        now: datetime,
    ) -> TurnReply:
        sm = session.state_machine
        draft = session.draft

        phone_change = (
            mentioned_field(utterance) == "phone"
            and classify_confirmation(utterance) is Confirmation.NEGATIVE
        )
        if len(extraction.phone_digits) >= 10 or phone_change:
            session.pending = None
            sm.transition(TransitionTrigger.CALLER_DECLINED)
            draft.clear("phone")
            step = session.phone.start(extraction.phone_digits)
            return self._say(session, step.line, Slot.PHONE)

        changed = draft.apply(patch)
        if changed:
            return await self._handle_correction(session, changed, now)

        answer = classify_confirmation(utterance)
        if answer is Confirmation.AFFIRMATIVE:
            return await self._commit(session, now)

        if answer is Confirmation.NEGATIVE:
            session.pending = None
            sm.transition(TransitionTrigger.CALLER_DECLINED)
            field_name = mentioned_field(utterance)
            if field_name:
                return self._clear_and_ask(session, field_name)
            session.change_requested = True
            return self._say(session, DECLINED)

        return self._say(session, self._confirmation_line(session))

    async def _handle_correction(
        self, session: CallSession, changed: set[str], now: datetime
    ) -> TurnReply:
        """A new value was stated while awaiting yes/no."""
        sm = session.state_machine
        draft = session.draft
        session.pending = None
        logger.info("Implicit correction of %s", sorted(changed))

        if changed & {"date", "time"}:
            session.last_resolved_date = draft.date
            when = draft.when
            if when is None or when < now:
                sm.transition(TransitionTrigger.CALLER_DECLINED)
                if when is not None:
                    draft.clear_time()
                    return self._say(session, IN_PAST_LINE, Slot.DATETIME)
                return self._ask_next(session)
            status = await self.validator.check(when, draft.service)
            if status is not AvailabilityStatus.OK:
                sm.transition(TransitionTrigger.SLOT_UNAVAILABLE)
                return self._apply_unavailable(session, status, when)

        if not draft.is_complete:
            sm.transition(TransitionTrigger.CALLER_DECLINED)
            return self._ask_next(session)

        self._open_pending(session, now)
        sm.transition(TransitionTrigger.CALLER_CORRECTED)
        if changed <= {"date", "time"}:
            pretty = format_datetime_for_speech(draft.when)
            return self._say(session, CORRECTION_TEMPLATE.format(pretty=pretty))
        return self._say(session, self._confirmation_line(session))

    async def _commit(self, session: CallSession, now: datetime) -> TurnReply:
        """Re-check availability and submit the pending snapshot."""
        sm = session.state_machine
        record = session.pending.record

        status = await self.validator.check(record.start, record.service)
        if status is not AvailabilityStatus.OK:
            logger.info("Slot no longer available at commit: %s", status.value)
            session.pending = None
            sm.transition(TransitionTrigger.SLOT_UNAVAILABLE)
            return self._apply_unavailable(session, status, record.start.astimezone(self.tz))

        try:
            response = await self.submitter.submit(record)
        except BookingSubmissionError as exc:
            logger.error("Booking submission failed: %s", exc)
            session.pending = None
            session.retry_offered = True
            sm.transition(TransitionTrigger.SUBMISSION_FAILED)
            return self._say(session, SUBMIT_FAILED)

        if sm.can(TransitionTrigger.BOOKING_COMMITTED):
            sm.transition(TransitionTrigger.BOOKING_COMMITTED)
        else:
            # The booking is stored; report it even if the state moved underneath us.
            logger.warning(
                "Booking stored while in %s; reporting it as committed", sm.current_state.value
            )
        session.pending = None
        session.retry_offered = False
        pretty = format_datetime_for_speech(record.start.astimezone(self.tz))
        logger.info("Booking committed for %s", pretty)
        return TurnReply(
            text=COMMIT_TEMPLATE.format(name=record.name, pretty=pretty),
            action=CallAction.HANGUP,
            booking_ref=response.booking_ref,
        )

    async def _handle_retry_offer(
        self, session: CallSession, utterance: str, now: datetime
    ) -> Optional[TurnReply]:
        """Follow-up to a failed submission: retry, transfer or carry on."""
        t = clean_speech(utterance)
        if _CONNECT_RE.search(t) or wants_human(utterance):
            session.retry_offered = False
            if self._can_transfer(session):
                return self._transfer(session)
            return self._say(session, NO_TRANSFER_LINE)

        answer = classify_confirmation(utterance)
        if _RETRY_RE.search(t) or answer is Confirmation.AFFIRMATIVE:
            session.retry_offered = False
            if not session.draft.is_complete:
                return self._ask_next(session)
            self._open_pending(session, now)
            session.state_machine.transition(TransitionTrigger.DRAFT_COMPLETED)
            return await self._commit(session, now)

        session.retry_offered = False
        if answer is Confirmation.NEGATIVE:
            session.change_requested = True
            return self._say(session, DECLINED)
        return None

    # ------------------------------------------------------------------ #
    # Collection
    # ------------------------------------------------------------------ #

    async def _collect(
        self,
        session: CallSession,
        utterance: str,
        patch: DraftPatch,
        extraction: SlotExtraction,
        resolution: DateTimeResolution,
        now: datetime,
    ) -> TurnReply:
        draft = session.draft

        if session.phone.active:
            changed = draft.apply(DraftPatch(
                service=patch.service,
                stylist=patch.stylist,
                date=patch.date,
                time=patch.time,
                name=patch.name,
            ))
            step = session.phone.handle(utterance)
            if step.handled:
                return await self._after_phone_step(session, step, changed, now)
        else:
            changed = draft.apply(patch)
            wants_phone = not draft.phone and (
                len(extraction.phone_digits) >= 10
                or (
                    session.last_slot is Slot.PHONE
                    and extraction.phone_digits
                    and not resolution.has_date
                    and not resolution.has_time
                )
            )
            if wants_phone:
                step = session.phone.start(extraction.phone_digits)
                return self._say(session, step.line, Slot.PHONE)

        if changed:
            session.change_requested = False
        return await self._validate_and_continue(session, utterance, changed, resolution, now)

    async def _after_phone_step(
        self, session: CallSession, step: PhoneStep, changed: set[str], now: datetime
    ) -> TurnReply:
        if step.confirmed_number is None:
            return self._say(session, step.line, Slot.PHONE)
        session.draft.apply(DraftPatch(phone=step.confirmed_number))
        session.phone.reset()
        return await self._validate_and_continue(session, "", changed | {"phone"}, None, now)

    async def _validate_and_continue(
        self,
        session: CallSession,
        utterance: str,
        changed: set[str],
        resolution: Optional[DateTimeResolution],
        now: datetime,
    ) -> TurnReply:
        draft = session.draft

        if changed & {"date", "time"}:
            if draft.date is not None:
                session.last_resolved_date = draft.date
                if self.validator.is_closed_day(draft.date):
                    return self._apply_unavailable(session, AvailabilityStatus.CLOSED_DAY, None)
            when = draft.when
            if when is not None:
                if when < now:
                    draft.clear_time()
                    return self._say(session, IN_PAST_LINE, Slot.DATETIME)
                status = await self.validator.check(when, draft.service)
                if status is not AvailabilityStatus.OK:
                    return self._apply_unavailable(session, status, when)
                session.conflict_date = None

        if resolution is not None and resolution.reason == REASON_IN_PAST:
            return self._say(session, IN_PAST_LINE, Slot.DATETIME)

        if draft.is_complete:
            self._open_pending(session, now)
            session.state_machine.transition(TransitionTrigger.DRAFT_COMPLETED)
            return self._say(session, self._confirmation_line(session))

        if changed or self.fallback is None:
            return self._ask_next(session)

        return await self._fallback_turn(session, utterance, now)

    # ------------------------------------------------------------------ #
    # Conversational fallback
    # ------------------------------------------------------------------ #

    async def _fallback_turn(self, session: CallSession, utterance: str, now: datetime) -> TurnReply:
        draft = session.draft
        defn = draft.next_missing_slot()
        next_question = draft.question_for(defn, self.stylists) if defn else None

        system_prompt = (
            build_system_prompt(self.config, now)
            + "\n"
            + build_draft_context(draft, next_question)
        )
        try:
            reply = await self.fallback.respond(system_prompt, session.history)
        except FallbackError:
            return self._ask_next(session)

        action = reply.action
        if action is not None and action.action == "transfer":
            if wants_human(utterance) and self._can_transfer(session):
                return self._transfer(session)
            logger.info("Ignoring transfer action without a caller request")
        elif action is not None and action.action == "book":
            patch = reconcile_fallback_action(draft, action.model_dump(), now, self.stylists)
            changed = draft.apply(patch)
            if changed:
                return await self._validate_and_continue(session, utterance, changed, None, now)

        text = sanitize_spoken(reply.text, self.tz)
        violations = self.guardrails.check_agent_response(text, draft) if text else []
        for v in violations:
            logger.warning("Fallback reply flagged (%s): %s", v.severity, v.message)
        if not text or any(v.severity == "block" for v in violations):
            return self._ask_next(session)
        return self._say(session, text, defn.slot if defn else None)
