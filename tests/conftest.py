"""Shared test fixtures and helpers."""

from dataclasses import replace
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from salon_receptionist.config import AppConfig
from salon_receptionist.conversation.draft import BookingDraft
from salon_receptionist.conversation.guardrails import GuardrailPipeline
from salon_receptionist.conversation.orchestrator import TurnOrchestrator
from salon_receptionist.conversation.phone_flow import PhoneCollector
from salon_receptionist.conversation.session import SessionStore
from salon_receptionist.conversation.state_machine import BookingStateMachine
from salon_receptionist.tools.availability import AvailabilityValidator
from salon_receptionist.tools.booking import InMemoryBookingSubmitter
from salon_receptionist.tools.calendar import InMemoryCalendar

TZ = ZoneInfo("America/Toronto")

# Wednesday morning, two weeks before Tuesday October 20
NOW = datetime(2026, 10, 7, 10, 0, tzinfo=TZ)

TRANSFER_NUMBER = "4165550100"


@pytest.fixture
def tz():
    return TZ


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def app_config():
    config = AppConfig()
    return replace(
        config,
        business=replace(
            config.business,
            timezone="America/Toronto",
            open_hour=9,
            close_hour=18,
            closed_weekday=6,
            transfer_phone="",
            stylists=("Cosmo", "Vince", "Cassidy"),
        ),
    )


@pytest.fixture
def transfer_config(app_config):
    return replace(
        app_config, business=replace(app_config.business, transfer_phone=TRANSFER_NUMBER)
    )


@pytest.fixture
def state_machine():
    return BookingStateMachine()


@pytest.fixture
def draft():
    return BookingDraft(tz=TZ)


@pytest.fixture
def phone_collector():
    return PhoneCollector()


@pytest.fixture
def guardrail_pipeline():
    return GuardrailPipeline()


@pytest.fixture
def calendar():
    return InMemoryCalendar()


@pytest.fixture
def submitter():
    return InMemoryBookingSubmitter()


@pytest.fixture
def validator(app_config, calendar):
    return AvailabilityValidator(app_config.business, app_config.scheduling, calendar)


@pytest.fixture
def orchestrator(app_config, validator, submitter):
    return TurnOrchestrator(app_config, validator, submitter, clock=lambda: NOW)


@pytest.fixture
def session_store():
    return SessionStore(TZ, ttl_sec=1800)


@pytest.fixture
def session(session_store):
    return session_store.get_or_create("TEST-CALL", NOW)


@pytest.fixture
def converse(orchestrator, session):
    """Play caller utterances in order and return every reply."""

    async def _converse(*utterances, orch=None, sess=None):
        orch = orch or orchestrator
        sess = sess or session
        replies = []
        for utterance in utterances:
            replies.append(await orch.handle_turn(sess, utterance))
        return replies

    return _converse


@pytest.fixture
def booking_script():
    """A complete call up to the read-back of the booking."""
    return [
        "I'd like a haircut with Cosmo",
        "next Tuesday at 4",
        "Sam Lee",
        "905 555 1234",
        "yes",
    ]
