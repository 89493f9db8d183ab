"""Call ID logging context for tracing one phone call across modules.

Every turn of a call runs in its own asyncio task, so the call identifier
is carried in a ContextVar and stamped onto each log record. Background
turn tasks copy the context they were created in, which keeps the call id
attached to logs produced after the filler response has gone out.

Usage:
    from salon_receptionist.logging_context import get_call_logger, set_call_id

    set_call_id("CA1234")
    logger = get_call_logger(__name__)
    logger.info("Draft updated")  # record.call_id == "CA1234"
"""

import logging
from contextvars import ContextVar

_call_id: ContextVar[str] = ContextVar("call_id", default="no-call")


def set_call_id(call_id: str) -> None:
    """Set the call identifier for the current async context."""
    _call_id.set(call_id or "no-call")


def get_call_id() -> str:
    """Retrieve the current call identifier."""
    return _call_id.get()


def redact_phone(value: str) -> str:
    """Mask a phone number for logging, keeping the last two digits."""
    if not value:
        return "missing"
    if len(value) <= 4:
        return "***"
    return "*" * (len(value) - 2) + value[-2:]


class CallIdFilter(logging.Filter):
    """Injects call_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id = _call_id.get()  # type: ignore[attr-defined]
        return True


def get_call_logger(name: str) -> logging.Logger:
    """Return a logger with the CallIdFilter attached.

    The filter adds ``call_id`` to each record so formatters can
    include ``%(call_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CallIdFilter) for f in logger.filters):
        logger.addFilter(CallIdFilter())
    return logger
