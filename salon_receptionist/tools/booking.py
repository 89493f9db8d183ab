"""
Booking submission targets.

A committed booking is posted as JSON to a configured webhook (a Zapier
catch hook or any automation endpoint). Non-2xx responses and transport
errors surface as ``BookingSubmissionError`` so the caller can be told
the appointment was not saved. There is no automatic retry.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import httpx

from salon_receptionist.logging_context import redact_phone
from salon_receptionist.schemas.booking_schema import BookingRecord, BookingResponse

logger = logging.getLogger(__name__)


class BookingSubmissionError(Exception):
    """Raised when a booking could not be handed to the submission target."""


class BookingSubmitter(ABC):
    """Receives committed booking records."""

    @abstractmethod
    async def submit(self, record: BookingRecord) -> BookingResponse:
        """Submit a booking.

        Raises:
            BookingSubmissionError: If the target rejected or never received it.
        """


class WebhookBookingSubmitter(BookingSubmitter):
    """Posts bookings to an HTTP webhook."""

    def __init__(
        self,
        url: str,
        timeout_sec: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout_sec = timeout_sec
        self._client = client

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        response = await client.post(self.url, json=payload, timeout=self.timeout_sec)
        response.raise_for_status()
        return response

    async def submit(self, record: BookingRecord) -> BookingResponse:
        if not self.url:
            raise BookingSubmissionError("BOOKING_WEBHOOK_URL is not configured")

        payload = record.to_payload()
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except httpx.HTTPStatusError as exc:
            logger.error("Booking webhook returned %s", exc.response.status_code)
            raise BookingSubmissionError(
                f"Webhook responded with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Booking webhook request failed: %s", exc)
            raise BookingSubmissionError(f"Webhook request failed: {exc}") from exc

        logger.info(
            "Booking submitted for %s at %s (phone %s)",
            record.name, record.start.isoformat(), redact_phone(record.phone),
        )
        return BookingResponse(
            success=True,
            message=f"Webhook accepted booking ({response.status_code}).",
            created_at=datetime.now(timezone.utc),
        )


class InMemoryBookingSubmitter(BookingSubmitter):
    """Keeps bookings in a dict. Used by tests and the console demo."""

    def __init__(self) -> None:
        self._bookings: dict[str, BookingRecord] = {}

    async def submit(self, record: BookingRecord) -> BookingResponse:
        ref = f"BK-{uuid.uuid4().hex[:6].upper()}"
        self._bookings[ref] = record
        logger.info("Booking created: %s for %s at %s", ref, record.name, record.start.isoformat())
        return BookingResponse(
            success=True,
            booking_ref=ref,
            message=f"Booking confirmed. Reference number: {ref}.",
            created_at=datetime.now(timezone.utc),
        )

    def get_booking(self, booking_ref: str) -> Optional[BookingRecord]:
        """Retrieve a booking by reference number."""
        return self._bookings.get(booking_ref)

    @property
    def bookings(self) -> list[BookingRecord]:
        return list(self._bookings.values())

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        self._bookings.clear()
