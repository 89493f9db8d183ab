"""
Text-to-speech for assistant replies.

Lines are rendered through Cartesia's REST endpoint into MP3 bytes and
kept in a bounded in-memory audio store, from which the telephony layer
fetches them by id. Short filler lines ("One sec.") are rendered once at
startup and reused for every call.

A synthesis failure never breaks a turn: ``synthesize_or_none`` retries a
bounded number of times and then returns None so the caller can fall back
to the carrier's own text-to-speech.
"""

import asyncio
import logging
import random
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional

import httpx

from salon_receptionist.config import ModelConfig

logger = logging.getLogger(__name__)

CARTESIA_TTS_URL = "https://api.cartesia.ai/tts/bytes"
CARTESIA_VERSION = "2024-06-10"

FILLER_LINES = ["One sec.", "Got it.", "Okay.", "Alright."]
REPEAT_LINE = "Sorry, could you say that again?"
AUDIO_STORE_CAPACITY = 300


class SynthesisError(Exception):
    """Raised when a line could not be rendered to audio."""


class SpeechSynthesizer(ABC):
    """Renders text to audio bytes."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Render a line.

        Raises:
            SynthesisError: If rendering failed.
        """


class CartesiaSynthesizer(SpeechSynthesizer):
    """Cartesia text-to-speech over HTTP."""

    def __init__(self, model: ModelConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        if not model.tts_api_key:
            raise ValueError("CARTESIA_API_KEY must be set to use Cartesia synthesis")
        self.model = model
        self._client = client

    def _request_body(self, text: str) -> dict:
        return {
            "model_id": self.model.tts_model,
            "transcript": text,
            "voice": {"mode": "id", "id": self.model.tts_voice_id},
            "output_format": {"container": "mp3", "sample_rate": 44100, "bit_rate": 128000},
            "language": "en",
        }

    async def _post(self, client: httpx.AsyncClient, text: str) -> bytes:
        response = await client.post(
            CARTESIA_TTS_URL,
            headers={"X-API-Key": self.model.tts_api_key, "Cartesia-Version": CARTESIA_VERSION},
            json=self._request_body(text),
            timeout=self.model.tts_timeout_sec,
        )
        response.raise_for_status()
        return response.content

    async def synthesize(self, text: str) -> bytes:
        try:
            if self._client is not None:
                audio = await self._post(self._client, text)
            else:
                async with httpx.AsyncClient() as client:
                    audio = await self._post(client, text)
        except httpx.HTTPError as exc:
            raise SynthesisError(f"Cartesia request failed: {exc}") from exc
        if not audio:
            raise SynthesisError("Cartesia returned no audio")
        return audio


async def synthesize_or_none(
    synthesizer: Optional[SpeechSynthesizer], text: str, attempts: int = 2
) -> Optional[bytes]:
    """Render a line, retrying up to ``attempts`` times. Returns None on failure."""
    if synthesizer is None or not text:
        return None
    for attempt in range(1, attempts + 1):
        try:
            return await synthesizer.synthesize(text)
        except SynthesisError as exc:
            logger.warning("Synthesis attempt %d/%d failed: %s", attempt, attempts, exc)
    return None


class AudioStore:
    """Bounded id -> audio map. The oldest clip is evicted first."""

    def __init__(self, capacity: int = AUDIO_STORE_CAPACITY) -> None:
        self.capacity = capacity
        self._clips: "OrderedDict[str, bytes]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._clips)

    def put(self, audio: bytes) -> str:
        clip_id = uuid.uuid4().hex
        self._clips[clip_id] = audio
        while len(self._clips) > self.capacity:
            self._clips.popitem(last=False)
        return clip_id

    def get(self, clip_id: str) -> Optional[bytes]:
        return self._clips.get(clip_id)


class FillerCache:
    """Pre-rendered filler and repeat clips shared by all calls."""

    def __init__(self, synthesizer: Optional[SpeechSynthesizer], attempts: int = 2) -> None:
        self.synthesizer = synthesizer
        self.attempts = attempts
        self._clips: dict[str, bytes] = {}

    async def warm(self) -> int:
        """Render every filler line once. Returns how many rendered."""
        lines = [*FILLER_LINES, REPEAT_LINE]
        results = await asyncio.gather(
            *(synthesize_or_none(self.synthesizer, line, self.attempts) for line in lines)
        )
        for line, audio in zip(lines, results):
            if audio:
                self._clips[line] = audio
        logger.info("Filler cache warmed with %d/%d clips", len(self._clips), len(lines))
        return len(self._clips)

    def get(self, line: str) -> Optional[bytes]:
        return self._clips.get(line)

    def random_filler(self, rng: Optional[random.Random] = None) -> str:
        return (rng or random).choice(FILLER_LINES)
