"""
Conversational fallback backed by a chat-completion model.

Used only when the deterministic flow cannot produce a specific line.
Replies may carry a trailing ``ACTION_JSON: {...}`` tag describing booking
fields the model heard; it is parsed here and reconciled against the
draft elsewhere, with the draft always winning.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, ValidationError

from salon_receptionist.config import ModelConfig
from salon_receptionist.conversation.guardrails import ACTION_TAG_RE

logger = logging.getLogger(__name__)


class FallbackError(Exception):
    """Raised when the fallback model could not produce a reply."""


class FallbackAction(BaseModel):
    """Structured action a model reply may carry."""

    model_config = ConfigDict(extra="ignore")

    action: str = "none"
    service: Optional[str] = None
    stylist: Optional[str] = None
    name: Optional[str] = None
    start: Optional[str] = None


@dataclass(frozen=True)
class FallbackReply:
    text: str
    action: Optional[FallbackAction] = None


def parse_fallback_reply(raw: str) -> FallbackReply:
    """Split a model reply into speakable text and an optional action.

    Examples:
        >>> parse_fallback_reply('Sure. ACTION_JSON: {"action": "transfer"}').action.action
        'transfer'
    """
    raw = raw or ""
    match = ACTION_TAG_RE.search(raw)
    if match is None:
        return FallbackReply(text=raw.strip())

    text = (raw[: match.start()] + raw[match.end():]).strip()
    try:
        action = FallbackAction.model_validate_json(match.group(1))
    except ValidationError as exc:
        logger.warning("Ignoring malformed action tag: %s", exc.errors()[0].get("msg", exc))
        return FallbackReply(text=text)
    return FallbackReply(text=text, action=action)


class ConversationalFallback(ABC):
    """Produces a free-form reply when no deterministic line applies."""

    @abstractmethod
    async def respond(self, system_prompt: str, history: list[dict[str, str]]) -> FallbackReply:
        """Reply to the conversation so far.

        Raises:
            FallbackError: If no reply could be produced.
        """


class OpenAIFallback(ConversationalFallback):
    """Chat-completion fallback with a single bounded retry."""

    def __init__(self, model: ModelConfig, client: Optional[AsyncOpenAI] = None) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(
            api_key=model.openai_api_key or None,
            timeout=model.llm_timeout_sec,
            max_retries=1,
        )

    async def respond(self, system_prompt: str, history: list[dict[str, str]]) -> FallbackReply:
        messages = [{"role": "system", "content": system_prompt}, *history]
        try:
            completion = await self._client.chat.completions.create(
                model=self.model.llm_model,
                temperature=self.model.llm_temperature,
                max_tokens=self.model.llm_max_tokens,
                messages=messages,
            )
        except OpenAIError as exc:
            logger.error("Fallback model call failed: %s", exc)
            raise FallbackError(str(exc)) from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise FallbackError("Fallback model returned an empty reply")
        return parse_fallback_reply(content)
