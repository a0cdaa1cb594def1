"""Generative replies for everything that is not part of the booking flow.

Wraps a LangChain chat model (Anthropic by default).  The caller passes the
new user message and the prior conversation; any failure of the upstream
call surfaces as :class:`GenerationError`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from vet_assistant.config import Settings
from vet_assistant.models import ChatMessage
from vet_assistant.prompts import get_system_prompt
from vet_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when the generative model could not produce a reply."""


def build_llm(settings: Settings) -> ChatAnthropic:
    """Build the chat model used for free-form veterinary answers."""
    return ChatAnthropic(
        model=settings.model_name,
        api_key=settings.anthropic_api_key,
        temperature=0.3,
        max_tokens=1024,
    )


def to_langchain_history(history: Sequence[ChatMessage]) -> list[BaseMessage]:
    """Convert stored messages, dropping leading turns until the first user turn.

    The model API expects the conversation to open with a user message, but
    stored sessions start with the assistant's welcome.
    """
    start = next((i for i, msg in enumerate(history) if msg.role == "user"), len(history))
    converted: list[BaseMessage] = []
    for msg in history[start:]:
        if msg.role == "user":
            converted.append(HumanMessage(content=msg.content))
        else:
            converted.append(AIMessage(content=msg.content))
    return converted


def _content_text(content: str | list) -> str:
    if isinstance(content, str):
        return content
    # Anthropic may return a list of content blocks
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class VetResponder:
    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    @classmethod
    def from_settings(cls, settings: Settings) -> VetResponder:
        return cls(build_llm(settings))

    def generate(self, message: str, history: Sequence[ChatMessage]) -> str:
        """Return the model's reply to *message* given the prior *history*."""
        prompt = [
            SystemMessage(content=get_system_prompt()),
            *to_langchain_history(history),
            HumanMessage(content=message),
        ]
        t0 = time.perf_counter()
        try:
            response = self._llm.invoke(prompt)
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", "generate_reply",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.exception("Generative model call failed")
            raise GenerationError("Failed to generate AI response") from exc

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("anthropic", "generate_reply", latency_ms=elapsed)
        logger.debug("Model responded in %.0fms", elapsed)

        text = _content_text(response.content).strip()
        if not text:
            raise GenerationError("The model returned an empty response")
        return text
