# =============================================================================
# LLM Providers - Chat Completions for the Answer Pipeline
# =============================================================================
#
# The answer pipeline makes exactly one completion per question: a system
# prompt plus a single user turn holding the grounded prompt. Both vendor
# SDKs are wrapped behind `LLMProvider.complete()` so the analyst and its
# tests depend only on that call.
#
# Anthropic takes the system prompt as `system=`; OpenAI-style APIs expect
# it as a leading "system" message. Each wrapper applies its own rule.
#
# Deadlines and fallback answers belong to agents/analyst.py, not here.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from findocai.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_OPENAI_URL = "https://api.openai.com/v1"


@dataclass
class LLMResponse:
    """Text and token usage from one completion."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMProvider(Protocol):
    async def complete(
        self, messages: list[dict[str, str]], system: str | None = None,
    ) -> LLMResponse:
        ...


def _require_key(provider: str, *candidates: str | None) -> str:
    key = next((c for c in candidates if c), None)
    if key is None:
        raise ValueError(f"{provider} chat model needs an API key (LLM_API_KEY)")
    return key


# ---------------------------------------------------------------------------
# Claude
# ---------------------------------------------------------------------------


class AnthropicChatModel:
    def __init__(self) -> None:
        from anthropic import AsyncAnthropic

        key = _require_key("Anthropic", settings.llm_api_key, settings.anthropic_api_key)
        self._client = AsyncAnthropic(api_key=key)
        self._model = settings.llm_model
        logger.info("Chat model ready: anthropic/%s", self._model)

    async def complete(
        self, messages: list[dict[str, str]], system: str | None = None,
    ) -> LLMResponse:
        request: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": settings.llm_max_tokens,
            "temperature": settings.llm_temperature,
        }
        if system:
            request["system"] = system

        reply = await self._client.messages.create(**request)
        text_blocks = [b.text for b in reply.content if b.type == "text"]
        return LLMResponse(
            content=text_blocks[0] if text_blocks else "",
            model=reply.model,
            input_tokens=reply.usage.input_tokens,
            output_tokens=reply.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# OpenAI protocol (OpenAI, Groq, DeepSeek, local gateways)
# ---------------------------------------------------------------------------


class OpenAICompatibleChatModel:
    def __init__(self) -> None:
        from openai import AsyncOpenAI

        key = _require_key("OpenAI-compatible", settings.llm_api_key, settings.openai_api_key)
        base_url = settings.llm_base_url or _DEFAULT_OPENAI_URL
        self._client = AsyncOpenAI(api_key=key, base_url=base_url)
        self._model = settings.llm_model
        logger.info("Chat model ready: %s at %s", self._model, base_url)

    async def complete(
        self, messages: list[dict[str, str]], system: str | None = None,
    ) -> LLMResponse:
        prefix = [{"role": "system", "content": system}] if system else []
        reply = await self._client.chat.completions.create(
            model=self._model,
            messages=prefix + list(messages),
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )
        usage = reply.usage
        return LLMResponse(
            content=reply.choices[0].message.content or "",
            model=reply.model or self._model,
            input_tokens=getattr(usage, "prompt_tokens", 0),
            output_tokens=getattr(usage, "completion_tokens", 0),
        )


_chat_model: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    Return the chat model selected by LLM_PROVIDER, built once.

    Raises ValueError when the selected vendor has no API key; the API
    layer reports that as 503.
    """
    global _chat_model
    if _chat_model is None:
        if settings.llm_provider == "openai_compatible":
            _chat_model = OpenAICompatibleChatModel()
        else:
            _chat_model = AnthropicChatModel()
    return _chat_model
