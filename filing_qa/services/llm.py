# =============================================================================
# LLM Providers - Anthropic and OpenAI-Compatible Chat APIs
# =============================================================================
#
# The analyst sends one user message plus a system prompt and needs back the
# reply text and the model that produced it. Everything else about the two
# SDKs (message shape, usage field names) is normalised here.
#
# Each provider owns one async SDK client, built once with:
#   - timeout=settings.llm_timeout_seconds
#   - max_retries=0
# The SDKs retry by default; here a failed call surfaces immediately and the
# caller reports it as retryable. Resubmitting is the client's decision.
#
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        - system prompt as top-level kwarg
#   ├── OpenAICompatibleProvider - system prompt as first message
#   └── get_llm_provider()       - process-wide instance chosen by config
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from filing_qa.config import Settings, settings

logger = logging.getLogger(__name__)

# Both SDKs log every request through httpx
logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class LLMResponse:
    """A completion, independent of the provider that produced it."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> LLMResponse:
        """
        Run one chat completion.

        Args:
            messages: "user"/"assistant" turns; no "system" role.
            system: System prompt, placed wherever the provider expects it.
        """
        ...


def _client_options(config: Settings) -> dict:
    return {
        "timeout": config.llm_timeout_seconds,
        "max_retries": 0,
    }


class AnthropicProvider:
    """Claude through the Anthropic Messages API."""

    def __init__(self, config: Settings | None = None) -> None:
        from anthropic import AsyncAnthropic

        config = config or settings
        api_key = config.llm_api_key or config.anthropic_api_key
        if not api_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=api_key, **_client_options(config))
        self._model = config.llm_model
        self._temperature = config.llm_temperature
        self._max_tokens = config.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> LLMResponse:
        kwargs: dict = {}
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(
            model=self._model,
            messages=messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            **kwargs,
        )

        # Replies may be split over several text blocks
        content = "".join(
            block.text for block in response.content if block.type == "text"
        )
        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


class OpenAICompatibleProvider:
    """
    Any API that speaks OpenAI chat completions.

    Pointing at another vendor is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_API_KEY=your-key
        LLM_MODEL=deepseek-chat
    """

    def __init__(self, config: Settings | None = None) -> None:
        from openai import AsyncOpenAI

        config = config or settings
        api_key = config.llm_api_key or config.openai_api_key
        if not api_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        options = _client_options(config)
        if config.llm_base_url:
            options["base_url"] = config.llm_base_url

        self._client = AsyncOpenAI(api_key=api_key, **options)
        self._model = config.llm_model
        self._temperature = config.llm_temperature
        self._max_tokens = config.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            config.llm_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
    ) -> LLMResponse:
        prompt = [{"role": "system", "content": system}] if system else []
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=prompt + messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    The configured provider, created on first use.

    Raises:
        ValueError: the selected provider has no API key.
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        else:
            _provider = AnthropicProvider()
    return _provider
