from __future__ import annotations

import logging
from typing import Callable, Sequence

import openai
from openai import OpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from function_agent.config import ModelConfig, get_model_config, settings
from function_agent.models.agent_schemas import Message, Role, TransportError

logger = logging.getLogger(__name__)

OPENAI_ROLES = {
    Role.SYSTEM: "system",
    Role.HUMAN: "user",
    Role.AI: "assistant",
}

_RETRYABLE = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def _create_openai_client(base_url: str = "") -> OpenAI:
    """Create an OpenAI client, optionally wrapped with PromptLayer."""
    url = base_url or settings.llm_base_url
    if settings.promptlayer_api_key:
        from promptlayer import PromptLayer

        promptlayer_client = PromptLayer(api_key=settings.promptlayer_api_key)
        return promptlayer_client.openai.OpenAI(
            api_key=settings.llm_api_key,
            base_url=url,
            timeout=settings.llm_timeout,
        )
    return OpenAI(
        api_key=settings.llm_api_key,
        base_url=url,
        timeout=settings.llm_timeout,
    )


def to_openai_messages(messages: Sequence[Message]) -> list[dict]:
    return [{"role": OPENAI_ROLES[m.role], "content": m.content} for m in messages]


class LLMService:
    def __init__(self, config: ModelConfig | None = None) -> None:
        if config is None:
            config = get_model_config()
        self._config = config
        self.client = _create_openai_client(config.base_url)
        self.model = config.model or settings.llm_model
        self._temperature = config.temperature
        self._max_tokens = config.max_tokens

    def _get_temperature(self, override: float | None = None) -> float:
        if override is not None:
            return override
        return self._temperature if self._temperature is not None else 0.2

    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=2, max=30),
        reraise=True,
    )
    def _create(self, **kwargs):
        return self.client.chat.completions.create(**kwargs)

    def generate(
        self,
        messages: Sequence[Message],
        temperature: float | None = None,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        """Send the conversation and return the assistant text.

        With ``on_chunk`` the reply is streamed: every delta is passed to the
        sink as it arrives and the concatenated text is returned.
        """
        kwargs: dict = {
            "model": self.model,
            "messages": to_openai_messages(messages),
            "temperature": self._get_temperature(temperature),
        }
        if self._max_tokens is not None:
            kwargs["max_tokens"] = self._max_tokens
        if settings.promptlayer_api_key:
            kwargs["pl_tags"] = ["function-agent", "generate"]

        try:
            if on_chunk is None:
                response = self._create(**kwargs)
                if not response.choices:
                    raise TransportError("model returned no choices")
                return response.choices[0].message.content or ""
            return self._stream(kwargs, on_chunk)
        except openai.OpenAIError as e:
            logger.error("Model call failed: %s", e)
            raise TransportError(str(e)) from e

    def _stream(self, kwargs: dict, on_chunk: Callable[[str], None]) -> str:
        parts: list[str] = []
        stream = self._create(stream=True, **kwargs)
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                on_chunk(delta)
                parts.append(delta)
        return "".join(parts)
