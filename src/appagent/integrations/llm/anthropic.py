"""
appagent.integrations.llm.anthropic - Anthropic Messages API Provider
=======================================================================

Provider backed by the official ``anthropic`` SDK. Construct it through
create_llm_provider(), which resolves the API key from LLMConfig.api_key
or the ANTHROPIC_API_KEY environment variable and refuses to build the
provider when neither is set.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import anthropic
import structlog

from appagent.core.config import LLMConfig
from appagent.core.exceptions import ProviderUnavailableError
from appagent.integrations.llm.base import BaseLLMProvider, LLMResponse, LLMUsage


logger = structlog.get_logger()


# stop_reason values of the Messages API → LLMResponse.finish_reason
_FINISH_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
}


class AnthropicProvider(BaseLLMProvider):
    """Calls Claude models through ``anthropic.AsyncAnthropic``.

    Example:
        >>> provider = AnthropicProvider(LLMConfig(provider="anthropic"), api_key="sk-ant-...")
        >>> response = await provider.generate("Say hello")
    """

    def __init__(self, config: LLMConfig, api_key: str) -> None:
        super().__init__(config)
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=config.api_base_url,
        )
        self._logger = logger.bind(component="anthropic_provider", model=config.model)

    async def generate(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        return await self._create_message(
            None, prompt, temperature, max_tokens, stop_sequences, kwargs
        )

    async def generate_with_system(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        return await self._create_message(
            system_prompt, user_prompt, temperature, max_tokens, stop_sequences, kwargs
        )

    async def _create_message(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
        stop_sequences: Optional[list[str]],
        extra: dict[str, Any],
    ) -> LLMResponse:
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
            "messages": [{"role": "user", "content": user_prompt}],
            **extra,
        }
        if system_prompt is not None:
            request["system"] = system_prompt
        if stop_sequences:
            request["stop_sequences"] = stop_sequences

        started = time.perf_counter()
        try:
            message = await self._client.messages.create(**request)
        except anthropic.APIError as exc:
            self._logger.warning(
                "anthropic_request_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ProviderUnavailableError(
                message=f"Anthropic request failed: {exc}",
                provider="anthropic",
            ) from exc

        latency_ms = round((time.perf_counter() - started) * 1000, 1)
        content = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        usage = LLMUsage(
            prompt_tokens=message.usage.input_tokens,
            completion_tokens=message.usage.output_tokens,
            total_tokens=message.usage.input_tokens + message.usage.output_tokens,
        )

        self._logger.debug(
            "anthropic_request_completed",
            latency_ms=latency_ms,
            total_tokens=usage.total_tokens,
            stop_reason=message.stop_reason,
        )

        return LLMResponse(
            content=content,
            model=message.model,
            usage=usage,
            finish_reason=_FINISH_REASONS.get(message.stop_reason or "", "stop"),
            metadata={"request_id": message.id, "latency_ms": latency_ms},
        )

    async def validate(self) -> bool:
        return bool(self._client.api_key)
