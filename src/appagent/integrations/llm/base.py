"""
appagent.integrations.llm.base - Abstract LLM Provider Interface
==================================================================

The contract every language-model provider implements. The
DeploymentAssistant talks to models only through this interface.

    ┌─────────────────────┐   generate_with_system()  ┌──────────────────┐
    │ DeploymentAssistant │ ────────────────────────→ │ BaseLLMProvider  │
    │                     │ ←──── LLMResponse ─────── │   (abstract)     │
    └─────────────────────┘                           └────────┬─────────┘
                                                               │
                                                  ┌────────────┴──────────┐
                                             ┌────▼───┐           ┌───────▼─────┐
                                             │  Mock  │           │  Anthropic  │
                                             └────────┘           └─────────────┘

Error Contract:
    A provider whose backend call fails raises ProviderUnavailableError.
    A provider that cannot be created for lack of an API key is never
    constructed: the factory raises MissingCredentialError instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from appagent.core.config import LLMConfig


# =============================================================================
# LLM Response Model
# =============================================================================
class LLMUsage(BaseModel):
    """Token usage of one LLM call."""

    prompt_tokens: int = Field(default=0, ge=0, description="Tokens in the input prompt")
    completion_tokens: int = Field(default=0, ge=0, description="Tokens in the output")
    total_tokens: int = Field(default=0, ge=0, description="Total tokens consumed")


class LLMResponse(BaseModel):
    """Standardized response from any LLM provider.

    Attributes:
        content: The generated text.
        model: Model that produced the response.
        usage: Token counts.
        finish_reason: "stop", "length" or "error".
        metadata: Provider-specific extras (request id, source, ...).
        created_at: When the response was produced (UTC).

    Example:
        >>> response = LLMResponse(content='{"questions": []}', model="mock-model")
    """

    content: str = Field(description="The generated text content from the LLM")
    model: str = Field(description="Model identifier that produced this response")
    usage: LLMUsage = Field(
        default_factory=LLMUsage,
        description="Token usage for cost tracking",
    )
    finish_reason: str = Field(
        default="stop",
        description="Why generation stopped: 'stop', 'length', or 'error'",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific metadata",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Response creation timestamp (UTC)",
    )


# =============================================================================
# Abstract Base LLM Provider
# =============================================================================
class BaseLLMProvider(ABC):
    """Abstract base class for all LLM providers.

    Subclasses implement generate() and generate_with_system(); the base
    class stores the configuration and exposes it through properties.

    Example:
        >>> class EchoProvider(BaseLLMProvider):
        ...     async def generate(self, prompt, **kwargs):
        ...         return LLMResponse(content=prompt, model=self.model)
        ...     async def generate_with_system(self, system_prompt, user_prompt, **kwargs):
        ...         return LLMResponse(content=user_prompt, model=self.model)
    """

    def __init__(self, config: LLMConfig) -> None:
        self._config = config

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def provider_name(self) -> str:
        return self._config.provider

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def temperature(self) -> float:
        return self._config.temperature

    @property
    def max_tokens(self) -> int:
        return self._config.max_tokens

    @property
    def config(self) -> LLMConfig:
        return self._config

    # =========================================================================
    # Abstract Methods (Subclasses MUST implement)
    # =========================================================================

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate text from a single prompt.

        Args:
            prompt: The input text prompt.
            temperature: Override the configured temperature.
            max_tokens: Override the configured max_tokens.
            stop_sequences: Strings that stop generation.
            **kwargs: Provider-specific keyword arguments.

        Returns:
            LLMResponse with the generated content.

        Raises:
            ProviderUnavailableError: If the backend call fails.
        """
        ...

    @abstractmethod
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
        """Generate text with a system prompt and a user prompt.

        The DeploymentAssistant puts the task instructions (and the
        expected reply format) in the system prompt and the session
        facts in the user prompt.

        Raises:
            ProviderUnavailableError: If the backend call fails.
        """
        ...

    # =========================================================================
    # Optional Methods (Subclasses CAN override)
    # =========================================================================

    async def validate(self) -> bool:
        """True when the provider is configured well enough to be called."""
        return True

    def get_available_models(self) -> list[str]:
        return [self.model]

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"provider={self.provider_name!r}, "
            f"model={self.model!r})"
        )
