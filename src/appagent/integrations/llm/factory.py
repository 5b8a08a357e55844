"""
appagent.integrations.llm.factory - LLM Provider Factory
==========================================================

Maps LLMConfig.provider to a concrete provider:

    "mock"      → MockLLMProvider (no credential needed)
    "anthropic" → AnthropicProvider (needs ANTHROPIC_API_KEY)

Usage:
    >>> provider = create_llm_provider(LLMConfig(provider="mock"))
    >>> type(provider)  # MockLLMProvider
"""

from __future__ import annotations

import os
from typing import Optional

from appagent.core.config import LLMConfig
from appagent.core.exceptions import ConfigurationError, MissingCredentialError
from appagent.integrations.llm.base import BaseLLMProvider


ANTHROPIC_API_KEY_ENV = "ANTHROPIC_API_KEY"

SUPPORTED_PROVIDERS = ("mock", "anthropic")


def resolve_api_key(config: LLMConfig) -> Optional[str]:
    """API key from the config, else from the provider's environment variable."""
    if config.api_key:
        return config.api_key
    if config.provider.lower() == "anthropic":
        return os.environ.get(ANTHROPIC_API_KEY_ENV) or None
    return None


def check_credentials(config: LLMConfig) -> None:
    """Raise MissingCredentialError if the configured provider cannot authenticate.

    Raises:
        MissingCredentialError: For "anthropic" without an API key.
    """
    if config.provider.lower() == "anthropic" and resolve_api_key(config) is None:
        raise MissingCredentialError(credential=ANTHROPIC_API_KEY_ENV)


def create_llm_provider(config: LLMConfig) -> BaseLLMProvider:
    """Create an LLM provider instance based on configuration.

    Args:
        config: LLM configuration with provider name, model, API key, etc.

    Returns:
        A concrete BaseLLMProvider ready for generate() calls.

    Raises:
        MissingCredentialError: If the provider needs an API key and none is set.
        ConfigurationError: If the provider name is not recognized.

    Example:
        >>> provider = create_llm_provider(LLMConfig(provider="mock"))
        >>> response = await provider.generate("Hello")
    """
    provider_name = config.provider.lower()

    if provider_name == "mock":
        from appagent.integrations.llm.mock import MockLLMProvider
        return MockLLMProvider(config)

    if provider_name == "anthropic":
        check_credentials(config)
        from appagent.integrations.llm.anthropic import AnthropicProvider
        return AnthropicProvider(config, api_key=resolve_api_key(config) or "")

    raise ConfigurationError(
        message=(
            f"Unknown LLM provider: '{provider_name}'. "
            f"Available providers: {', '.join(SUPPORTED_PROVIDERS)}"
        ),
        error_code="UNKNOWN_PROVIDER",
        details={"provider": provider_name},
    )
