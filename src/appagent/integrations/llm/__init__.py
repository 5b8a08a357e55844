"""
appagent.integrations.llm - Language Model Providers
======================================================

Available Providers:
    - BaseLLMProvider:   Abstract base class defining the LLM contract.
    - MockLLMProvider:   Deterministic responses (default, for tests).
    - AnthropicProvider: Claude models via the anthropic SDK
                         (import from appagent.integrations.llm.anthropic).

On top of the providers, DeploymentAssistant implements the model-provider
collaborator the workflow talks to.

Usage:
    >>> from appagent.integrations.llm import DeploymentAssistant, create_llm_provider
    >>> assistant = DeploymentAssistant(provider=create_llm_provider(config.llm))
"""

from appagent.integrations.llm.assistant import DeploymentAssistant, parse_model_payload
from appagent.integrations.llm.base import BaseLLMProvider, LLMResponse, LLMUsage
from appagent.integrations.llm.factory import (
    ANTHROPIC_API_KEY_ENV,
    check_credentials,
    create_llm_provider,
)
from appagent.integrations.llm.mock import MockLLMProvider

__all__ = [
    "ANTHROPIC_API_KEY_ENV",
    "BaseLLMProvider",
    "DeploymentAssistant",
    "LLMResponse",
    "LLMUsage",
    "MockLLMProvider",
    "check_credentials",
    "create_llm_provider",
    "parse_model_payload",
]
