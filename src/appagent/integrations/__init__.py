"""
appagent.integrations - External Collaborators
================================================

The workflow reaches the outside world only through these contracts:

    integrations/
    ├── discovery/  → DiscoveryClient, StaticDiscoveryClient
    ├── schema/     → SchemaValidator, BasicSchemaValidator
    └── llm/        → BaseLLMProvider, MockLLMProvider, AnthropicProvider,
                      DeploymentAssistant
"""

from appagent.integrations.discovery import DiscoveryClient, StaticDiscoveryClient
from appagent.integrations.llm import BaseLLMProvider, DeploymentAssistant, MockLLMProvider
from appagent.integrations.schema import BasicSchemaValidator, SchemaValidator

__all__ = [
    "BaseLLMProvider",
    "BasicSchemaValidator",
    "DeploymentAssistant",
    "DiscoveryClient",
    "MockLLMProvider",
    "SchemaValidator",
    "StaticDiscoveryClient",
]
