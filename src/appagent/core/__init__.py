"""
appagent.core - Foundation Layer
==================================

Types shared by every other layer: configuration, enumerations, the
exception hierarchy, data models and workflow session state.

    core/
    ├── config.py      → AppAgentConfig, LLMConfig, load_config
    ├── enums.py       → Phase, PhaseStatus, OutputFormat
    ├── exceptions.py  → AppAgentError and subclasses
    ├── models.py      → pattern records, recommendations, collaborator models
    └── state.py       → WorkflowSession, PhaseHistoryEntry, PhaseOutcome
"""

from appagent.core.config import AppAgentConfig, LLMConfig, get_default_config, load_config
from appagent.core.enums import WORKING_PHASES, OutputFormat, Phase, PhaseStatus
from appagent.core.exceptions import (
    AppAgentError,
    ClusterConnectionError,
    CollaboratorFailureError,
    ConfigurationError,
    IllegalTransitionError,
    InvalidRequirementsError,
    MissingCredentialError,
    ProviderUnavailableError,
    ResourceNotFoundError,
    StateError,
    UnknownSessionError,
)
from appagent.core.models import (
    AssistantReply,
    FailureRecord,
    Recommendation,
    ResourceDescriptor,
    ResourceSuggestion,
    SchemaDescription,
    SuccessRecord,
    ValidationResult,
    config_as_dict,
    config_keys,
)
from appagent.core.state import PhaseHistoryEntry, PhaseOutcome, WorkflowSession

__all__ = [
    # Configuration
    "AppAgentConfig",
    "LLMConfig",
    "get_default_config",
    "load_config",
    # Enums
    "OutputFormat",
    "Phase",
    "PhaseStatus",
    "WORKING_PHASES",
    # Exceptions
    "AppAgentError",
    "ClusterConnectionError",
    "CollaboratorFailureError",
    "ConfigurationError",
    "IllegalTransitionError",
    "InvalidRequirementsError",
    "MissingCredentialError",
    "ProviderUnavailableError",
    "ResourceNotFoundError",
    "StateError",
    "UnknownSessionError",
    # Models
    "AssistantReply",
    "FailureRecord",
    "Recommendation",
    "ResourceDescriptor",
    "ResourceSuggestion",
    "SchemaDescription",
    "SuccessRecord",
    "ValidationResult",
    "config_as_dict",
    "config_keys",
    # State
    "PhaseHistoryEntry",
    "PhaseOutcome",
    "WorkflowSession",
]
