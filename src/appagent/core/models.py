"""
appagent.core.models - Core Data Models
=========================================

Pydantic data models that flow between the memory layer, the orchestrator
and the external collaborators.

Model Groups:
    Patterns (learned memory):
        SuccessRecord, FailureRecord  → appended by the PatternStore
        Recommendation                → derived by the RecommendationEngine

    Collaborator contracts:
        ResourceDescriptor, SchemaDescription → DiscoveryClient
        ValidationResult                      → SchemaValidator
        AssistantReply, ResourceSuggestion    → DeploymentAssistant

Design Principles:
    1. Pattern records are frozen: once written they never change.
    2. Configuration payloads are plain mappings or pydantic models; the
       similarity algorithm only needs their top-level key names, which
       config_keys() enumerates for both.
    3. Everything serializes to JSON (JSONL pattern log, CLI envelope).
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from appagent.core.enums import Phase


# =============================================================================
# Helpers
# =============================================================================
def _now() -> datetime:
    """Get the current UTC timestamp."""
    return datetime.now(timezone.utc)


def config_keys(config: Any) -> set[str]:
    """Enumerate the top-level key names of a configuration payload.

    Mappings contribute their keys, pydantic models the fields that were
    explicitly set. Anything else has no keys.

    Args:
        config: A mapping, a pydantic model or None.

    Returns:
        The set of top-level key names.
    """
    if config is None:
        return set()
    if isinstance(config, BaseModel):
        return set(config.model_fields_set)
    if isinstance(config, Mapping):
        return {str(key) for key in config.keys()}
    return set()


def config_as_dict(config: Any) -> dict[str, Any]:
    """Deep-copy a configuration payload into a plain dict for storage.

    Nested values are copied too, so the stored record shares nothing
    with the caller.
    """
    if config is None:
        return {}
    if isinstance(config, BaseModel):
        return config.model_dump(mode="json", exclude_unset=True)
    if isinstance(config, Mapping):
        return copy.deepcopy(dict(config))
    raise TypeError(f"Unsupported configuration payload: {type(config).__name__}")


# =============================================================================
# Pattern Records
# =============================================================================
# A pattern is a configuration tagged success or failure. Records are
# appended per resource type and never mutated, merged or deleted.
# =============================================================================
class SuccessRecord(BaseModel):
    """A configuration that led to a successful deployment.

    Attributes:
        resource_type: Pattern collection the record belongs to
            (e.g. "deployment").
        config: The configuration that succeeded.
        recorded_at: When the record was appended (UTC).

    Example:
        >>> record = SuccessRecord(
        ...     resource_type="deployment",
        ...     config={"framework": "express", "db": "postgres"},
        ... )
    """

    model_config = ConfigDict(frozen=True)

    resource_type: str = Field(description="Pattern collection name")
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Configuration that succeeded",
    )
    recorded_at: datetime = Field(
        default_factory=_now,
        description="Append timestamp (UTC)",
    )


class FailureRecord(BaseModel):
    """A configuration that failed, with the reason.

    Attributes:
        resource_type: Pattern collection the record belongs to.
        config: The configuration at the time of failure.
        error_description: Why it failed ("rolled back" for rollbacks).
        recorded_at: When the record was appended (UTC).
    """

    model_config = ConfigDict(frozen=True)

    resource_type: str = Field(description="Pattern collection name")
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Configuration at the time of failure",
    )
    error_description: str = Field(description="Failure reason")
    recorded_at: datetime = Field(
        default_factory=_now,
        description="Append timestamp (UTC)",
    )


# =============================================================================
# Recommendation
# =============================================================================
class Recommendation(BaseModel):
    """A scored suggestion derived from prior patterns.

    Recommendations are recomputed on every request and never persisted.

    Attributes:
        suggestion: Human-readable suggestion text.
        confidence: Similarity score in [0, 1].
        based_on: Provenance strings, e.g. the source record's timestamp.
    """

    suggestion: str = Field(description="Human-readable suggestion")
    confidence: float = Field(ge=0.0, le=1.0, description="Score in [0, 1]")
    based_on: list[str] = Field(
        default_factory=list,
        description="Provenance of the suggestion",
    )


# =============================================================================
# Discovery Contract Models
# =============================================================================
class ResourceDescriptor(BaseModel):
    """A resource kind available in the cluster.

    Example:
        >>> ResourceDescriptor(kind="Deployment", api_version="apps/v1", group="apps")
    """

    kind: str = Field(description="Resource kind, e.g. 'Deployment'")
    api_version: str = Field(description="apiVersion, e.g. 'apps/v1'")
    group: str = Field(default="", description="API group ('' for core)")
    namespaced: bool = Field(default=True, description="Namespace-scoped resource")
    description: str = Field(default="", description="Short description")


class SchemaDescription(BaseModel):
    """The `explain`-style schema of one resource kind.

    Attributes:
        kind: Resource kind the schema describes.
        api_version: apiVersion manifests of this kind must use.
        description: Free-text description.
        required_fields: Dotted paths that must be present in a manifest
            (e.g. "spec.selector").
        fields: Field path → type/description, informational only.
    """

    kind: str = Field(description="Resource kind")
    api_version: str = Field(description="Expected apiVersion")
    description: str = Field(default="", description="Schema description")
    required_fields: list[str] = Field(
        default_factory=list,
        description="Dotted field paths required in a manifest",
    )
    fields: dict[str, str] = Field(
        default_factory=dict,
        description="Field path → type/description",
    )


# =============================================================================
# Schema Validator Contract Model
# =============================================================================
class ValidationResult(BaseModel):
    """Outcome of a manifest or requirements validation."""

    valid: bool = Field(description="True when no errors were found")
    errors: list[str] = Field(default_factory=list, description="Validation errors")


# =============================================================================
# Model-Provider Contract Models
# =============================================================================
class AssistantReply(BaseModel):
    """Structured reply of the deployment assistant to user input.

    A reply with questions keeps the workflow suspended; a reply without
    questions completes the current phase's clarification.

    Attributes:
        phase: Phase the assistant believes the conversation is in.
        questions: Follow-up questions for the user.
        next_steps: Suggested next steps to show the user.
    """

    phase: Optional[Phase] = Field(default=None, description="Phase named by the model")
    questions: list[str] = Field(default_factory=list, description="Follow-up questions")
    next_steps: list[str] = Field(default_factory=list, description="Suggested next steps")

    @property
    def needs_input(self) -> bool:
        """True when the user has to answer questions first."""
        return bool(self.questions)


class ResourceSuggestion(BaseModel):
    """One ranked resource kind for a deployment intent."""

    kind: str = Field(description="Resource kind")
    score: float = Field(default=0.0, ge=0.0, le=1.0, description="Relevance score")
    reason: str = Field(default="", description="Why the kind fits the intent")


__all__ = [
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
]
