"""
appagent.core.exceptions - Custom Exception Hierarchy
=======================================================

Structured exceptions for App Agent. Components raise and catch specific
exception types that carry contextual information instead of bare strings.

Exception Hierarchy:
    AppAgentError (base)
        ├── ConfigurationError        - Invalid config, missing required values
        ├── InvalidRequirementsError  - Workflow requirements rejected
        ├── UnknownSessionError       - No session with the given id
        ├── IllegalTransitionError    - Edge not in the workflow state graph
        ├── CollaboratorFailureError  - Discovery/model/schema call failed
        ├── MissingCredentialError    - Model provider credential not set
        ├── StateError                - Session or pattern commit failed
        ├── ClusterConnectionError    - Discovery client cannot reach the cluster
        ├── ResourceNotFoundError     - Discovery client has no such kind
        └── ProviderUnavailableError  - Model provider call failed

Error Handling Flow:
    Collaborator raises ClusterConnectionError / ProviderUnavailableError
        → WorkflowOrchestrator wraps it in CollaboratorFailureError
        → the session moves to FAILED and a failure pattern is recorded
        → the CLI reports {"success": false, "error": "..."}

    Input errors (InvalidRequirementsError, UnknownSessionError,
    IllegalTransitionError, MissingCredentialError) reach the caller
    directly and never mutate session state.

Usage:
    >>> raise IllegalTransitionError(
    ...     message="Cannot move from Discovery to Deployment",
    ...     workflow_id="wf-123",
    ...     current_phase="Discovery",
    ...     target_phase="Deployment",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
class AppAgentError(Exception):
    """Base exception for all App Agent errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable code, UPPER_SNAKE_CASE.
        details: Arbitrary dict with additional debugging context.

    Example:
        >>> try:
        ...     await orchestrator.transition_to(wf_id, Phase.DEPLOYMENT)
        ... except AppAgentError as e:
        ...     print(f"[{e.error_code}] {e.message}")
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(AppAgentError):
    """Raised when App Agent configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError(
        ...     message="Unknown LLM provider: 'acme'",
        ...     error_code="UNKNOWN_PROVIDER",
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Workflow Input Errors
# =============================================================================
# These errors describe a bad request from the caller. They are raised
# before any state is touched, so retrying with a corrected request is safe.
# =============================================================================
class InvalidRequirementsError(AppAgentError):
    """Raised when workflow requirements are empty or rejected.

    Attributes:
        errors: Individual validation messages from the schema validator.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[list[str]] = None,
        error_code: str = "INVALID_REQUIREMENTS",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["errors"] = list(errors or [])

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.errors = list(errors or [])


class UnknownSessionError(AppAgentError):
    """Raised when a workflow id does not name an existing session."""

    def __init__(
        self,
        workflow_id: str,
        error_code: str = "UNKNOWN_SESSION",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["workflow_id"] = workflow_id

        super().__init__(
            message=f"Unknown workflow session: {workflow_id}",
            error_code=error_code,
            details=enriched_details,
        )

        self.workflow_id = workflow_id


class IllegalTransitionError(AppAgentError):
    """Raised when a requested phase change is not an edge of the state graph.

    Attributes:
        workflow_id: Session the transition was requested for.
        current_phase: Phase the session is in.
        target_phase: Phase that was requested.
    """

    def __init__(
        self,
        message: str,
        workflow_id: str,
        current_phase: str,
        target_phase: str,
        error_code: str = "ILLEGAL_TRANSITION",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["workflow_id"] = workflow_id
        enriched_details["current_phase"] = current_phase
        enriched_details["target_phase"] = target_phase

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.workflow_id = workflow_id
        self.current_phase = current_phase
        self.target_phase = target_phase


# =============================================================================
# Collaborator Errors
# =============================================================================
# CollaboratorFailureError is what the orchestrator records. The more
# specific errors below are what collaborators themselves raise.
# =============================================================================
class CollaboratorFailureError(AppAgentError):
    """Raised when an external collaborator call fails.

    Attributes:
        collaborator: Which collaborator failed ("discovery", "model", "schema").
    """

    def __init__(
        self,
        message: str,
        collaborator: str,
        error_code: str = "COLLABORATOR_FAILURE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["collaborator"] = collaborator

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.collaborator = collaborator


class MissingCredentialError(AppAgentError):
    """Raised when a model-dependent operation has no API credential.

    Attributes:
        credential: Name of the environment variable that must be set.

    Example:
        >>> raise MissingCredentialError(credential="ANTHROPIC_API_KEY")
    """

    def __init__(
        self,
        credential: str,
        message: Optional[str] = None,
        error_code: str = "MISSING_CREDENTIAL",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["credential"] = credential

        super().__init__(
            message=message or f"{credential} environment variable must be set",
            error_code=error_code,
            details=enriched_details,
        )

        self.credential = credential


class ClusterConnectionError(AppAgentError):
    """Raised by a discovery client that cannot reach the cluster."""

    def __init__(
        self,
        message: str,
        error_code: str = "CLUSTER_CONNECTION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class ResourceNotFoundError(AppAgentError):
    """Raised by a discovery client asked to explain an unknown kind."""

    def __init__(
        self,
        kind: str,
        error_code: str = "RESOURCE_NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["kind"] = kind

        super().__init__(
            message=f"Resource kind not found: {kind}",
            error_code=error_code,
            details=enriched_details,
        )

        self.kind = kind


class ProviderUnavailableError(AppAgentError):
    """Raised by a model provider whose backend call failed."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        error_code: str = "PROVIDER_UNAVAILABLE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["provider"] = provider

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.provider = provider


# =============================================================================
# State Error
# =============================================================================
class StateError(AppAgentError):
    """Raised when committing session or pattern state fails.

    Example:
        >>> raise StateError(
        ...     message="Failed to record success pattern",
        ...     error_code="PATTERN_WRITE_FAILED",
        ...     details={"workflow_id": "wf-123"},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "STATE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
