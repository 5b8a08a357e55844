"""
appagent.core.enums - Type-Safe Enumerations
==============================================

This module defines the enumeration types used throughout App Agent.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON/YAML (Pydantic-friendly)
    - They can be compared with plain strings: Phase.DISCOVERY == "Discovery"
    - They round-trip through the CLI result envelope unchanged

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  ORCHESTRATION LAYER                                            │
    │    Phase: Deployment workflow state machine                     │
    │    PhaseStatus: Outcome recorded for each phase history entry   │
    ├─────────────────────────────────────────────────────────────────┤
    │  INTERFACE LAYER                                                │
    │    OutputFormat: How CLI results are rendered                   │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Workflow Phase Enumeration
# =============================================================================
# The deployment workflow walks these phases left to right:
#
#   DISCOVERY → PLANNING → VALIDATION → DEPLOYMENT → COMPLETED
#        │          │           │            │
#        └──────────┴───────────┴────────────┴──→ FAILED | ROLLED_BACK
#
# The legal edges live in orchestration/workflow_orchestrator.py
# (LEGAL_TRANSITIONS). Values are capitalized because they are shown to
# users verbatim ("phase": "Discovery").
# =============================================================================
class Phase(str, Enum):
    """Named stages of the deployment workflow state machine.

    Terminal phases:
        COMPLETED:   Deployment finished, success pattern recorded.
        FAILED:      A phase failed, failure pattern recorded.
        ROLLED_BACK: The caller rolled the deployment back.

    Usage:
        >>> Phase.DISCOVERY == "Discovery"
        True
        >>> Phase.COMPLETED.is_terminal
        True
    """

    DISCOVERY = "Discovery"       # Pull cluster facts from the discovery client
    PLANNING = "Planning"         # Generate a manifest with the model provider
    VALIDATION = "Validation"     # Validate the manifest against its schema
    DEPLOYMENT = "Deployment"     # Finalize and commit the deployment
    COMPLETED = "Completed"
    FAILED = "Failed"
    ROLLED_BACK = "RolledBack"

    @property
    def is_terminal(self) -> bool:
        """True for phases a session never leaves on its own."""
        return self in (Phase.COMPLETED, Phase.FAILED, Phase.ROLLED_BACK)


# Phases that do real work, in execution order.
WORKING_PHASES: tuple[Phase, ...] = (
    Phase.DISCOVERY,
    Phase.PLANNING,
    Phase.VALIDATION,
    Phase.DEPLOYMENT,
)


# =============================================================================
# Phase Outcome Status
# =============================================================================
class PhaseStatus(str, Enum):
    """Status stored on each (phase, outcome) history entry.

    ENTERED:     The session moved into the phase.
    FAILED:      The phase failed; the session moved to FAILED.
    ROLLED_BACK: The caller rolled the session back.
    COMPLETED:   The workflow reached COMPLETED.
    """

    ENTERED = "entered"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    COMPLETED = "completed"


# =============================================================================
# Output Format
# =============================================================================
class OutputFormat(str, Enum):
    """Rendering formats supported by the CLI result formatter."""

    JSON = "json"
    YAML = "yaml"
