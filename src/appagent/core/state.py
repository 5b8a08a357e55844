"""
appagent.core.state - Workflow Session State
==============================================

This module defines the dynamic state of one deployment workflow: the
WorkflowSession. Sessions are owned by the WorkflowOrchestrator and only
change through phase transitions and phase execution.

State Architecture:
    The SessionStore (orchestration/session_store.py) persists sessions in
    memory or as JSON files. Each commit bumps `version`, which lets the
    orchestrator detect that a session moved while a collaborator call was
    in flight.

    ┌──────────────────────────┐
    │      WorkflowSession     │
    │                          │
    │ current_phase: Planning  │      history: [(Planning, outcome), ...]
    │ pending_questions: [...] │ ───→ config:  accumulated configuration
    │ version: 4               │      context: last Context Store snapshot
    └──────────────────────────┘

Suspension:
    A session waiting for user answers simply has a non-empty
    `pending_questions` list. Nothing blocks; any worker holding the
    workflow id can resume it with continue_workflow().

Design Decision - Immutable Snapshots:
    Like the rest of the models, sessions are updated with model_copy().
    The orchestrator builds the next snapshot and stores it in one step,
    so readers never observe a half-applied transition.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from appagent.core.enums import Phase, PhaseStatus
from appagent.core.models import Recommendation


# =============================================================================
# Helper Functions
# =============================================================================
def _generate_id() -> str:
    """Generate a unique workflow identifier (UUID4)."""
    return str(uuid4())


def _now() -> datetime:
    """Get the current UTC timestamp."""
    return datetime.now(timezone.utc)


# =============================================================================
# Phase Outcome
# =============================================================================
class PhaseOutcome(BaseModel):
    """What happened when a session entered (or left) a phase.

    Attributes:
        status: Kind of outcome (entered, failed, rolled_back, completed).
        recommendations: Prior-pattern recommendations attached on entry
            into Planning and Validation.
        details: Phase-specific facts (discovered kinds, manifest kind, ...).
        error: Error description for failed and rolled back outcomes.
    """

    status: PhaseStatus = Field(default=PhaseStatus.ENTERED, description="Outcome kind")
    recommendations: list[Recommendation] = Field(
        default_factory=list,
        description="Recommendations attached to the transition",
    )
    details: dict[str, Any] = Field(default_factory=dict, description="Phase facts")
    error: Optional[str] = Field(default=None, description="Error description, if any")


class PhaseHistoryEntry(BaseModel):
    """One (phase, outcome) pair in a session's history."""

    phase: Phase = Field(description="Phase the session moved into")
    outcome: PhaseOutcome = Field(default_factory=PhaseOutcome, description="Transition outcome")
    recorded_at: datetime = Field(default_factory=_now, description="When it happened (UTC)")


# =============================================================================
# Workflow Session
# =============================================================================
class WorkflowSession(BaseModel):
    """Complete runtime state of one deployment workflow.

    Attributes:
        workflow_id: Opaque session identifier.
        app_name: Application being deployed.
        requirements: Free-text requirements supplied at start.
        resource_type: Pattern collection outcomes are recorded under.
        current_phase: Where the session is in the state graph.
        history: Ordered (phase, outcome) entries, oldest first.
        pending_questions: Questions awaiting answers; non-empty means
            the session is suspended.
        config: Accumulated configuration. This is the candidate for
            recommendations and the payload of recorded patterns.
        artifacts: Phase work products that are not part of the learned
            pattern (e.g. the resource schema used for validation).
        context: Last snapshot of the session's Context Store, kept so a
            different worker can rehydrate the store on resume.
        clarified_phases: Phases whose interactive questions are settled.
        next_steps: Next steps suggested by the assistant.
        recommendations: Recommendations from the latest transition.
        interactive: Whether phases ask the user before doing work.
        error: Error description once the session failed.
        version: Incremented on every commit.
        created_at / updated_at / archived_at: Lifecycle timestamps.

    Example:
        >>> session = WorkflowSession(app_name="my-app", requirements="web server")
        >>> session.current_phase
        <Phase.DISCOVERY: 'Discovery'>
    """

    workflow_id: str = Field(
        default_factory=_generate_id,
        description="Opaque session identifier (UUID4)",
    )
    app_name: str = Field(description="Application name")
    requirements: str = Field(description="Free-text deployment requirements")
    resource_type: str = Field(
        default="deployment",
        description="Pattern collection for recorded outcomes",
    )
    current_phase: Phase = Field(default=Phase.DISCOVERY, description="Current phase")
    history: list[PhaseHistoryEntry] = Field(
        default_factory=list,
        description="Ordered (phase, outcome) history",
    )
    pending_questions: list[str] = Field(
        default_factory=list,
        description="Questions awaiting user answers",
    )
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Accumulated configuration",
    )
    artifacts: dict[str, Any] = Field(
        default_factory=dict,
        description="Phase work products outside the learned pattern",
    )
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Last Context Store snapshot",
    )
    clarified_phases: list[Phase] = Field(
        default_factory=list,
        description="Phases whose questions are answered",
    )
    next_steps: list[str] = Field(default_factory=list, description="Suggested next steps")
    recommendations: list[Recommendation] = Field(
        default_factory=list,
        description="Recommendations from the latest transition",
    )
    interactive: bool = Field(default=False, description="Ask before each phase")
    error: Optional[str] = Field(default=None, description="Failure description")
    version: int = Field(default=0, ge=0, description="Commit counter")
    created_at: datetime = Field(default_factory=_now, description="Creation timestamp (UTC)")
    updated_at: datetime = Field(default_factory=_now, description="Last commit timestamp (UTC)")
    archived_at: Optional[datetime] = Field(
        default=None,
        description="When the session reached a terminal phase",
    )

    @property
    def is_suspended(self) -> bool:
        """True while the session waits for user answers."""
        return bool(self.pending_questions)

    @property
    def is_terminal(self) -> bool:
        """True once the session is Completed, Failed or RolledBack."""
        return self.current_phase.is_terminal

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def summary(self) -> dict[str, Any]:
        """Compact view used by status output."""
        return {
            "workflowId": self.workflow_id,
            "appName": self.app_name,
            "phase": self.current_phase.value,
            "questions": list(self.pending_questions),
            "nextSteps": list(self.next_steps),
            "error": self.error,
            "history": [entry.phase.value for entry in self.history],
        }
