"""
appagent.orchestration - Orchestration Layer
==============================================

Components that own workflow sessions and turn stored patterns into advice:

    - RecommendationEngine: Ranks prior successes similar to a candidate config
    - SessionStore:         Persistent storage for workflow session snapshots
    - WorkflowOrchestrator: Phase state machine, commits and outcome recording
"""

from appagent.orchestration.recommendation_engine import (
    DEFAULT_SIMILARITY_THRESHOLD,
    RecommendationEngine,
    SuggestionSource,
    calculate_similarity,
    rank,
)
from appagent.orchestration.session_store import (
    FileSessionStore,
    InMemorySessionStore,
    SessionStore,
)
from appagent.orchestration.workflow_orchestrator import (
    LEGAL_TRANSITIONS,
    NEXT_PHASE,
    PhaseResult,
    WorkflowOrchestrator,
    is_legal_transition,
)

__all__ = [
    # Recommendations
    "DEFAULT_SIMILARITY_THRESHOLD",
    "RecommendationEngine",
    "SuggestionSource",
    "calculate_similarity",
    "rank",
    # Sessions
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    # Workflow
    "LEGAL_TRANSITIONS",
    "NEXT_PHASE",
    "PhaseResult",
    "WorkflowOrchestrator",
    "is_legal_transition",
]
