"""
appagent.infrastructure - Memory Layer
========================================

State that outlives a single phase: learned patterns and per-session
context.

    ┌─────────────── ORCHESTRATION LAYER ─────────────────┐
    │  WorkflowOrchestrator, RecommendationEngine          │
    └─────────────────────┬───────────────────────────────┘
                          │ records outcomes / reads context
                          ▼
    ┌─────────────── INFRASTRUCTURE LAYER ────────────────┐
    │  PatternStore (ABC)                                  │
    │    ├── InMemoryPatternStore                          │
    │    └── JsonlPatternStore                             │
    │  ContextStore / ContextRegistry                      │
    └──────────────────────────────────────────────────────┘
"""

from appagent.infrastructure.context_store import ContextRegistry, ContextStore
from appagent.infrastructure.pattern_store import (
    InMemoryPatternStore,
    JsonlPatternStore,
    PatternStore,
    lessons_key,
)

__all__ = [
    "ContextRegistry",
    "ContextStore",
    "InMemoryPatternStore",
    "JsonlPatternStore",
    "PatternStore",
    "lessons_key",
]
