"""
appagent.orchestration.workflow_orchestrator - Deployment Workflow State Machine
==================================================================================

The Workflow Orchestrator drives one deployment request through its phases,
consults the Recommendation Engine at phase boundaries and writes outcomes
back into the Pattern Store.

State Graph:

    DISCOVERY ──→ PLANNING ──→ VALIDATION ──→ DEPLOYMENT ──→ COMPLETED
        │             │             │              │
        ├─────────────┴─────────────┴──────────────┴──→ FAILED ──┐
        │                                                        ▼
        └──────────────────────────────────────────────────→ ROLLED_BACK

    Entering PLANNING or VALIDATION attaches recommendations computed from
    the session's accumulated config. Entering COMPLETED records a success
    pattern, FAILED a failure pattern (plus a lesson), ROLLED_BACK a
    failure pattern "rolled back". Terminal sessions are archived.

Phase Execution (execute_phase):

    ┌─ session lock ─┐      ┌──── no lock, bounded by timeout ────┐      ┌─ session lock ─┐
    │ load session   │      │ interactive? → process_user_input   │      │ reload session │
    │ credential chk │ ───→ │   questions → suspend               │ ───→ │ version moved? │
    │ note version   │      │ phase work via collaborators        │      │  → discard     │
    └────────────────┘      └─────────────────────────────────────┘      │ commit result  │
                                                                         └────────────────┘

    DISCOVERY   discover_resources()            → config["discovered_kinds"]
    PLANNING    generate_manifest() + explain   → config["resource_kind"], config["manifest"]
    VALIDATION  validate_manifest()             → invalid manifest fails the workflow
    DEPLOYMENT  finalize                        → config["deployed"] = True, COMPLETED

Concurrency:
    One asyncio.Lock per workflow id, created lazily under a registry lock.
    Unrelated sessions never wait on each other. Collaborator calls run
    outside the lock; the commit re-acquires it and compares
    session.version, so a result computed against a session that moved in
    the meantime is dropped instead of applied.
    A session's lock is forgotten once the session is archived; from then
    on every call against it is a no-op or a read.

Error Policy:
    - Input errors (InvalidRequirementsError, UnknownSessionError,
      IllegalTransitionError, MissingCredentialError) reach the caller and
      leave the session untouched.
    - Collaborator failures and timeouts are phase failures: the session
      moves to FAILED and is returned, nothing is raised.
    - If recording the outcome of a terminal transition fails, the stored
      session is reverted, the inconsistency is logged and StateError is
      raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Literal, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field

from appagent.core.enums import WORKING_PHASES, Phase, PhaseStatus
from appagent.core.exceptions import (
    CollaboratorFailureError,
    IllegalTransitionError,
    InvalidRequirementsError,
    MissingCredentialError,
    StateError,
    UnknownSessionError,
)
from appagent.core.models import Recommendation, SchemaDescription
from appagent.core.state import PhaseHistoryEntry, PhaseOutcome, WorkflowSession
from appagent.infrastructure.context_store import ContextRegistry, ContextStore
from appagent.infrastructure.pattern_store import InMemoryPatternStore, PatternStore
from appagent.integrations.discovery import DiscoveryClient, StaticDiscoveryClient
from appagent.integrations.llm import DeploymentAssistant
from appagent.integrations.schema import BasicSchemaValidator, SchemaValidator
from appagent.orchestration.recommendation_engine import RecommendationEngine
from appagent.orchestration.session_store import InMemorySessionStore, SessionStore


logger = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# State Graph
# =============================================================================
LEGAL_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.DISCOVERY: frozenset({Phase.PLANNING, Phase.FAILED, Phase.ROLLED_BACK}),
    Phase.PLANNING: frozenset({Phase.VALIDATION, Phase.FAILED, Phase.ROLLED_BACK}),
    Phase.VALIDATION: frozenset({Phase.DEPLOYMENT, Phase.FAILED, Phase.ROLLED_BACK}),
    Phase.DEPLOYMENT: frozenset({Phase.COMPLETED, Phase.FAILED, Phase.ROLLED_BACK}),
    Phase.FAILED: frozenset({Phase.ROLLED_BACK}),
    Phase.COMPLETED: frozenset(),
    Phase.ROLLED_BACK: frozenset(),
}

# Where a successfully executed phase advances to.
NEXT_PHASE: dict[Phase, Phase] = dict(
    zip(WORKING_PHASES, (*WORKING_PHASES[1:], Phase.COMPLETED))
)

# Transitions that attach recommendations to their outcome.
RECOMMENDATION_PHASES = frozenset({Phase.PLANNING, Phase.VALIDATION})

ROLLED_BACK_DESCRIPTION = "rolled back"
DEFAULT_FAILURE_DESCRIPTION = "workflow failed"

_OUTCOME_STATUS = {
    Phase.COMPLETED: PhaseStatus.COMPLETED,
    Phase.FAILED: PhaseStatus.FAILED,
    Phase.ROLLED_BACK: PhaseStatus.ROLLED_BACK,
}


def is_legal_transition(current: Phase, target: Phase) -> bool:
    """True when ``target`` is an edge out of ``current``."""
    return target in LEGAL_TRANSITIONS[current]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Phase Result
# =============================================================================
class PhaseResult(BaseModel):
    """What the out-of-lock part of a phase produced, waiting to be committed."""

    outcome: Literal["advance", "suspend", "fail"] = Field(description="How to commit")
    config: dict[str, Any] = Field(default_factory=dict, description="Config to merge")
    artifacts: dict[str, Any] = Field(default_factory=dict, description="Artifacts to merge")
    details: dict[str, Any] = Field(default_factory=dict, description="Outcome details")
    questions: list[str] = Field(default_factory=list, description="Questions for the user")
    next_steps: list[str] = Field(default_factory=list, description="Suggested next steps")
    clarified: bool = Field(default=False, description="Phase questions are settled")
    error: Optional[str] = Field(default=None, description="Failure description")


# =============================================================================
# Workflow Orchestrator
# =============================================================================
class WorkflowOrchestrator:
    """Owns workflow sessions and moves them through the state graph.

    Every collaborator defaults to its in-process reference implementation,
    so an orchestrator built with no arguments runs end to end.

    Attributes:
        pattern_store: Where outcomes are recorded.
        recommendation_engine: Consulted on entry into Planning/Validation.
        session_store: Where session snapshots are kept.

    Example:
        >>> orchestrator = WorkflowOrchestrator()
        >>> wf_id = await orchestrator.initialize_workflow("my-app", "web server")
        >>> await orchestrator.get_current_phase(wf_id)
        <Phase.DISCOVERY: 'Discovery'>
        >>> session = await orchestrator.run_until_blocked(wf_id)
        >>> session.current_phase
        <Phase.COMPLETED: 'Completed'>
    """

    def __init__(
        self,
        pattern_store: Optional[PatternStore] = None,
        *,
        recommendation_engine: Optional[RecommendationEngine] = None,
        session_store: Optional[SessionStore] = None,
        context_registry: Optional[ContextRegistry] = None,
        discovery_client: Optional[DiscoveryClient] = None,
        schema_validator: Optional[SchemaValidator] = None,
        assistant: Optional[DeploymentAssistant] = None,
        interactive: bool = False,
        phase_timeout_seconds: float = 120.0,
        resource_type: str = "deployment",
        similarity_threshold: float = 0.5,
    ) -> None:
        self._pattern_store = pattern_store or InMemoryPatternStore()
        self._recommendation_engine = recommendation_engine or RecommendationEngine(
            self._pattern_store, similarity_threshold=similarity_threshold
        )
        self._session_store = session_store or InMemorySessionStore()
        self._contexts = context_registry or ContextRegistry()
        self._discovery = discovery_client or StaticDiscoveryClient()
        self._validator = schema_validator or BasicSchemaValidator()
        self._assistant = assistant or DeploymentAssistant()

        self._interactive = interactive
        self._phase_timeout = phase_timeout_seconds
        self._resource_type = resource_type

        # --- Per-session locks ---
        self._locks: dict[str, asyncio.Lock] = {}
        self._locks_guard = asyncio.Lock()

        self._logger = logger.bind(component="workflow_orchestrator")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def pattern_store(self) -> PatternStore:
        return self._pattern_store

    @property
    def recommendation_engine(self) -> RecommendationEngine:
        return self._recommendation_engine

    @property
    def session_store(self) -> SessionStore:
        return self._session_store

    @property
    def context_registry(self) -> ContextRegistry:
        return self._contexts

    @property
    def assistant(self) -> DeploymentAssistant:
        return self._assistant

    @property
    def discovery_client(self) -> DiscoveryClient:
        return self._discovery

    @property
    def schema_validator(self) -> SchemaValidator:
        return self._validator

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    async def initialize_workflow(
        self,
        app_name: str,
        requirements: str,
        interactive: Optional[bool] = None,
    ) -> str:
        """Create a session in DISCOVERY and return its id.

        Not idempotent: every call creates a new session.

        Args:
            app_name: Application to deploy.
            requirements: Free-text deployment requirements.
            interactive: Ask the user before each phase. Defaults to the
                orchestrator's setting.

        Raises:
            InvalidRequirementsError: If the app name or requirements are
                blank or rejected by the schema validator. No session is
                created and no pattern is recorded.
        """
        if not app_name or not app_name.strip():
            raise InvalidRequirementsError(
                message="Application name must not be empty",
                errors=["Application name must not be empty"],
            )
        if requirements is None or not requirements.strip():
            raise InvalidRequirementsError(
                message="Requirements must not be empty",
                errors=["Requirements must not be empty"],
            )

        result = await self._call("schema", self._validator.validate_requirements(requirements))
        if not result.valid:
            raise InvalidRequirementsError(
                message=f"Invalid requirements: {'; '.join(result.errors)}",
                errors=result.errors,
            )

        session = WorkflowSession(
            app_name=app_name.strip(),
            requirements=requirements.strip(),
            resource_type=self._resource_type,
            interactive=self._interactive if interactive is None else interactive,
            config={"app_name": app_name.strip(), "requirements": requirements.strip()},
        )
        await self._session_store.save_session(session)

        self._logger.info(
            "workflow_initialized",
            workflow_id=session.workflow_id,
            app_name=session.app_name,
            interactive=session.interactive,
        )
        return session.workflow_id

    async def get_session(self, workflow_id: str) -> WorkflowSession:
        """Current snapshot of a session.

        Raises:
            UnknownSessionError: If no session has this id.
        """
        return await self._load(workflow_id)

    async def get_current_phase(self, workflow_id: str) -> Phase:
        """Current phase of a session.

        Raises:
            UnknownSessionError: If no session has this id.
        """
        return (await self._load(workflow_id)).current_phase

    async def list_sessions(self) -> list[WorkflowSession]:
        """Every known session, active and archived, oldest first."""
        return await self._session_store.list_sessions()

    # =========================================================================
    # Transitions
    # =========================================================================

    async def transition_to(
        self,
        workflow_id: str,
        target: Phase,
        error: Optional[str] = None,
    ) -> WorkflowSession:
        """Move a session along one edge of the state graph.

        A target equal to the current phase is a no-op that returns the
        unchanged session.

        Args:
            workflow_id: Session to move.
            target: Phase to move to.
            error: Failure description when ``target`` is FAILED.

        Raises:
            UnknownSessionError: If no session has this id.
            IllegalTransitionError: If ``target`` is not a successor.
            StateError: If recording a terminal outcome fails (the
                transition is reverted).
        """
        target = Phase(target)
        async with await self._lock_for(workflow_id):
            stored = await self._load(workflow_id)
            return await self._commit_transition(stored, target, error=error)

    async def rollback(self, workflow_id: str) -> WorkflowSession:
        """Roll a session back from any phase except COMPLETED.

        Rolling back an already rolled back session is a no-op.

        Raises:
            UnknownSessionError: If no session has this id.
            IllegalTransitionError: If the session is COMPLETED.
        """
        async with await self._lock_for(workflow_id):
            stored = await self._load(workflow_id)
            if stored.current_phase == Phase.COMPLETED:
                raise IllegalTransitionError(
                    message=f"Workflow {workflow_id} is completed and cannot be rolled back",
                    workflow_id=workflow_id,
                    current_phase=stored.current_phase.value,
                    target_phase=Phase.ROLLED_BACK.value,
                )
            return await self._commit_transition(stored, Phase.ROLLED_BACK)

    # =========================================================================
    # Phase Execution
    # =========================================================================

    async def execute_phase(self, workflow_id: str) -> WorkflowSession:
        """Perform the work of the session's current phase.

        Suspended and terminal sessions are returned unchanged. Otherwise
        the phase either advances, suspends with questions (interactive
        sessions) or fails; a phase failure is returned, not raised.

        Raises:
            UnknownSessionError: If no session has this id.
            MissingCredentialError: If the phase needs the model and no
                credential is configured. The session is not touched.
            StateError: If recording a terminal outcome fails.
        """
        async with await self._lock_for(workflow_id):
            session = await self._load(workflow_id)
            if session.is_terminal or session.is_suspended:
                self._logger.debug(
                    "phase_execution_skipped",
                    workflow_id=workflow_id,
                    phase=session.current_phase.value,
                    suspended=session.is_suspended,
                )
                return session
            if self._needs_model(session):
                self._assistant.check_credentials()
            context = self._scope(session).snapshot()

        self._logger.info(
            "phase_execution_started",
            workflow_id=workflow_id,
            phase=session.current_phase.value,
        )
        result = await self._run_phase(session, context)

        async with await self._lock_for(workflow_id):
            stored = await self._load(workflow_id)
            if stored.version != session.version:
                self._logger.warning(
                    "stale_phase_result_discarded",
                    workflow_id=workflow_id,
                    phase=session.current_phase.value,
                    observed_version=session.version,
                    current_version=stored.version,
                )
                return stored
            return await self._commit_phase_result(stored, result)

    async def continue_workflow(
        self,
        workflow_id: str,
        responses: Mapping[str, Any],
    ) -> WorkflowSession:
        """Resume a session with the user's answers.

        The answers are merged into the session's Context Store and handed
        to the assistant together with the accumulated context. New
        questions keep the session suspended; otherwise the questions are
        cleared and the current phase is executed.

        Terminal sessions are returned unchanged.

        Raises:
            UnknownSessionError: If no session has this id.
            MissingCredentialError: If no model credential is configured.
                Neither the context nor the session is touched.
        """
        async with await self._lock_for(workflow_id):
            stored = await self._load(workflow_id)
            if stored.is_terminal:
                return stored
            self._assistant.check_credentials()

            scope = self._scope(stored)
            scope.update(responses)
            session = await self._save_context(stored, scope)
            context = scope.snapshot()

        result = await self._clarify(
            session,
            context,
            "\n".join(f"{key}: {value}" for key, value in responses.items()),
        )

        async with await self._lock_for(workflow_id):
            stored = await self._load(workflow_id)
            if stored.version != session.version:
                self._logger.warning(
                    "stale_continuation_discarded",
                    workflow_id=workflow_id,
                    observed_version=session.version,
                    current_version=stored.version,
                )
                return stored

            if result.outcome == "fail":
                return await self._commit_phase_result(stored, result)

            updates: dict[str, Any] = {
                "pending_questions": list(result.questions),
                "next_steps": list(result.next_steps) or list(stored.next_steps),
                "config": {**stored.config, "answers": dict(context)},
            }
            if result.outcome == "advance":
                updates["clarified_phases"] = self._with_clarified(stored)
            resumed = await self._commit(stored, updates)

            self._logger.info(
                "workflow_continued",
                workflow_id=workflow_id,
                phase=resumed.current_phase.value,
                questions=len(resumed.pending_questions),
            )

        if resumed.is_suspended:
            return resumed
        return await self.execute_phase(workflow_id)

    async def run_until_blocked(self, workflow_id: str) -> WorkflowSession:
        """Execute phases until the session is terminal, suspended or stuck."""
        session = await self._load(workflow_id)
        while not session.is_terminal and not session.is_suspended:
            before = (session.current_phase, session.version)
            session = await self.execute_phase(workflow_id)
            if (session.current_phase, session.version) == before:
                break
        return session

    # =========================================================================
    # Context
    # =========================================================================

    async def set_context(self, workflow_id: str, key: str, value: Any) -> None:
        """Set one entry of a session's Context Store.

        Raises:
            StateError: If the session is archived.
        """
        async with await self._lock_for(workflow_id):
            stored = await self._load_active(workflow_id)
            scope = self._scope(stored)
            scope.set(key, value)
            await self._save_context(stored, scope)

    async def get_context(self, workflow_id: str) -> Mapping[str, Any]:
        """Read-only snapshot of a session's Context Store.

        Archived sessions answer from their last saved snapshot.
        """
        stored = await self._load(workflow_id)
        if stored.is_archived:
            return MappingProxyType(dict(stored.context))
        return self._scope(stored).snapshot()

    async def clear_context(self, workflow_id: str, key: Optional[str] = None) -> None:
        """Clear one key, or the whole Context Store when key is omitted.

        Raises:
            StateError: If the session is archived.
        """
        async with await self._lock_for(workflow_id):
            stored = await self._load_active(workflow_id)
            scope = self._scope(stored)
            scope.clear(key)
            await self._save_context(stored, scope)

    # =========================================================================
    # Phase Work (runs without the session lock)
    # =========================================================================

    async def _run_phase(self, session: WorkflowSession, context: Mapping[str, Any]) -> PhaseResult:
        clarified = False
        next_steps: list[str] = []

        if session.interactive and session.current_phase not in session.clarified_phases:
            clarification = await self._clarify(session, context, session.requirements)
            if clarification.outcome != "advance":
                return clarification
            clarified = True
            next_steps = clarification.next_steps

        handlers = {
            Phase.DISCOVERY: self._discover,
            Phase.PLANNING: self._plan,
            Phase.VALIDATION: self._validate,
            Phase.DEPLOYMENT: self._deploy,
        }
        try:
            result = await handlers[session.current_phase](session, context)
        except CollaboratorFailureError as exc:
            result = self._failure(session, exc)

        return result.model_copy(
            update={"clarified": clarified, "next_steps": next_steps or result.next_steps}
        )

    async def _clarify(
        self,
        session: WorkflowSession,
        context: Mapping[str, Any],
        user_input: str,
    ) -> PhaseResult:
        """Ask the assistant whether the current phase needs user input."""
        assistant_context = {
            "appName": session.app_name,
            "requirements": session.requirements,
            "phase": session.current_phase.value,
            "discoveredKinds": session.config.get("discovered_kinds", []),
            "answers": dict(context),
        }
        try:
            reply = await self._call(
                "model", self._assistant.process_user_input(assistant_context, user_input)
            )
        except CollaboratorFailureError as exc:
            return self._failure(session, exc)

        if reply.needs_input:
            return PhaseResult(
                outcome="suspend",
                questions=reply.questions,
                next_steps=reply.next_steps,
            )
        return PhaseResult(outcome="advance", clarified=True, next_steps=reply.next_steps)

    async def _discover(self, session: WorkflowSession, context: Mapping[str, Any]) -> PhaseResult:
        if not self._discovery.is_connected:
            await self._call("discovery", self._discovery.connect())
        resources = await self._call("discovery", self._discovery.discover_resources())
        kinds = [resource.kind for resource in resources]
        return PhaseResult(
            outcome="advance",
            config={"discovered_kinds": kinds},
            details={"resource_count": len(kinds)},
        )

    async def _plan(self, session: WorkflowSession, context: Mapping[str, Any]) -> PhaseResult:
        manifest = await self._call(
            "model",
            self._assistant.generate_manifest(
                app_name=session.app_name,
                requirements=session.requirements,
                resource_kinds=session.config.get("discovered_kinds", []),
                context=context,
                recommendations=session.recommendations,
            ),
        )
        kind = str(manifest["kind"])
        schema = await self._call("discovery", self._discovery.explain_resource(kind))
        return PhaseResult(
            outcome="advance",
            config={"resource_kind": kind, "manifest": manifest},
            artifacts={"schema": schema.model_dump(mode="json")},
            details={"resource_kind": kind},
        )

    async def _validate(self, session: WorkflowSession, context: Mapping[str, Any]) -> PhaseResult:
        manifest = session.config.get("manifest")
        if manifest is None:
            return PhaseResult(outcome="fail", error="No manifest was planned for validation")

        if "schema" in session.artifacts:
            schema = SchemaDescription.model_validate(session.artifacts["schema"])
        else:
            schema = await self._call(
                "discovery", self._discovery.explain_resource(str(manifest.get("kind", "")))
            )

        result = await self._call("schema", self._validator.validate_manifest(manifest, schema))
        if not result.valid:
            return PhaseResult(
                outcome="fail",
                error=f"Manifest validation failed: {'; '.join(result.errors)}",
                details={"errors": result.errors},
            )
        return PhaseResult(outcome="advance", details={"resource_kind": schema.kind})

    async def _deploy(self, session: WorkflowSession, context: Mapping[str, Any]) -> PhaseResult:
        return PhaseResult(outcome="advance", config={"deployed": True})

    async def _call(self, collaborator: str, awaitable: Awaitable[T]) -> T:
        """Await a collaborator call under the phase timeout.

        Raises:
            CollaboratorFailureError: On any failure or timeout, except
                MissingCredentialError which propagates unchanged.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self._phase_timeout)
        except (MissingCredentialError, CollaboratorFailureError):
            raise
        except asyncio.TimeoutError as exc:
            raise CollaboratorFailureError(
                message=f"{collaborator} call timed out after {self._phase_timeout}s",
                collaborator=collaborator,
                error_code="COLLABORATOR_TIMEOUT",
            ) from exc
        except Exception as exc:
            raise CollaboratorFailureError(
                message=str(exc) or type(exc).__name__,
                collaborator=collaborator,
                details={"error_type": type(exc).__name__},
            ) from exc

    def _failure(self, session: WorkflowSession, exc: CollaboratorFailureError) -> PhaseResult:
        self._logger.warning(
            "collaborator_failed",
            workflow_id=session.workflow_id,
            phase=session.current_phase.value,
            collaborator=exc.collaborator,
            error=exc.message,
        )
        return PhaseResult(
            outcome="fail",
            error=f"{exc.collaborator} failure: {exc.message}",
            details={"collaborator": exc.collaborator, "error_code": exc.error_code},
        )

    def _needs_model(self, session: WorkflowSession) -> bool:
        if session.current_phase == Phase.PLANNING:
            return True
        return session.interactive and session.current_phase not in session.clarified_phases

    # =========================================================================
    # Commit Helpers (caller holds the session lock)
    # =========================================================================

    async def _commit_phase_result(
        self,
        stored: WorkflowSession,
        result: PhaseResult,
    ) -> WorkflowSession:
        updates: dict[str, Any] = {
            "config": {**stored.config, **result.config},
            "artifacts": {**stored.artifacts, **result.artifacts},
        }
        if result.next_steps:
            updates["next_steps"] = list(result.next_steps)
        if result.clarified:
            updates["clarified_phases"] = self._with_clarified(stored)

        if result.outcome == "suspend":
            suspended = await self._commit(
                stored,
                {**updates, "pending_questions": list(result.questions)},
            )
            self._logger.info(
                "workflow_suspended",
                workflow_id=stored.workflow_id,
                phase=stored.current_phase.value,
                questions=len(result.questions),
            )
            return suspended

        if result.outcome == "fail":
            return await self._commit_transition(
                stored,
                Phase.FAILED,
                error=result.error,
                details=result.details,
                updates=updates,
            )

        return await self._commit_transition(
            stored,
            NEXT_PHASE[stored.current_phase],
            details=result.details,
            updates=updates,
        )

    async def _commit_transition(
        self,
        stored: WorkflowSession,
        target: Phase,
        *,
        error: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        updates: Optional[dict[str, Any]] = None,
    ) -> WorkflowSession:
        """Validate the edge, append history, save, and record terminal outcomes."""
        current = stored.current_phase
        if target == current:
            return stored
        if not is_legal_transition(current, target):
            raise IllegalTransitionError(
                message=f"Cannot move workflow from {current.value} to {target.value}",
                workflow_id=stored.workflow_id,
                current_phase=current.value,
                target_phase=target.value,
            )

        if target == Phase.FAILED:
            error = error or DEFAULT_FAILURE_DESCRIPTION
        elif target == Phase.ROLLED_BACK:
            error = ROLLED_BACK_DESCRIPTION

        candidate = stored.model_copy(update=dict(updates or {}))
        recommendations: list[Recommendation] = []
        if target in RECOMMENDATION_PHASES:
            recommendations = await self._recommendation_engine.get_recommendations(
                candidate.resource_type, candidate.config
            )

        entry = PhaseHistoryEntry(
            phase=target,
            outcome=PhaseOutcome(
                status=_OUTCOME_STATUS.get(target, PhaseStatus.ENTERED),
                recommendations=recommendations,
                details=dict(details or {}),
                error=error,
            ),
        )
        transition: dict[str, Any] = {
            **(updates or {}),
            "current_phase": target,
            "history": [*stored.history, entry],
            "recommendations": recommendations,
        }
        if target.is_terminal:
            transition["pending_questions"] = []
            transition["archived_at"] = _now()
            transition["error"] = error

        committed = await self._commit(stored, transition)
        self._logger.info(
            "phase_transition",
            workflow_id=stored.workflow_id,
            from_phase=current.value,
            to_phase=target.value,
            recommendations=len(recommendations),
        )

        if target.is_terminal:
            await self._record_outcome(stored, committed, error)
            self._contexts.drop(stored.workflow_id)
            # Archived sessions only take no-op or read-only calls from here on.
            self._locks.pop(stored.workflow_id, None)
        return committed

    async def _record_outcome(
        self,
        previous: WorkflowSession,
        committed: WorkflowSession,
        error: Optional[str],
    ) -> None:
        """Write the terminal outcome into the Pattern Store.

        On failure the stored session is put back to ``previous``. The lesson
        of a FAILED outcome is written before its failure record, so a failed
        lesson write leaves no record behind; any write that did land is
        named in the error log.
        """
        resource_type = committed.resource_type
        written: list[str] = []
        try:
            if committed.current_phase == Phase.COMPLETED:
                await self._pattern_store.record_success(resource_type, committed.config)
                written.append("success_record")
            else:
                if committed.current_phase == Phase.FAILED:
                    await self._pattern_store.append_lesson(
                        resource_type,
                        {
                            "workflowId": committed.workflow_id,
                            "phase": previous.current_phase.value,
                            "error": error,
                            "recordedAt": _now().isoformat(),
                        },
                    )
                    written.append("lesson")
                await self._pattern_store.record_failure(
                    resource_type, committed.config, error or DEFAULT_FAILURE_DESCRIPTION
                )
                written.append("failure_record")
        except Exception as exc:
            self._logger.error(
                "terminal_commit_failed",
                workflow_id=committed.workflow_id,
                phase=committed.current_phase.value,
                reverted_to=previous.current_phase.value,
                already_written=written,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            try:
                await self._session_store.save_session(previous)
            except Exception as revert_exc:
                self._logger.error(
                    "session_revert_failed",
                    workflow_id=committed.workflow_id,
                    stored_phase=committed.current_phase.value,
                    error=str(revert_exc),
                )
            raise StateError(
                message=(
                    f"Failed to record {committed.current_phase.value} outcome of "
                    f"workflow {committed.workflow_id}: {exc}"
                ),
                error_code="OUTCOME_WRITE_FAILED",
                details={"workflow_id": committed.workflow_id, "already_written": written},
            ) from exc

        self._logger.info(
            "workflow_outcome_recorded",
            workflow_id=committed.workflow_id,
            phase=committed.current_phase.value,
            resource_type=resource_type,
        )

    async def _commit(self, stored: WorkflowSession, updates: dict[str, Any]) -> WorkflowSession:
        """Save a new snapshot with a bumped version."""
        session = stored.model_copy(
            update={**updates, "version": stored.version + 1, "updated_at": _now()}
        )
        await self._session_store.save_session(session)
        return session

    async def _save_context(self, stored: WorkflowSession, scope: ContextStore) -> WorkflowSession:
        """Mirror the Context Store into the session without bumping its version."""
        session = stored.model_copy(update={"context": dict(scope.snapshot())})
        await self._session_store.save_session(session)
        return session

    @staticmethod
    def _with_clarified(session: WorkflowSession) -> list[Phase]:
        if session.current_phase in session.clarified_phases:
            return list(session.clarified_phases)
        return [*session.clarified_phases, session.current_phase]

    # =========================================================================
    # Lookup Helpers
    # =========================================================================

    async def _load(self, workflow_id: str) -> WorkflowSession:
        session = await self._session_store.get_session(workflow_id)
        if session is None:
            raise UnknownSessionError(workflow_id=workflow_id)
        return session

    async def _load_active(self, workflow_id: str) -> WorkflowSession:
        session = await self._load(workflow_id)
        if session.is_archived:
            raise StateError(
                message=f"Workflow {workflow_id} is archived; its context is read-only",
                error_code="SESSION_ARCHIVED",
                details={"workflow_id": workflow_id},
            )
        return session

    def _scope(self, session: WorkflowSession) -> ContextStore:
        """Context Store of a session, rehydrated from the session if needed."""
        if not self._contexts.has_scope(session.workflow_id) and session.context:
            return self._contexts.restore(session.workflow_id, session.context)
        return self._contexts.scope(session.workflow_id)

    async def _lock_for(self, workflow_id: str) -> asyncio.Lock:
        async with self._locks_guard:
            lock = self._locks.get(workflow_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[workflow_id] = lock
            return lock
