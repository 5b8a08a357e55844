"""
appagent.facade - App Agent Top-Level Facade
==============================================

This module implements the AppAgent facade, the single entry point that
wires the layers together and owns their lifecycle.

Architecture Context:

    ┌──────────────────────────────────────────────────┐
    │                AppAgent (Facade)                  │
    │                                                   │
    │  ┌─────────────────────────────────────────────┐ │
    │  │         Orchestration Layer                  │ │
    │  │  WorkflowOrchestrator, RecommendationEngine  │ │
    │  │  SessionStore                                │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │         Infrastructure Layer                 │ │
    │  │  PatternStore (memory / JSONL), Contexts     │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │         Integration Layer                    │ │
    │  │  Discovery, SchemaValidator, Assistant(LLM)  │ │
    │  └─────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────┘

    With config.state_dir set, patterns go to ``<state_dir>/patterns.jsonl``
    and sessions to ``<state_dir>/sessions/``. Otherwise both live in memory.

Usage:
    >>> async with AppAgent(AppAgentConfig()) as agent:
    ...     session = await agent.deploy("my-app", "nginx web server, 2 replicas")
    ...     session.current_phase
    <Phase.COMPLETED: 'Completed'>
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from appagent.core.config import AppAgentConfig
from appagent.core.models import FailureRecord, Recommendation, ResourceSuggestion, SuccessRecord
from appagent.core.state import WorkflowSession
from appagent.infrastructure.context_store import ContextRegistry
from appagent.infrastructure.pattern_store import (
    InMemoryPatternStore,
    JsonlPatternStore,
    PatternStore,
)
from appagent.integrations.discovery import DiscoveryClient, StaticDiscoveryClient
from appagent.integrations.llm import BaseLLMProvider, DeploymentAssistant
from appagent.integrations.schema import BasicSchemaValidator, SchemaValidator
from appagent.orchestration.recommendation_engine import RecommendationEngine, SuggestionSource
from appagent.orchestration.session_store import (
    FileSessionStore,
    InMemorySessionStore,
    SessionStore,
)
from appagent.orchestration.workflow_orchestrator import WorkflowOrchestrator


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

PATTERN_LOG_FILE = "patterns.jsonl"
SESSION_DIRECTORY = "sessions"


class AppAgent:
    """Top-level facade for the deployment agent.

    Lifecycle:
        1. ``AppAgent(config)``: build every component
        2. ``await initialize()``: connect the pattern and session stores
        3. ``await deploy(...)`` / ``start_workflow(...)`` / ``recommend(...)``
        4. ``await shutdown()``: disconnect the stores

    Any component can be replaced through a keyword argument; tests pass
    a MockLLMProvider or a failing StaticDiscoveryClient this way.
    """

    def __init__(
        self,
        config: Optional[AppAgentConfig] = None,
        *,
        pattern_store: Optional[PatternStore] = None,
        session_store: Optional[SessionStore] = None,
        discovery_client: Optional[DiscoveryClient] = None,
        schema_validator: Optional[SchemaValidator] = None,
        llm_provider: Optional[BaseLLMProvider] = None,
        suggestion_sources: tuple[SuggestionSource, ...] = (),
    ) -> None:
        """Initialize the facade.

        Args:
            config: Agent configuration. Defaults to AppAgentConfig(), which
                reads APP_AGENT_* environment variables.
            pattern_store: Custom pattern store. Defaults to a JSONL store
                under state_dir, or an in-memory store.
            session_store: Custom session store. Defaults to a file store
                under state_dir, or an in-memory store.
            discovery_client: Defaults to StaticDiscoveryClient.
            schema_validator: Defaults to BasicSchemaValidator.
            llm_provider: Ready provider. Defaults to one created from
                config.llm on first use.
            suggestion_sources: Extra recommendation sources.
        """
        # --- Configuration ---
        self._config = config or AppAgentConfig()
        state_path = self._config.state_path

        # --- Infrastructure Layer ---
        if pattern_store is None:
            pattern_store = (
                JsonlPatternStore(state_path / PATTERN_LOG_FILE)
                if state_path is not None
                else InMemoryPatternStore()
            )
        self._pattern_store = pattern_store
        self._contexts = ContextRegistry()

        # --- Integration Layer ---
        self._discovery = discovery_client or StaticDiscoveryClient()
        self._validator = schema_validator or BasicSchemaValidator()
        self._assistant = DeploymentAssistant(llm_config=self._config.llm, provider=llm_provider)

        # --- Orchestration Layer ---
        if session_store is None:
            session_store = (
                FileSessionStore(state_path / SESSION_DIRECTORY)
                if state_path is not None
                else InMemorySessionStore()
            )
        self._session_store = session_store
        self._recommendations = RecommendationEngine(
            self._pattern_store,
            similarity_threshold=self._config.similarity_threshold,
            extra_sources=suggestion_sources,
        )
        self._orchestrator = WorkflowOrchestrator(
            self._pattern_store,
            recommendation_engine=self._recommendations,
            session_store=self._session_store,
            context_registry=self._contexts,
            discovery_client=self._discovery,
            schema_validator=self._validator,
            assistant=self._assistant,
            interactive=self._config.interactive,
            phase_timeout_seconds=self._config.phase_timeout_seconds,
            resource_type=self._config.pattern_type,
        )

        # --- Tracking ---
        self._initialized = False
        self._logger = logger.bind(component="app_agent")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> AppAgentConfig:
        return self._config

    @property
    def workflow(self) -> WorkflowOrchestrator:
        """The Workflow Orchestrator, for direct phase control."""
        return self._orchestrator

    @property
    def memory(self) -> PatternStore:
        """The Pattern Store."""
        return self._pattern_store

    @property
    def recommendations(self) -> RecommendationEngine:
        return self._recommendations

    @property
    def sessions(self) -> SessionStore:
        return self._session_store

    @property
    def discovery(self) -> DiscoveryClient:
        return self._discovery

    @property
    def schema(self) -> SchemaValidator:
        return self._validator

    @property
    def assistant(self) -> DeploymentAssistant:
        return self._assistant

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Connect the stores. Idempotent.

        Raises:
            StateError: If a file-backed store cannot be opened or its
                pattern log is corrupt.
        """
        if self._initialized:
            self._logger.debug("app_agent_already_initialized")
            return

        self._logger.info("app_agent_initializing", state_dir=str(self._config.state_path))
        await self._pattern_store.connect()
        await self._session_store.connect()

        self._initialized = True
        self._logger.info("app_agent_initialized")

    async def shutdown(self) -> None:
        """Disconnect the stores in reverse order. Idempotent."""
        if not self._initialized:
            self._logger.debug("app_agent_not_initialized_skipping_shutdown")
            return

        self._logger.info("app_agent_shutting_down")
        await self._session_store.disconnect()
        await self._pattern_store.disconnect()

        self._initialized = False
        self._logger.info("app_agent_shutdown_complete")

    async def __aenter__(self) -> AppAgent:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Workflows
    # =========================================================================

    async def start_workflow(
        self,
        app_name: str,
        requirements: str,
        interactive: Optional[bool] = None,
    ) -> WorkflowSession:
        """Create a workflow session in Discovery without running it."""
        self._ensure_initialized()
        workflow_id = await self._orchestrator.initialize_workflow(
            app_name, requirements, interactive=interactive
        )
        return await self._orchestrator.get_session(workflow_id)

    async def deploy(
        self,
        app_name: str,
        requirements: str,
        interactive: Optional[bool] = None,
    ) -> WorkflowSession:
        """Create a workflow and run it until it finishes or needs input.

        Raises:
            InvalidRequirementsError: If the requirements are rejected.
            MissingCredentialError: If the model provider has no credential.
        """
        self._assistant.check_credentials()
        session = await self.start_workflow(app_name, requirements, interactive)
        self._logger.info(
            "deployment_starting",
            workflow_id=session.workflow_id,
            app_name=app_name,
        )

        session = await self._orchestrator.run_until_blocked(session.workflow_id)

        self._logger.info(
            "deployment_paused" if session.is_suspended else "deployment_finished",
            workflow_id=session.workflow_id,
            phase=session.current_phase.value,
        )
        return session

    async def continue_workflow(
        self,
        workflow_id: str,
        responses: dict[str, Any],
    ) -> WorkflowSession:
        """Answer a suspended workflow and run it until it blocks again."""
        self._ensure_initialized()
        session = await self._orchestrator.continue_workflow(workflow_id, responses)
        if session.is_terminal or session.is_suspended:
            return session
        return await self._orchestrator.run_until_blocked(workflow_id)

    async def rollback(self, workflow_id: str) -> WorkflowSession:
        self._ensure_initialized()
        return await self._orchestrator.rollback(workflow_id)

    async def status(self, workflow_id: str) -> WorkflowSession:
        self._ensure_initialized()
        return await self._orchestrator.get_session(workflow_id)

    # =========================================================================
    # Learning & Recommendations
    # =========================================================================

    async def learned_patterns(
        self,
        resource_type: Optional[str] = None,
    ) -> tuple[list[SuccessRecord], list[FailureRecord], list[Any]]:
        """Successes, failures and lessons recorded for a pattern type."""
        self._ensure_initialized()
        resource_type = resource_type or self._config.pattern_type
        return (
            await self._pattern_store.successes_for(resource_type),
            await self._pattern_store.failures_for(resource_type),
            await self._pattern_store.get_lessons(resource_type),
        )

    async def recommend_config(
        self,
        partial_config: Any,
        resource_type: Optional[str] = None,
    ) -> list[Recommendation]:
        """Recommendations for a candidate configuration."""
        self._ensure_initialized()
        return await self._recommendations.get_recommendations(
            resource_type or self._config.pattern_type, partial_config
        )

    async def recommend_resources(self, intent: str) -> list[ResourceSuggestion]:
        """Rank the cluster's resource kinds for a deployment intent.

        Raises:
            MissingCredentialError: If the model provider has no credential.
        """
        self._ensure_initialized()
        self._assistant.check_credentials()
        if not self._discovery.is_connected:
            await self._discovery.connect()
        resources = await self._discovery.discover_resources()
        return await self._assistant.rank_resources(intent, resources)

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "AppAgent has not been initialized. "
                "Call await agent.initialize() or use 'async with AppAgent() as agent:'"
            )

    def __repr__(self) -> str:
        return (
            f"AppAgent(initialized={self._initialized}, "
            f"provider={self._config.llm.provider!r}, "
            f"state_dir={self._config.state_dir!r})"
        )
