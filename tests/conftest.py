"""
Shared Test Fixtures for App Agent
====================================

This module provides reusable pytest fixtures used across the entire
test suite. Fixtures are organized by layer:

    1. Configuration fixtures
    2. Infrastructure fixtures (PatternStore, ContextRegistry)
    3. Integration fixtures (MockLLMProvider, assistant, discovery, schema)
    4. Orchestration fixtures (RecommendationEngine, SessionStore, Orchestrator)
    5. Facade fixtures (AppAgent)

Every collaborator is an in-process reference implementation; no test
needs a cluster, a network connection or an API key.
"""

from __future__ import annotations

import pytest

from appagent.core.config import AppAgentConfig, LLMConfig
from appagent.facade import AppAgent
from appagent.infrastructure.context_store import ContextRegistry
from appagent.infrastructure.pattern_store import InMemoryPatternStore
from appagent.integrations.discovery import StaticDiscoveryClient
from appagent.integrations.llm.assistant import DeploymentAssistant
from appagent.integrations.llm.mock import MockLLMProvider
from appagent.integrations.schema import BasicSchemaValidator
from appagent.orchestration.recommendation_engine import RecommendationEngine
from appagent.orchestration.session_store import InMemorySessionStore
from appagent.orchestration.workflow_orchestrator import WorkflowOrchestrator


# =============================================================================
# Environment
# =============================================================================

@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keep developer machine settings out of the tests."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    for name in (
        "APP_AGENT_STATE_DIR",
        "APP_AGENT_INTERACTIVE",
        "APP_AGENT_SIMILARITY_THRESHOLD",
        "APP_AGENT_LLM__PROVIDER",
        "APP_AGENT_LLM__API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config():
    """App Agent configuration with defaults (mock provider, in-memory stores)."""
    return AppAgentConfig()


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def pattern_store():
    """Fresh InMemoryPatternStore."""
    return InMemoryPatternStore()


@pytest.fixture
def context_registry():
    """Fresh ContextRegistry."""
    return ContextRegistry()


# =============================================================================
# Integrations
# =============================================================================

@pytest.fixture
def mock_llm_provider():
    """Fresh MockLLMProvider with no queued responses."""
    return MockLLMProvider()


@pytest.fixture
def assistant(mock_llm_provider):
    """DeploymentAssistant talking to the mock provider."""
    return DeploymentAssistant(LLMConfig(provider="mock"), provider=mock_llm_provider)


@pytest.fixture
def discovery_client():
    """StaticDiscoveryClient with the built-in catalog."""
    return StaticDiscoveryClient()


@pytest.fixture
def schema_validator():
    """BasicSchemaValidator with default limits."""
    return BasicSchemaValidator()


# =============================================================================
# Orchestration
# =============================================================================

@pytest.fixture
def recommendation_engine(pattern_store):
    """RecommendationEngine over the shared pattern store (threshold 0.5)."""
    return RecommendationEngine(pattern_store)


@pytest.fixture
def session_store():
    """Fresh InMemorySessionStore."""
    return InMemorySessionStore()


@pytest.fixture
def orchestrator(
    pattern_store,
    recommendation_engine,
    session_store,
    context_registry,
    discovery_client,
    schema_validator,
    assistant,
):
    """Non-interactive WorkflowOrchestrator wired to every fixture above."""
    return WorkflowOrchestrator(
        pattern_store,
        recommendation_engine=recommendation_engine,
        session_store=session_store,
        context_registry=context_registry,
        discovery_client=discovery_client,
        schema_validator=schema_validator,
        assistant=assistant,
        phase_timeout_seconds=5.0,
    )


@pytest.fixture
def interactive_orchestrator(
    pattern_store,
    recommendation_engine,
    session_store,
    context_registry,
    discovery_client,
    schema_validator,
    assistant,
):
    """Same wiring as ``orchestrator`` but new sessions are interactive."""
    return WorkflowOrchestrator(
        pattern_store,
        recommendation_engine=recommendation_engine,
        session_store=session_store,
        context_registry=context_registry,
        discovery_client=discovery_client,
        schema_validator=schema_validator,
        assistant=assistant,
        interactive=True,
        phase_timeout_seconds=5.0,
    )


# =============================================================================
# Facade
# =============================================================================

@pytest.fixture
def app_agent(config, mock_llm_provider):
    """AppAgent (not yet initialized) using the shared mock provider."""
    return AppAgent(config, llm_provider=mock_llm_provider)
