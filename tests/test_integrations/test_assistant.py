"""
Tests for appagent.integrations.llm.assistant
===============================================

These tests verify the DeploymentAssistant against the MockLLMProvider:
    - Reply parsing (JSON, YAML, Markdown code fences, garbage)
    - process_user_input → AssistantReply
    - generate_manifest fills metadata.name and passes context along
    - rank_resources drops unknown kinds, clamps and sorts scores
    - Lazy provider creation and credential checks
"""

import pytest

from appagent.core.config import LLMConfig
from appagent.core.enums import Phase
from appagent.core.exceptions import CollaboratorFailureError, MissingCredentialError
from appagent.core.models import Recommendation, ResourceDescriptor
from appagent.integrations.llm.assistant import DeploymentAssistant, parse_model_payload
from appagent.integrations.llm.mock import MockLLMProvider
from appagent.integrations.llm.prompts import MANIFEST_SYSTEM_PROMPT, RESOURCES_HEADING


def _resources(*kinds: str) -> list[ResourceDescriptor]:
    return [ResourceDescriptor(kind=kind, api_version="v1") for kind in kinds]


# =============================================================================
# Test: parse_model_payload
# =============================================================================
class TestParseModelPayload:
    """Tests for model reply parsing."""

    def test_plain_json(self) -> None:
        assert parse_model_payload('{"questions": []}') == {"questions": []}

    def test_code_fenced_json(self) -> None:
        content = '```json\n{"kind": "Service"}\n```'
        assert parse_model_payload(content) == {"kind": "Service"}

    def test_yaml_is_accepted(self) -> None:
        assert parse_model_payload("kind: Deployment\nreplicas: 2") == {
            "kind": "Deployment",
            "replicas": 2,
        }

    def test_unparseable_reply_is_collaborator_failure(self) -> None:
        with pytest.raises(CollaboratorFailureError) as exc_info:
            parse_model_payload("{unbalanced: [")
        assert exc_info.value.collaborator == "model"


# =============================================================================
# Test: process_user_input
# =============================================================================
class TestProcessUserInput:
    """Tests for clarification requests."""

    async def test_default_reply_needs_no_input(self, assistant) -> None:
        reply = await assistant.process_user_input({"phase": "Discovery"}, "web server")
        assert reply.needs_input is False
        assert reply.next_steps == ["Review the generated manifest before deployment"]

    async def test_questions_are_parsed(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_json(
            {"phase": "Planning", "questions": ["Which database?"], "next_steps": "Answer"}
        )

        reply = await assistant.process_user_input({}, "web server")

        assert reply.phase == Phase.PLANNING
        assert reply.questions == ["Which database?"]
        assert reply.next_steps == ["Answer"]
        assert reply.needs_input is True

    async def test_unknown_phase_is_ignored(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_json({"phase": "Brainstorming", "questions": []})
        reply = await assistant.process_user_input({}, "web server")
        assert reply.phase is None

    async def test_context_and_input_reach_the_prompt(self, assistant, mock_llm_provider) -> None:
        await assistant.process_user_input({"answers": {"database": "MySQL"}}, "db: MySQL")

        prompt = mock_llm_provider.call_history[0]["prompt"]
        assert "database: MySQL" in prompt
        assert prompt.endswith("User input:\ndb: MySQL")

    async def test_non_object_reply_fails(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_response("Sure, happy to help!")
        with pytest.raises(CollaboratorFailureError):
            await assistant.process_user_input({}, "web server")


# =============================================================================
# Test: generate_manifest
# =============================================================================
class TestGenerateManifest:
    """Tests for manifest generation."""

    async def test_name_defaults_to_app_name(self, assistant, mock_llm_provider) -> None:
        manifest = await assistant.generate_manifest("my-app", "web server", ["Deployment"])

        assert manifest["metadata"]["name"] == "my-app"
        assert manifest["kind"] == "Deployment"
        assert mock_llm_provider.call_history[0]["system_prompt"] == MANIFEST_SYSTEM_PROMPT

    async def test_model_name_is_kept(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_json(
            {"apiVersion": "v1", "kind": "Service", "metadata": {"name": "frontend"}}
        )
        manifest = await assistant.generate_manifest("my-app", "web server", ["Service"])
        assert manifest["metadata"]["name"] == "frontend"

    async def test_prompt_lists_kinds_answers_and_recommendations(
        self, assistant, mock_llm_provider
    ) -> None:
        await assistant.generate_manifest(
            "my-app",
            "web server",
            ["Deployment", "Service"],
            context={"replicas": 3},
            recommendations=[Recommendation(suggestion="Reuse web config", confidence=0.5)],
        )

        prompt = mock_llm_provider.call_history[0]["prompt"]
        assert f"{RESOURCES_HEADING}\n- Deployment\n- Service" in prompt
        assert "replicas: 3" in prompt
        assert "- Reuse web config (confidence 0.50)" in prompt

    async def test_reply_without_kind_fails(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_json({"metadata": {"name": "x"}})
        with pytest.raises(CollaboratorFailureError, match="kind"):
            await assistant.generate_manifest("my-app", "web server", [])


# =============================================================================
# Test: rank_resources
# =============================================================================
class TestRankResources:
    """Tests for resource ranking."""

    async def test_default_ranking_follows_listing(self, assistant) -> None:
        suggestions = await assistant.rank_resources("web", _resources("Deployment", "Service"))
        assert [(s.kind, s.score) for s in suggestions] == [
            ("Deployment", 0.9),
            ("Service", 0.8),
        ]

    async def test_unknown_kinds_dropped_and_scores_clamped(
        self, assistant, mock_llm_provider
    ) -> None:
        mock_llm_provider.queue_json(
            {
                "suggestions": [
                    {"kind": "Service", "score": 0.4, "reason": "expose it"},
                    {"kind": "MadeUpKind", "score": 0.99},
                    {"kind": "Deployment", "score": 7},
                    {"kind": "ConfigMap", "score": "high"},
                ]
            }
        )

        suggestions = await assistant.rank_resources(
            "web", _resources("Deployment", "Service", "ConfigMap")
        )

        assert [(s.kind, s.score) for s in suggestions] == [
            ("Deployment", 1.0),
            ("Service", 0.4),
            ("ConfigMap", 0.0),
        ]
        assert suggestions[1].reason == "expose it"

    async def test_bare_list_reply_is_accepted(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_json([{"kind": "Service", "score": 0.5}])
        suggestions = await assistant.rank_resources("web", _resources("Service"))
        assert [s.kind for s in suggestions] == ["Service"]

    async def test_reply_without_suggestions_fails(self, assistant, mock_llm_provider) -> None:
        mock_llm_provider.queue_json({"ranking": []})
        with pytest.raises(CollaboratorFailureError):
            await assistant.rank_resources("web", _resources("Service"))


# =============================================================================
# Test: Provider Lifecycle
# =============================================================================
class TestProviderLifecycle:
    """Tests for lazy provider creation and credential checks."""

    async def test_provider_created_on_first_use(self) -> None:
        assistant = DeploymentAssistant(LLMConfig(provider="mock"))
        assert assistant.provider is None

        await assistant.process_user_input({}, "web server")

        assert isinstance(assistant.provider, MockLLMProvider)

    def test_missing_key_is_reported_before_any_call(self) -> None:
        assistant = DeploymentAssistant(LLMConfig(provider="anthropic"))
        with pytest.raises(MissingCredentialError):
            assistant.check_credentials()
        with pytest.raises(MissingCredentialError):
            assistant.ensure_ready()
        assert assistant.provider is None

    def test_injected_provider_skips_credential_check(self) -> None:
        provider = MockLLMProvider()
        assistant = DeploymentAssistant(LLMConfig(provider="anthropic"), provider=provider)
        assistant.check_credentials()
        assert assistant.ensure_ready() is provider
