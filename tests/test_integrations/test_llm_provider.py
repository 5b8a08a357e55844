"""
Tests for appagent.integrations.llm providers
===============================================

These tests verify the LLM provider abstraction layer:
    - LLMResponse and LLMUsage models
    - MockLLMProvider (queue, task-tagged smart defaults, call tracking,
      error simulation)
    - create_llm_provider / check_credentials
    - AnthropicProvider request building and response mapping, with the
      SDK client replaced by a stub

No real API calls are made.
"""

import json
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from appagent.core.config import LLMConfig
from appagent.core.exceptions import (
    ConfigurationError,
    MissingCredentialError,
    ProviderUnavailableError,
)
from appagent.integrations.llm.anthropic import AnthropicProvider
from appagent.integrations.llm.base import LLMResponse, LLMUsage
from appagent.integrations.llm.factory import check_credentials, create_llm_provider
from appagent.integrations.llm.mock import MockLLMProvider
from appagent.integrations.llm.prompts import (
    CLARIFY_SYSTEM_PROMPT,
    MANIFEST_SYSTEM_PROMPT,
    RANK_SYSTEM_PROMPT,
    RESOURCES_HEADING,
)


# =============================================================================
# Tests: LLMUsage / LLMResponse Models
# =============================================================================
class TestResponseModels:
    """Tests for the provider-neutral response models."""

    def test_usage_defaults_to_zero(self) -> None:
        usage = LLMUsage()
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (0, 0, 0)

    def test_response_defaults(self) -> None:
        resp = LLMResponse(content="{}", model="mock-model")
        assert resp.finish_reason == "stop"
        assert resp.usage.total_tokens == 0
        assert resp.created_at.tzinfo is not None


# =============================================================================
# Tests: MockLLMProvider Queue
# =============================================================================
class TestMockLLMProviderQueue:
    """Tests for the response queue mechanism."""

    async def test_queue_fifo_order(self) -> None:
        """Queued responses are returned in FIFO order, whatever the task."""
        provider = MockLLMProvider()
        provider.queue_response("First")
        provider.queue_response("Second")

        r1 = await provider.generate_with_system(MANIFEST_SYSTEM_PROMPT, "p1")
        r2 = await provider.generate("p2")

        assert (r1.content, r2.content) == ("First", "Second")
        assert provider.queue_size == 0

    async def test_queue_json(self) -> None:
        provider = MockLLMProvider()
        provider.queue_json({"questions": ["Which port?"]})

        resp = await provider.generate("anything")
        assert json.loads(resp.content) == {"questions": ["Which port?"]}

    async def test_queue_llm_response(self) -> None:
        provider = MockLLMProvider()
        provider.queue_llm_response(
            LLMResponse(content="Custom", model="special-model", finish_reason="length")
        )

        resp = await provider.generate("test")
        assert resp.model == "special-model"
        assert resp.finish_reason == "length"

    def test_clear_queue(self) -> None:
        provider = MockLLMProvider()
        provider.queue_response("A")
        provider.clear_queue()
        assert provider.queue_size == 0


# =============================================================================
# Tests: MockLLMProvider Smart Defaults
# =============================================================================
class TestMockLLMProviderSmartDefaults:
    """Tests for the task-tagged default replies."""

    async def test_clarify_default_has_no_questions(self) -> None:
        provider = MockLLMProvider()
        resp = await provider.generate_with_system(CLARIFY_SYSTEM_PROMPT, "web server")

        payload = json.loads(resp.content)
        assert payload["questions"] == []
        assert payload["nextSteps"]
        assert resp.metadata["source"] == "smart_default"

    async def test_manifest_default_is_a_deployment(self) -> None:
        provider = MockLLMProvider()
        resp = await provider.generate_with_system(MANIFEST_SYSTEM_PROMPT, "web server")

        manifest = json.loads(resp.content)
        assert manifest["apiVersion"] == "apps/v1"
        assert manifest["kind"] == "Deployment"
        assert "name" not in manifest["metadata"]
        assert manifest["spec"]["selector"]["matchLabels"]

    async def test_rank_default_scores_listed_kinds(self) -> None:
        provider = MockLLMProvider()
        prompt = "\n".join(
            ["Intent: web", RESOURCES_HEADING, "- Deployment (apps/v1)", "- Service (v1)"]
        )

        resp = await provider.generate_with_system(RANK_SYSTEM_PROMPT, prompt)

        suggestions = json.loads(resp.content)["suggestions"]
        assert [(s["kind"], s["score"]) for s in suggestions] == [
            ("Deployment", 0.9),
            ("Service", 0.8),
        ]

    async def test_untagged_prompt_returns_default(self) -> None:
        provider = MockLLMProvider(default_response="Custom default")
        resp = await provider.generate("Something unrelated")
        assert resp.content == "Custom default"


# =============================================================================
# Tests: MockLLMProvider Call Tracking and Errors
# =============================================================================
class TestMockLLMProviderCallTracking:
    """Tests for call history and error simulation."""

    async def test_calls_are_recorded(self) -> None:
        provider = MockLLMProvider()
        await provider.generate("first", temperature=0.5, max_tokens=100)
        await provider.generate_with_system("system", "second")

        assert provider.call_count == 2
        assert provider.call_history[0]["temperature"] == 0.5
        assert provider.call_history[0]["max_tokens"] == 100
        assert provider.call_history[1]["system_prompt"] == "system"

        provider.clear_history()
        assert provider.call_count == 0

    async def test_should_fail_raises_provider_unavailable(self) -> None:
        provider = MockLLMProvider()
        provider.set_should_fail(True, "API overloaded")

        with pytest.raises(ProviderUnavailableError, match="API overloaded"):
            await provider.generate_with_system("system", "user")

        assert provider.call_count == 1

    async def test_disable_failure(self) -> None:
        provider = MockLLMProvider()
        provider.set_should_fail(True)
        provider.set_should_fail(False)

        resp = await provider.generate("test")
        assert resp.content == "Mock LLM response"

    async def test_validate_and_models(self) -> None:
        provider = MockLLMProvider()
        assert await provider.validate() is True
        assert "mock-model" in provider.get_available_models()
        assert "MockLLMProvider" in repr(provider)


# =============================================================================
# Tests: Factory and Credentials
# =============================================================================
class TestCreateLLMProvider:
    """Tests for create_llm_provider() and check_credentials()."""

    def test_create_mock_provider(self) -> None:
        provider = create_llm_provider(LLMConfig(provider="Mock", model="custom-test"))
        assert isinstance(provider, MockLLMProvider)
        assert provider.model == "custom-test"

    def test_unknown_provider_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
            create_llm_provider(LLMConfig(provider="unknown-provider"))

    def test_anthropic_without_key_raises(self) -> None:
        with pytest.raises(MissingCredentialError) as exc_info:
            create_llm_provider(LLMConfig(provider="anthropic"))
        assert exc_info.value.credential == "ANTHROPIC_API_KEY"

    def test_anthropic_key_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        check_credentials(LLMConfig(provider="anthropic"))
        assert isinstance(create_llm_provider(LLMConfig(provider="anthropic")), AnthropicProvider)

    def test_anthropic_key_from_config(self) -> None:
        check_credentials(LLMConfig(provider="anthropic", api_key="sk-ant-test"))

    def test_mock_never_needs_credentials(self) -> None:
        check_credentials(LLMConfig(provider="mock"))


# =============================================================================
# Tests: AnthropicProvider
# =============================================================================
class _StubMessages:
    """Stands in for ``AsyncAnthropic.messages``."""

    def __init__(self, reply=None, error=None) -> None:
        self.requests: list[dict] = []
        self._reply = reply
        self._error = error

    async def create(self, **request):
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._reply


def _api_error(message: str) -> anthropic.APIError:
    """An anthropic.APIError without an HTTP round trip."""
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return anthropic.APIConnectionError(message=message, request=request)


def _stub_reply(text: str, stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(
        id="msg_01",
        model="claude-test",
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=12, output_tokens=8),
        stop_reason=stop_reason,
    )


class TestAnthropicProvider:
    """Tests for request building and response mapping."""

    def _make_provider(self, messages: _StubMessages) -> AnthropicProvider:
        provider = AnthropicProvider(
            LLMConfig(provider="anthropic", model="claude-test"),
            api_key="sk-ant-test",
        )
        provider._client = SimpleNamespace(messages=messages, api_key="sk-ant-test")
        return provider

    async def test_generate_with_system_builds_request(self) -> None:
        messages = _StubMessages(reply=_stub_reply('{"questions": []}'))
        provider = self._make_provider(messages)

        resp = await provider.generate_with_system("system text", "user text", max_tokens=64)

        request = messages.requests[0]
        assert request["system"] == "system text"
        assert request["messages"] == [{"role": "user", "content": "user text"}]
        assert request["max_tokens"] == 64
        assert request["model"] == "claude-test"
        assert resp.content == '{"questions": []}'
        assert resp.usage.total_tokens == 20
        assert resp.finish_reason == "stop"
        assert resp.metadata["request_id"] == "msg_01"

    async def test_max_tokens_stop_reason_maps_to_length(self) -> None:
        messages = _StubMessages(reply=_stub_reply("{", stop_reason="max_tokens"))
        resp = await self._make_provider(messages).generate("hello")

        assert resp.finish_reason == "length"
        assert "system" not in messages.requests[0]

    async def test_api_error_becomes_provider_unavailable(self) -> None:
        error = _api_error("overloaded")
        provider = self._make_provider(_StubMessages(error=error))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await provider.generate("hello")
        assert exc_info.value.provider == "anthropic"

    async def test_validate_checks_key(self) -> None:
        provider = self._make_provider(_StubMessages())
        assert await provider.validate() is True
