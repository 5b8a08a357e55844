"""
appagent.integrations.llm.mock - Mock LLM Provider for Testing
================================================================

A provider that answers without any network call. It is the default
provider, so the whole deployment workflow runs without credentials.

How It Works:
    The mock keeps a response queue. On every call:
    1. If failure simulation is on, raise ProviderUnavailableError.
    2. If responses are queued, return the next one.
    3. Otherwise return a smart default chosen by the task tag at the top
       of the system prompt:

        TASK: clarify   → {"phase": null, "questions": [], "nextSteps": [...]}
        TASK: manifest  → a Deployment manifest
        TASK: rank      → every listed resource kind, in listed order
        (anything else) → the plain default response

Usage:
    >>> provider = MockLLMProvider()
    >>> provider.queue_response('{"questions": ["Which database do you need?"]}')
    >>> response = await provider.generate_with_system(CLARIFY_SYSTEM_PROMPT, "...")
    >>> provider.call_count
    1
"""

from __future__ import annotations

import json
import re
from collections import deque
from typing import Any, Optional

import structlog

from appagent.core.config import LLMConfig
from appagent.core.exceptions import ProviderUnavailableError
from appagent.integrations.llm.base import BaseLLMProvider, LLMResponse, LLMUsage
from appagent.integrations.llm.prompts import (
    RESOURCES_HEADING,
    TASK_CLARIFY,
    TASK_MANIFEST,
    TASK_RANK,
)


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


_RESOURCE_LINE = re.compile(r"^\s*-\s+([A-Za-z][A-Za-z0-9]*)\b")


class MockLLMProvider(BaseLLMProvider):
    """Mock LLM provider for testing and development.

    Features:
        - **Response Queue**: Queue specific responses for controlled tests.
        - **Smart Defaults**: Valid replies for every assistant task.
        - **Call History**: Every call is recorded for assertions.
        - **Error Simulation**: Calls can be made to fail.

    Example:
        >>> provider = MockLLMProvider(LLMConfig(provider="mock"))
        >>> provider.queue_response("Hello, World!")
        >>> response = await provider.generate("Say hello")
        >>> assert response.content == "Hello, World!"
        >>> assert len(provider.call_history) == 1
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        default_response: str = "Mock LLM response",
    ) -> None:
        if config is None:
            config = LLMConfig(provider="mock", model="mock-model")
        super().__init__(config)

        # --- Response Queue ---
        self._response_queue: deque[LLMResponse] = deque()

        # --- Call Tracking ---
        # Each entry: "prompt", "system_prompt", "temperature", "max_tokens", "kwargs".
        self._call_history: list[dict[str, Any]] = []

        self._default_response = default_response

        # --- Error Simulation ---
        self._should_fail: bool = False
        self._failure_message: str = "Mock LLM API error"

        self._logger = logger.bind(component="mock_llm_provider")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """All recorded calls, oldest first."""
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    @property
    def queue_size(self) -> int:
        return len(self._response_queue)

    # =========================================================================
    # Queue Management
    # =========================================================================

    def queue_response(
        self,
        content: str,
        *,
        model: Optional[str] = None,
        finish_reason: str = "stop",
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Add a response to the queue (FIFO).

        Example:
            >>> provider.queue_response('{"questions": ["Which port?"]}')
            >>> provider.queue_response('{"questions": []}')
        """
        response = LLMResponse(
            content=content,
            model=model or self.model,
            usage=self._estimate_usage(content),
            finish_reason=finish_reason,
            metadata=metadata or {},
        )
        self._response_queue.append(response)

    def queue_json(self, payload: Any) -> None:
        """Queue a response whose content is ``payload`` serialized as JSON."""
        self.queue_response(json.dumps(payload))

    def queue_llm_response(self, response: LLMResponse) -> None:
        self._response_queue.append(response)

    def clear_queue(self) -> None:
        self._response_queue.clear()

    def clear_history(self) -> None:
        self._call_history.clear()

    # =========================================================================
    # Error Simulation
    # =========================================================================

    def set_should_fail(self, should_fail: bool, message: str = "Mock LLM API error") -> None:
        """Make every following call raise ProviderUnavailableError."""
        self._should_fail = should_fail
        self._failure_message = message

    # =========================================================================
    # Core LLM Interface Implementation
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Return the next queued response or a smart default for ``prompt``.

        Raises:
            ProviderUnavailableError: If failure simulation is on.
        """
        return self._respond(None, prompt, temperature, max_tokens, kwargs)

    async def generate_with_system(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_sequences: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Like generate(); the system prompt selects the smart default.

        Raises:
            ProviderUnavailableError: If failure simulation is on.
        """
        return self._respond(system_prompt, user_prompt, temperature, max_tokens, kwargs)

    def _respond(
        self,
        system_prompt: Optional[str],
        prompt: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
        kwargs: dict[str, Any],
    ) -> LLMResponse:
        self._call_history.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "kwargs": kwargs,
        })

        self._logger.debug(
            "mock_generate_called",
            has_system_prompt=system_prompt is not None,
            prompt_length=len(prompt),
            queue_size=len(self._response_queue),
        )

        if self._should_fail:
            raise ProviderUnavailableError(message=self._failure_message, provider="mock")

        if self._response_queue:
            return self._response_queue.popleft()

        return self._generate_smart_default(system_prompt or "", prompt)

    # =========================================================================
    # Validation
    # =========================================================================

    async def validate(self) -> bool:
        return True

    def get_available_models(self) -> list[str]:
        return ["mock-model", "mock-fast", "mock-slow"]

    # =========================================================================
    # Smart Default Generation
    # =========================================================================

    def _generate_smart_default(self, system_prompt: str, prompt: str) -> LLMResponse:
        """Pick a default reply from the task tag of the system prompt."""
        if system_prompt.startswith(TASK_CLARIFY):
            content = json.dumps(self._mock_clarify_response())
        elif system_prompt.startswith(TASK_MANIFEST):
            content = json.dumps(self._mock_manifest_response())
        elif system_prompt.startswith(TASK_RANK):
            content = json.dumps(self._mock_rank_response(prompt))
        else:
            content = self._default_response

        return LLMResponse(
            content=content,
            model=self.model,
            usage=self._estimate_usage(content),
            finish_reason="stop",
            metadata={"source": "smart_default"},
        )

    # =========================================================================
    # Mock Response Templates
    # =========================================================================

    @staticmethod
    def _mock_clarify_response() -> dict[str, Any]:
        return {
            "phase": None,
            "questions": [],
            "nextSteps": ["Review the generated manifest before deployment"],
        }

    @staticmethod
    def _mock_manifest_response() -> dict[str, Any]:
        """A minimal Deployment; the assistant fills in metadata.name."""
        labels = {"app.kubernetes.io/managed-by": "app-agent"}
        return {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"labels": dict(labels)},
            "spec": {
                "replicas": 2,
                "selector": {"matchLabels": dict(labels)},
                "template": {
                    "metadata": {"labels": dict(labels)},
                    "spec": {
                        "containers": [
                            {
                                "name": "app",
                                "image": "nginx:1.27",
                                "ports": [{"containerPort": 80}],
                            }
                        ]
                    },
                },
            },
        }

    @staticmethod
    def _mock_rank_response(prompt: str) -> dict[str, Any]:
        """Rank the kinds listed under the resources heading, in listed order."""
        kinds: list[str] = []
        in_resources = False
        for line in prompt.splitlines():
            if line.strip() == RESOURCES_HEADING:
                in_resources = True
                continue
            if in_resources:
                match = _RESOURCE_LINE.match(line)
                if match is None:
                    break
                kinds.append(match.group(1))

        return {
            "suggestions": [
                {
                    "kind": kind,
                    "score": round(max(0.1, 0.9 - 0.1 * position), 2),
                    "reason": "Listed as available in the cluster",
                }
                for position, kind in enumerate(kinds)
            ]
        }

    # =========================================================================
    # Token Estimation
    # =========================================================================

    @staticmethod
    def _estimate_usage(text: str) -> LLMUsage:
        """Roughly four characters per token."""
        estimated_tokens = max(1, len(text) // 4)
        return LLMUsage(
            prompt_tokens=estimated_tokens,
            completion_tokens=estimated_tokens,
            total_tokens=estimated_tokens * 2,
        )
