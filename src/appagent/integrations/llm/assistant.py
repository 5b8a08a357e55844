"""
appagent.integrations.llm.assistant - Deployment Assistant
============================================================

The DeploymentAssistant is the model-provider collaborator of the
workflow. It turns session facts into prompts, sends them through a
BaseLLMProvider and parses the replies into typed results.

    ┌──────────────────────┐  process_user_input()  ┌─────────────────────┐
    │ WorkflowOrchestrator │ ─────────────────────→ │ DeploymentAssistant │
    │                      │  generate_manifest()   │                     │
    │ CliInterface         │  rank_resources()      │  prompts + parsing  │
    └──────────────────────┘                        └──────────┬──────────┘
                                                               │ generate_with_system()
                                                               ▼
                                                        BaseLLMProvider

Credentials:
    The provider is created lazily by ensure_ready(). With the anthropic
    provider and no ANTHROPIC_API_KEY, ensure_ready() raises
    MissingCredentialError before any prompt is sent.

Reply Parsing:
    Replies are expected to be JSON. They are parsed with yaml.safe_load
    (JSON is valid YAML) after stripping an optional Markdown code fence.
    A reply that cannot be parsed raises CollaboratorFailureError with
    collaborator="model".
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import structlog
import yaml

from appagent.core.config import LLMConfig
from appagent.core.enums import Phase
from appagent.core.exceptions import CollaboratorFailureError
from appagent.core.models import AssistantReply, Recommendation, ResourceDescriptor, ResourceSuggestion
from appagent.integrations.llm.base import BaseLLMProvider
from appagent.integrations.llm.factory import check_credentials, create_llm_provider
from appagent.integrations.llm.prompts import (
    CLARIFY_SYSTEM_PROMPT,
    MANIFEST_SYSTEM_PROMPT,
    RANK_SYSTEM_PROMPT,
    RESOURCES_HEADING,
)


logger = structlog.get_logger()


_CODE_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n(.*?)\n\s*```\s*$", re.DOTALL)


def parse_model_payload(content: str) -> Any:
    """Parse a model reply that should hold one JSON (or YAML) document.

    Raises:
        CollaboratorFailureError: If the reply is not parseable.
    """
    match = _CODE_FENCE.match(content)
    text = match.group(1) if match else content
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CollaboratorFailureError(
            message=f"Model reply is not valid JSON or YAML: {e}",
            collaborator="model",
        ) from e


def _dump(data: Any) -> str:
    """Render prompt data as YAML; values YAML cannot represent become strings."""
    plain = json.loads(json.dumps(data, default=str))
    return yaml.safe_dump(plain, sort_keys=False, default_flow_style=False).strip()


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


class DeploymentAssistant:
    """Prompts the language model on behalf of the workflow.

    Attributes:
        llm_config: Provider configuration used to create the provider.

    Example:
        >>> assistant = DeploymentAssistant(LLMConfig(provider="mock"))
        >>> reply = await assistant.process_user_input({"phase": "Discovery"}, "web server")
        >>> reply.needs_input
        False
    """

    def __init__(
        self,
        llm_config: Optional[LLMConfig] = None,
        provider: Optional[BaseLLMProvider] = None,
    ) -> None:
        self._llm_config = llm_config or (provider.config if provider else LLMConfig())
        self._provider = provider
        self._logger = logger.bind(component="deployment_assistant")

    @property
    def llm_config(self) -> LLMConfig:
        return self._llm_config

    @property
    def provider(self) -> Optional[BaseLLMProvider]:
        """The provider, or None before ensure_ready() created it."""
        return self._provider

    def check_credentials(self) -> None:
        """Raise MissingCredentialError if no provider can be created."""
        if self._provider is None:
            check_credentials(self._llm_config)

    def ensure_ready(self) -> BaseLLMProvider:
        """Create the provider on first use and return it.

        Raises:
            MissingCredentialError: If the provider needs an API key.
            ConfigurationError: If the provider name is unknown.
        """
        if self._provider is None:
            self._provider = create_llm_provider(self._llm_config)
            self._logger.info(
                "llm_provider_created",
                provider=self._provider.provider_name,
                model=self._provider.model,
            )
        return self._provider

    # =========================================================================
    # Clarification
    # =========================================================================

    async def process_user_input(
        self,
        context: Mapping[str, Any],
        user_input: str,
    ) -> AssistantReply:
        """Ask the model whether the current phase needs more user input.

        Args:
            context: Accumulated session facts and user answers.
            user_input: The latest input (requirements or rendered answers).

        Returns:
            AssistantReply; non-empty questions mean the workflow suspends.
        """
        provider = self.ensure_ready()
        user_prompt = (
            f"Session context:\n{_dump(dict(context))}\n\n"
            f"User input:\n{user_input}"
        )
        response = await provider.generate_with_system(CLARIFY_SYSTEM_PROMPT, user_prompt)
        payload = parse_model_payload(response.content)
        if not isinstance(payload, Mapping):
            raise CollaboratorFailureError(
                message="Model reply to a clarification request is not an object",
                collaborator="model",
            )

        phase: Optional[Phase] = None
        if payload.get("phase"):
            try:
                phase = Phase(payload["phase"])
            except ValueError:
                self._logger.debug("unknown_phase_in_reply", phase=payload["phase"])

        reply = AssistantReply(
            phase=phase,
            questions=_string_list(payload.get("questions")),
            next_steps=_string_list(payload.get("nextSteps", payload.get("next_steps"))),
        )
        self._logger.debug(
            "user_input_processed",
            questions=len(reply.questions),
            next_steps=len(reply.next_steps),
        )
        return reply

    # =========================================================================
    # Manifest Generation
    # =========================================================================

    async def generate_manifest(
        self,
        app_name: str,
        requirements: str,
        resource_kinds: Sequence[str],
        context: Optional[Mapping[str, Any]] = None,
        recommendations: Sequence[Recommendation] = (),
    ) -> dict[str, Any]:
        """Ask the model for a manifest deploying the application.

        metadata.name defaults to ``app_name`` when the model leaves it out.

        Raises:
            CollaboratorFailureError: If the reply is not a manifest object.
        """
        provider = self.ensure_ready()
        sections = [
            f"Application name: {app_name}",
            f"Requirements: {requirements}",
            RESOURCES_HEADING,
            *[f"- {kind}" for kind in resource_kinds],
        ]
        if context:
            sections.append(f"User answers:\n{_dump(dict(context))}")
        if recommendations:
            sections.append("Recommendations from earlier deployments:")
            sections.extend(
                f"- {r.suggestion} (confidence {r.confidence:.2f})" for r in recommendations
            )

        response = await provider.generate_with_system(
            MANIFEST_SYSTEM_PROMPT, "\n".join(sections)
        )
        manifest = parse_model_payload(response.content)
        if not isinstance(manifest, Mapping) or not manifest.get("kind"):
            raise CollaboratorFailureError(
                message="Model did not return a manifest object with a kind",
                collaborator="model",
            )

        manifest = dict(manifest)
        metadata = dict(manifest.get("metadata") or {})
        metadata.setdefault("name", app_name)
        manifest["metadata"] = metadata

        self._logger.info("manifest_generated", app_name=app_name, kind=manifest["kind"])
        return manifest

    # =========================================================================
    # Resource Ranking
    # =========================================================================

    async def rank_resources(
        self,
        intent: str,
        resources: Sequence[ResourceDescriptor],
    ) -> list[ResourceSuggestion]:
        """Rank available resource kinds for a deployment intent.

        Kinds the model invents are dropped. Results are sorted by
        descending score.
        """
        provider = self.ensure_ready()
        known = {resource.kind for resource in resources}
        user_prompt = "\n".join(
            [
                f"Intent: {intent}",
                RESOURCES_HEADING,
                *[
                    f"- {r.kind} ({r.api_version}){': ' + r.description if r.description else ''}"
                    for r in resources
                ],
            ]
        )
        response = await provider.generate_with_system(RANK_SYSTEM_PROMPT, user_prompt)
        payload = parse_model_payload(response.content)
        entries = payload.get("suggestions") if isinstance(payload, Mapping) else payload
        if not isinstance(entries, list):
            raise CollaboratorFailureError(
                message="Model reply to a ranking request has no suggestions list",
                collaborator="model",
            )

        suggestions: list[ResourceSuggestion] = []
        for entry in entries:
            if not isinstance(entry, Mapping) or entry.get("kind") not in known:
                continue
            try:
                score = min(1.0, max(0.0, float(entry.get("score", 0.0))))
            except (TypeError, ValueError):
                score = 0.0
            suggestions.append(
                ResourceSuggestion(
                    kind=entry["kind"],
                    score=score,
                    reason=str(entry.get("reason", "")),
                )
            )

        suggestions.sort(key=lambda s: s.score, reverse=True)
        self._logger.debug("resources_ranked", intent=intent, returned=len(suggestions))
        return suggestions
