"""
Full Workflow Example - Deploy Twice, Learn Once
==================================================

This example runs two deployments through every phase:

    DISCOVERY → PLANNING → VALIDATION → DEPLOYMENT → COMPLETED

The first deployment has no history to learn from. Its success is recorded
in the Pattern Store, so the second deployment receives a recommendation
when it enters Planning and Validation.

All phases use MockLLMProvider and the built-in resource catalog, so the
example runs offline. Set APP_AGENT_STATE_DIR to keep patterns and
sessions on disk between runs.

Usage:
    python examples/full_workflow.py
"""

from __future__ import annotations

import asyncio

from appagent.core.config import AppAgentConfig
from appagent.core.state import WorkflowSession
from appagent.facade import AppAgent
from appagent.integrations.llm.mock import MockLLMProvider


def print_session(session: WorkflowSession) -> None:
    print(f"Workflow : {session.workflow_id}")
    print(f"App      : {session.app_name}")
    print(f"Phase    : {session.current_phase.value}")
    print("History  :")
    for entry in session.history:
        confidences = ", ".join(f"{r.confidence:.2f}" for r in entry.outcome.recommendations)
        print(f"  {entry.phase.value:12s} {entry.outcome.status.value:12s} [{confidences}]")
    print()


async def main() -> None:
    """Deploy two applications and show what the second one learned."""
    config = AppAgentConfig()

    async with AppAgent(config, llm_provider=MockLLMProvider()) as agent:
        print("=" * 60)
        print("  App Agent - Full Workflow")
        print("=" * 60)
        print()

        first = await agent.deploy("frontend", "nginx web server with 2 replicas")
        print_session(first)

        second = await agent.deploy("backend", "python api server")
        print_session(second)

        successes, failures, _ = await agent.learned_patterns()
        print(f"Learned successes : {len(successes)}")
        print(f"Learned failures  : {len(failures)}")


if __name__ == "__main__":
    asyncio.run(main())
