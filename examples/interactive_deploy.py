"""
Interactive Deployment Example - Suspend and Continue
=======================================================

An interactive workflow asks the model whether it needs more information
before each phase. When it does, the session suspends with pending
questions; nothing blocks. The answers go back in with
continue_workflow(), which stores them in the session's Context Store
and runs the workflow on.

Usage:
    python examples/interactive_deploy.py
"""

from __future__ import annotations

import asyncio

from appagent.facade import AppAgent
from appagent.integrations.llm.mock import MockLLMProvider


async def main() -> None:
    """Start an interactive deployment, answer its question, finish it."""
    provider = MockLLMProvider()
    # The first clarification asks a question; later ones fall back to
    # the mock's default "no questions" reply.
    provider.queue_json({"questions": ["Which database should the shop use?"]})

    async with AppAgent(llm_provider=provider) as agent:
        session = await agent.deploy("shop", "web shop with a database", interactive=True)

        print(f"Phase     : {session.current_phase.value}")
        for question in session.pending_questions:
            print(f"Question  : {question}")

        session = await agent.continue_workflow(session.workflow_id, {"database": "PostgreSQL"})

        print(f"Phase     : {session.current_phase.value}")
        print(f"Answers   : {session.config.get('answers')}")
        print(f"Next steps: {session.next_steps}")


if __name__ == "__main__":
    asyncio.run(main())
