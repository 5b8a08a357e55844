"""
App Agent - AI Kubernetes Deployment Agent
============================================

App Agent takes an application name and free-text requirements through a
phased deployment workflow and learns from every outcome:

    Discovery  →  Planning  →  Validation  →  Deployment  →  Completed
    (cluster      (manifest     (schema        (finalize)
     facts)        via LLM)      check)
                      ▲               ▲
                      └── recommendations from prior successes

Architecture Layers (top to bottom):
    1. Interfaces      - app-agent CLI
    2. Orchestration   - Workflow Orchestrator, Recommendation Engine, Sessions
    3. Infrastructure  - Pattern Store, Context Store
    4. Integrations    - Discovery, Schema Validation, LLM providers

Quick Start:
    >>> from appagent import AppAgent
    >>> async with AppAgent() as agent:
    ...     session = await agent.deploy("my-app", "nginx web server")
"""

# =============================================================================
# Package Version
# =============================================================================
__version__ = "0.1.0"

# =============================================================================
# Package-Level Exports
# =============================================================================
# The AppAgent facade is the main entry point. For specific components,
# import from submodules directly:
#   from appagent.core.config import AppAgentConfig
#   from appagent.orchestration import WorkflowOrchestrator
# =============================================================================
from appagent.facade import AppAgent

__all__ = ["AppAgent", "__version__"]
