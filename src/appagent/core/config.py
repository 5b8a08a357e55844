"""
appagent.core.config - Configuration Management
=================================================

Configuration for App Agent. Values are resolved with the following
priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with APP_AGENT_)
    3. YAML configuration file (app-agent.yaml)
    4. Default values defined in the models below

Architecture Context:
    The top-level AppAgentConfig is created once and handed to the facade,
    which passes the relevant parts down:

        AppAgentConfig
            ├── LLMConfig                 → LLM provider → DeploymentAssistant
            ├── similarity_threshold      → RecommendationEngine
            ├── interactive / timeouts    → WorkflowOrchestrator
            ├── state_dir                 → JsonlPatternStore, FileSessionStore
            └── default_output_format     → CliInterface

Usage:
    # Load from environment variables:
    config = AppAgentConfig()

    # Load from YAML file:
    config = load_config("app-agent.yaml")

    # Explicit overrides:
    config = AppAgentConfig(similarity_threshold=0.75, interactive=True)

Environment Variables:
    APP_AGENT_LOG_LEVEL=DEBUG
    APP_AGENT_SIMILARITY_THRESHOLD=0.6
    APP_AGENT_INTERACTIVE=true
    APP_AGENT_STATE_DIR=~/.app-agent
    APP_AGENT_LLM__PROVIDER=anthropic
    APP_AGENT_LLM__API_KEY=sk-ant-...
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from appagent.core.enums import OutputFormat
from appagent.core.exceptions import ConfigurationError


DEFAULT_CONFIG_FILE = "app-agent.yaml"


# =============================================================================
# LLM Configuration
# =============================================================================
# Which model provider the DeploymentAssistant talks to. The mock provider
# needs no credential; the anthropic provider needs an API key, taken from
# api_key or the ANTHROPIC_API_KEY environment variable.
# =============================================================================
class LLMConfig(BaseModel):
    """Configuration for the language-model provider.

    Supported Providers:
        - "anthropic": Anthropic Messages API (Claude models)
        - "mock":      Deterministic provider for development and tests

    Attributes:
        provider: Which provider implementation to create.
        model: Model identifier within the provider.
        api_key: API key. Optional because the mock provider needs none.
        temperature: Sampling temperature.
        max_tokens: Maximum tokens per response.
        api_base_url: Custom endpoint (proxies, gateways).
    """

    provider: str = Field(
        default="mock",
        description="LLM provider name: 'anthropic' or 'mock'",
    )
    model: str = Field(
        default="claude-3-5-sonnet-latest",
        description="Model identifier within the provider",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key (falls back to ANTHROPIC_API_KEY for anthropic)",
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature; low values for manifests",
    )
    max_tokens: int = Field(
        default=4096,
        ge=1,
        le=64000,
        description="Maximum tokens per LLM response",
    )
    api_base_url: Optional[str] = Field(
        default=None,
        description="Custom API base URL",
    )


# =============================================================================
# Main Configuration
# =============================================================================
class AppAgentConfig(BaseSettings):
    """Top-level configuration for App Agent.

    Attributes:
        environment: Deployment environment of the agent itself.
        log_level: Level for structlog output.
        similarity_threshold: Minimum similarity for a prior success to
            become a recommendation.
        interactive: Default for new workflows: ask the user before each
            phase does its work.
        default_output_format: CLI output format when none is given.
        phase_timeout_seconds: Bound on every collaborator call made while
            executing a phase. A timeout fails the phase.
        pattern_type: Pattern collection deployment outcomes are recorded under.
        state_dir: Directory for the JSONL pattern log and session files.
            None keeps everything in memory.
        llm: Model provider configuration.

    Example:
        >>> config = AppAgentConfig(interactive=True, llm=LLMConfig(provider="mock"))
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Environment the agent runs in",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    # -------------------------------------------------------------------------
    # Workflow & Recommendation Settings
    # -------------------------------------------------------------------------
    similarity_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for a recommendation",
    )
    interactive: bool = Field(
        default=False,
        description="Ask the user before each phase by default",
    )
    default_output_format: OutputFormat = Field(
        default=OutputFormat.JSON,
        description="Default CLI output format",
    )
    phase_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        le=3600,
        description="Timeout for collaborator calls inside a phase",
    )
    pattern_type: str = Field(
        default="deployment",
        min_length=1,
        description="Pattern collection for deployment outcomes",
    )
    state_dir: Optional[str] = Field(
        default=None,
        description="Directory for persisted patterns and sessions",
    )

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM provider configuration",
    )

    model_config = {
        "env_prefix": "APP_AGENT_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @property
    def state_path(self) -> Optional[Path]:
        """`state_dir` as an expanded Path, or None."""
        if self.state_dir is None:
            return None
        return Path(self.state_dir).expanduser()


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> AppAgentConfig:
    """Load configuration from a YAML file and/or environment variables.

    Args:
        path: YAML file to read. If None, `app-agent.yaml` in the current
            directory is used when present; otherwise only defaults and
            environment variables apply.

    Returns:
        A validated AppAgentConfig.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigurationError: If the file is not a YAML mapping.
    """
    if path is None:
        default_path = Path(DEFAULT_CONFIG_FILE)
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    message=f"Invalid YAML in {path}: {e}",
                    error_code="INVALID_CONFIG_FILE",
                ) from e

        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                error_code="INVALID_CONFIG_FILE",
            )
        yaml_data = raw_data

    return AppAgentConfig(**yaml_data)


def get_default_config() -> AppAgentConfig:
    """Create an AppAgentConfig from defaults and environment variables."""
    return AppAgentConfig()
