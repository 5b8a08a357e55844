"""
appagent.interfaces.cli - The app-agent Command Line
======================================================

Two layers:

    CliInterface      Framework-free command layer. Takes a command name and
                      an options dict, drives the AppAgent facade and returns a
                      CommandResult envelope {success, data?, error?}. It also
                      owns help text, argument parsing and output formatting.

    app (typer)       Thin shell around CliInterface: one typer command per
                      subcommand, prints the formatted envelope and exits 1
                      when success is false.

Subcommands:

    deploy    --app NAME --requirements TEXT [--interactive] [--execute]
    status    --deployment ID
    continue  --deployment ID --response key=value ...
    rollback  --deployment ID
    learn     [--pattern TYPE]
    recommend --intent TEXT [--output json|yaml]

Sessions and patterns survive between invocations only when state_dir is
configured (APP_AGENT_STATE_DIR or app-agent.yaml).
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Optional

import structlog
import typer
import yaml
from pydantic import BaseModel, Field

from appagent.core.config import load_config
from appagent.core.enums import OutputFormat, Phase
from appagent.core.exceptions import AppAgentError
from appagent.core.state import WorkflowSession
from appagent.facade import AppAgent


logger = structlog.get_logger()

APP_NAME = "app-agent"
APP_HELP = "Kubernetes application deployment agent with pattern learning."

# command → (description, [(option, help), ...])
COMMAND_HELP: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "deploy": (
        "Start interactive deployment workflow",
        [
            ("--app", "Application name (required)"),
            ("--requirements", "Free-text deployment requirements"),
            ("--interactive", "Ask clarifying questions before each phase"),
            ("--execute", "Run phases until the workflow finishes or needs input"),
        ],
    ),
    "status": (
        "Check deployment status",
        [("--deployment", "Workflow id (required)")],
    ),
    "continue": (
        "Answer the questions of a suspended deployment",
        [
            ("--deployment", "Workflow id (required)"),
            ("--response", "Answer as key=value (repeatable)"),
        ],
    ),
    "rollback": (
        "Roll back a deployment workflow",
        [("--deployment", "Workflow id (required)")],
    ),
    "learn": (
        "Show learned deployment patterns",
        [("--pattern", "Pattern type (default: deployment)")],
    ),
    "recommend": (
        "Get AI-powered Kubernetes resource recommendations",
        [
            ("--intent", "What you want to deploy, in words"),
            ("--output", "Output format: json or yaml"),
        ],
    ),
}

REQUIRED_OPTIONS: dict[str, tuple[str, ...]] = {
    "deploy": ("app",),
    "status": ("deployment",),
    "continue": ("deployment",),
    "rollback": ("deployment",),
}

FLAG_OPTIONS = frozenset({"interactive", "execute", "verbose"})


class UsageError(ValueError):
    """Raised for malformed command lines."""


# =============================================================================
# Result Envelope & Settings
# =============================================================================
class CommandResult(BaseModel):
    """Outcome of one CLI command."""

    success: bool = Field(description="Whether the command succeeded")
    data: Optional[dict[str, Any]] = Field(default=None, description="Command payload")
    error: Optional[str] = Field(default=None, description="Error message on failure")


class CliSettings(BaseModel):
    """Presentation settings of the CLI."""

    default_output: OutputFormat = Field(default=OutputFormat.JSON, description="Output format")
    verbose_mode: bool = Field(default=False, description="Include session details")


class ParsedCommand(BaseModel):
    command: str
    options: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# CLI Interface
# =============================================================================
class CliInterface:
    """Command layer of the app-agent CLI.

    Example:
        >>> cli = CliInterface(AppAgent())
        >>> result = await cli.execute_command("deploy", {"app": "web", "requirements": "nginx"})
        >>> result.data["phase"]
        'Discovery'
    """

    def __init__(self, agent: AppAgent, settings: Optional[CliSettings] = None) -> None:
        self._agent = agent
        self._settings = settings or CliSettings()
        self._logger = logger.bind(component="cli")

    @property
    def settings(self) -> CliSettings:
        return self._settings

    # =========================================================================
    # Command Structure & Help
    # =========================================================================

    def get_commands(self) -> list[str]:
        return [APP_NAME]

    def get_subcommands(self) -> list[str]:
        return list(COMMAND_HELP)

    def get_help(self) -> str:
        lines = [f"{APP_NAME} - {APP_HELP}", "", "Commands:"]
        for name, (description, _) in COMMAND_HELP.items():
            lines.append(f"  {name:<10} {description}")
        lines.append("")
        lines.append(f"Run '{APP_NAME} <command> --help' for command options.")
        return "\n".join(lines)

    def get_command_help(self, command: str) -> str:
        if command not in COMMAND_HELP:
            raise UsageError(f"Unknown command: {command}")
        description, options = COMMAND_HELP[command]
        lines = [f"{APP_NAME} {command} - {description}", "", "Options:"]
        lines.extend(f"  {option:<15} {text}" for option, text in options)
        return "\n".join(lines)

    def parse_arguments(self, args: list[str]) -> ParsedCommand:
        """Parse ``[command, --option value, --flag, ...]``.

        ``--response key=value`` may repeat and collects into
        ``options["responses"]``.

        Raises:
            UsageError: On an unknown command, a dangling option or a
                missing required option.
        """
        if not args:
            raise UsageError("Missing command")
        command, rest = args[0], list(args[1:])
        if command not in COMMAND_HELP:
            raise UsageError(f"Unknown command: {command}")

        options: dict[str, Any] = {}
        index = 0
        while index < len(rest):
            token = rest[index]
            if not token.startswith("--"):
                raise UsageError(f"Unexpected argument: {token}")
            name = token[2:].replace("-", "_")
            if name in FLAG_OPTIONS:
                options[name] = True
                index += 1
                continue
            if index + 1 >= len(rest):
                raise UsageError(f"Missing value for {token}")
            value = rest[index + 1]
            if name == "response":
                key, sep, answer = value.partition("=")
                if not sep or not key:
                    raise UsageError(f"Expected key=value for --response, got {value!r}")
                options.setdefault("responses", {})[key] = answer
            else:
                options[name] = value
            index += 2

        for required in REQUIRED_OPTIONS.get(command, ()):
            if not options.get(required):
                raise UsageError(f"Missing required argument: --{required}")

        return ParsedCommand(command=command, options=options)

    # =========================================================================
    # Command Execution
    # =========================================================================

    async def execute_command(self, command: str, options: dict[str, Any]) -> CommandResult:
        """Run one command and wrap its outcome in a CommandResult."""
        handlers = {
            "deploy": self._deploy,
            "status": self._status,
            "continue": self._continue,
            "rollback": self._rollback,
            "learn": self._learn,
            "recommend": self._recommend,
        }
        handler = handlers.get(command)
        if handler is None:
            return CommandResult(success=False, error=f"Unknown command: {command}")
        output = options.get("output")
        if output is not None:
            try:
                OutputFormat(output)
            except ValueError:
                return CommandResult(success=False, error=f"Unsupported output format: {output}")

        self._logger.debug("command_started", command=command)
        try:
            await self._agent.initialize()
            return await handler(options)
        except (AppAgentError, UsageError) as exc:
            self._logger.warning("command_failed", command=command, error=str(exc))
            prefix = "Deployment failed: " if command == "deploy" else ""
            return CommandResult(success=False, error=f"{prefix}{exc}")

    async def continue_workflow(
        self,
        workflow_id: str,
        options: dict[str, Any],
    ) -> CommandResult:
        """Answer a suspended workflow; ``options["responses"]`` holds the answers."""
        return await self.execute_command(
            "continue",
            {"deployment": workflow_id, "responses": options.get("responses", {})},
        )

    async def _deploy(self, options: dict[str, Any]) -> CommandResult:
        app_name = options.get("app")
        if not app_name:
            raise UsageError("Missing required argument: --app")
        interactive = bool(options.get("interactive")) or None

        workflow = self._agent.workflow
        self._agent.assistant.check_credentials()
        workflow_id = await workflow.initialize_workflow(
            app_name, options.get("requirements") or "", interactive=interactive
        )
        if options.get("execute"):
            session = await workflow.run_until_blocked(workflow_id)
        elif interactive:
            session = await workflow.execute_phase(workflow_id)
        else:
            session = await workflow.get_session(workflow_id)

        if session.current_phase in (Phase.FAILED, Phase.ROLLED_BACK):
            return CommandResult(
                success=False,
                error=f"Deployment failed: {session.error}",
                data=self._session_data(session, options),
            )
        return CommandResult(success=True, data=self._session_data(session, options))

    async def _status(self, options: dict[str, Any]) -> CommandResult:
        session = await self._agent.status(self._require(options, "deployment"))
        data = self._session_data(session, options)
        data["status"] = session.summary()
        return CommandResult(success=True, data=data)

    async def _continue(self, options: dict[str, Any]) -> CommandResult:
        workflow_id = self._require(options, "deployment")
        session = await self._agent.continue_workflow(workflow_id, options.get("responses") or {})
        data = self._session_data(session, options)
        data["nextSteps"] = list(session.next_steps)
        return CommandResult(success=session.error is None, data=data, error=session.error)

    async def _rollback(self, options: dict[str, Any]) -> CommandResult:
        session = await self._agent.rollback(self._require(options, "deployment"))
        return CommandResult(success=True, data=self._session_data(session, options))

    async def _learn(self, options: dict[str, Any]) -> CommandResult:
        pattern_type = options.get("pattern") or self._agent.config.pattern_type
        successes, failures, lessons = await self._agent.learned_patterns(pattern_type)

        candidate = options.get("config")
        if candidate is None and successes:
            candidate = successes[-1].config
        recommendations = await self._agent.recommend_config(candidate or {}, pattern_type)

        return CommandResult(
            success=True,
            data={
                "patternType": pattern_type,
                "successes": [record.model_dump(mode="json") for record in successes],
                "failures": [record.model_dump(mode="json") for record in failures],
                "lessons": lessons,
                "recommendations": [rec.model_dump(mode="json") for rec in recommendations],
            },
        )

    async def _recommend(self, options: dict[str, Any]) -> CommandResult:
        self._agent.assistant.check_credentials()
        intent = self._require(options, "intent")
        suggestions = await self._agent.recommend_resources(intent)
        return CommandResult(
            success=True,
            data={
                "intent": intent,
                "recommendations": [item.model_dump(mode="json") for item in suggestions],
            },
        )

    # =========================================================================
    # Output
    # =========================================================================

    def format_output(
        self,
        result: CommandResult,
        output_format: Optional[str] = None,
    ) -> str:
        """Render a result as JSON or YAML (default from settings).

        Raises:
            UsageError: On an unknown output format.
        """
        try:
            fmt = OutputFormat(output_format or self._settings.default_output)
        except ValueError as exc:
            raise UsageError(f"Unsupported output format: {output_format}") from exc
        payload = result.model_dump(mode="json", exclude_none=True)
        if fmt == OutputFormat.YAML:
            return yaml.safe_dump(payload, sort_keys=False)
        return json.dumps(payload, indent=2)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _session_data(self, session: WorkflowSession, options: dict[str, Any]) -> dict[str, Any]:
        data: dict[str, Any] = {
            "workflowId": session.workflow_id,
            "phase": session.current_phase.value,
        }
        if session.pending_questions:
            data["questions"] = list(session.pending_questions)
        if session.error:
            data["error"] = session.error
        if self._settings.verbose_mode or options.get("verbose"):
            data["config"] = session.config
            data["recommendations"] = [
                rec.model_dump(mode="json") for rec in session.recommendations
            ]
            data["history"] = [entry.model_dump(mode="json") for entry in session.history]
        return data

    @staticmethod
    def _require(options: dict[str, Any], name: str) -> str:
        value = options.get(name)
        if not value:
            raise UsageError(f"Missing required argument: --{name}")
        return str(value)


# =============================================================================
# Typer Application
# =============================================================================
app = typer.Typer(name=APP_NAME, help=APP_HELP, no_args_is_help=True)


def configure_logging(level: str) -> None:
    """Send structlog output to stderr, filtered at ``level``."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app-agent.yaml.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Include session details in the output.",
    ),
) -> None:
    ctx.obj = {"config": config, "verbose": verbose}


def _run(ctx: typer.Context, command: str, options: dict[str, Any]) -> None:
    settings_input = ctx.obj or {}
    config = load_config(settings_input.get("config"))
    configure_logging(config.log_level)

    agent = AppAgent(config)
    cli = CliInterface(
        agent,
        CliSettings(
            default_output=config.default_output_format,
            verbose_mode=bool(settings_input.get("verbose")),
        ),
    )

    async def _execute() -> CommandResult:
        try:
            return await cli.execute_command(command, options)
        finally:
            await agent.shutdown()

    result = asyncio.run(_execute())
    typer.echo(cli.format_output(result, options.get("output")))
    if not result.success:
        raise typer.Exit(code=1)


@app.command(help=COMMAND_HELP["deploy"][0])
def deploy(
    ctx: typer.Context,
    app_name: str = typer.Option(..., "--app", help="Application name."),
    requirements: str = typer.Option("", "--requirements", "-r", help="Deployment requirements."),
    interactive: bool = typer.Option(False, "--interactive", help="Ask clarifying questions."),
    execute: bool = typer.Option(False, "--execute", help="Run phases until blocked."),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", case_sensitive=False, help="json or yaml."
    ),
) -> None:
    _run(
        ctx,
        "deploy",
        {
            "app": app_name,
            "requirements": requirements,
            "interactive": interactive,
            "execute": execute,
            "output": output,
        },
    )


@app.command(help=COMMAND_HELP["status"][0])
def status(
    ctx: typer.Context,
    deployment: str = typer.Option(..., "--deployment", "-d", help="Workflow id."),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", case_sensitive=False, help="json or yaml."
    ),
) -> None:
    _run(ctx, "status", {"deployment": deployment, "output": output})


@app.command(name="continue", help=COMMAND_HELP["continue"][0])
def continue_(
    ctx: typer.Context,
    deployment: str = typer.Option(..., "--deployment", "-d", help="Workflow id."),
    response: Optional[list[str]] = typer.Option(None, "--response", help="Answer as key=value (repeatable)."),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", case_sensitive=False, help="json or yaml."
    ),
) -> None:
    responses: dict[str, str] = {}
    for item in response or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            typer.echo(f"Expected key=value for --response, got {item!r}")
            raise typer.Exit(code=2)
        responses[key] = value
    _run(ctx, "continue", {"deployment": deployment, "responses": responses, "output": output})


@app.command(help=COMMAND_HELP["rollback"][0])
def rollback(
    ctx: typer.Context,
    deployment: str = typer.Option(..., "--deployment", "-d", help="Workflow id."),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", case_sensitive=False, help="json or yaml."
    ),
) -> None:
    _run(ctx, "rollback", {"deployment": deployment, "output": output})


@app.command(help=COMMAND_HELP["learn"][0])
def learn(
    ctx: typer.Context,
    pattern: Optional[str] = typer.Option(None, "--pattern", "-p", help="Pattern type."),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", case_sensitive=False, help="json or yaml."
    ),
) -> None:
    _run(ctx, "learn", {"pattern": pattern, "output": output})


@app.command(help=COMMAND_HELP["recommend"][0])
def recommend(
    ctx: typer.Context,
    intent: str = typer.Option(..., "--intent", "-i", help="Deployment intent."),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", case_sensitive=False, help="json or yaml."
    ),
) -> None:
    _run(ctx, "recommend", {"intent": intent, "output": output})


def main() -> None:
    app()


if __name__ == "__main__":
    main()
