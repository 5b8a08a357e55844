"""
appagent.interfaces - User-Facing Surfaces
============================================

    interfaces/
    └── cli.py  → CliInterface, CommandResult, CliSettings, typer `app`
"""

from appagent.interfaces.cli import CliInterface, CliSettings, CommandResult, UsageError, app

__all__ = [
    "CliInterface",
    "CliSettings",
    "CommandResult",
    "UsageError",
    "app",
]
