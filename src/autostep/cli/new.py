"""
Scaffolding commands for the AutoStep CLI.

- new project: Blank project with a test file and empty configuration
- new web: Web project with an interactions file and the web extension
"""

from __future__ import annotations

from pathlib import Path

import typer

from autostep.core.errors import ScaffoldError
from autostep.core.init import create_blank_project, create_web_project

from .common import configure_logging, resolve_directory

new_app = typer.Typer(
    help="Create a new AutoStep project.",
    no_args_is_help=True,
)


@new_app.command(name="project")
def new_project_command(
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-d",
        file_okay=False,
        help="Project directory, created if missing (defaults to the current directory)",
    ),
) -> None:
    """Create a project with a single test file (.as) and an empty autostep.config.json."""
    configure_logging()
    try:
        create_blank_project(resolve_directory(directory))
    except ScaffoldError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@new_app.command(name="web")
def new_web_command(
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-d",
        file_okay=False,
        help="Project directory, created if missing (defaults to the current directory)",
    ),
) -> None:
    """
    Create a web project: an interactions file (.asi), a test file (.as) and
    an autostep.config.json that references the AutoStep.Web extension.
    """
    configure_logging()
    try:
        create_web_project(resolve_directory(directory))
    except ScaffoldError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
