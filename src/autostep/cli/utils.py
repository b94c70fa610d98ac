"""
AutoStep CLI Utilities.

Shared utility functions used across CLI modules.
"""

import platform

import typer

from autostep import __version__


def get_version() -> str:
    """Get AutoStep version from package metadata."""
    try:
        from importlib.metadata import version

        return version("autostep")
    except Exception:
        return __version__


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"AutoStep version {get_version()}")
        typer.echo("")
        typer.echo("Environment:")
        typer.echo(f"  Python:        {platform.python_implementation()} {platform.python_version()}")
        typer.echo(f"  Platform:      {platform.system()} {platform.release()}")
        raise typer.Exit()
