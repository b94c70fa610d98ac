"""
AutoStep CLI Package.

- build.py: build and run commands
- new.py: new project scaffolding
- common.py: logging setup, configuration loading, error reporting
- utils.py: version information
"""

import sys

import typer

from autostep.cli.build import build_command, run_command
from autostep.cli.new import new_app
from autostep.cli.utils import get_version, version_callback

app = typer.Typer(
    help="""AutoStep: build and run AutoStep test projects

Commands:
  • build: compile and link the project in a directory
  • run: build, then execute the tests
  • new project | new web: create a new project
""",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
) -> None:
    """AutoStep CLI main callback for global options."""
    pass


app.command(name="build")(build_command)
app.command(name="run")(run_command)
app.add_typer(new_app, name="new")


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


__all__ = [
    "app",
    "main",
    "get_version",
    "version_callback",
]


if __name__ == "__main__":
    main(sys.argv[1:])
