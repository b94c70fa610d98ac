"""
Build commands for the AutoStep CLI.

- build: Compile and link a project
- run: Build a project, then execute its tests
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from autostep.core.build import build_and_report
from autostep.core.config import ResolvedConfiguration
from autostep.core.execution import (
    CommandLineResultsCollector,
    ConsoleResultsWriter,
    ServiceRegistry,
)
from autostep.core.extensions import LoadedExtensions, load_extensions
from autostep.core.project import create_project

from .common import configure_logging, execute_operation, load_configuration, resolve_directory

RUN_LOGGER_NAME = "autostep.run"


# =============================================================================
# Operations
# =============================================================================


async def build_operation(
    directory: Path,
    config_file: Path | None,
    options: list[str] | None,
    diagnostic: bool = False,
) -> int:
    """Compile and link the project. Returns the process exit code."""
    configuration = load_configuration(directory, config_file, options)

    async with load_extensions(directory, configuration, diagnostic) as extensions:
        project = await create_project(directory, configuration, extensions, diagnostic)
        verdict = await build_and_report(project)

    return 0 if verdict.success else 1


async def run_operation(
    directory: Path,
    config_file: Path | None,
    options: list[str] | None,
    diagnostic: bool = False,
) -> int:
    """Build the project and, if the build succeeds, execute it."""
    configuration = load_configuration(directory, config_file, options)
    log = logging.getLogger(RUN_LOGGER_NAME)

    async with load_extensions(directory, configuration, diagnostic) as extensions:
        project = await create_project(directory, configuration, extensions, diagnostic)
        verdict = await build_and_report(project)

        if not verdict.success:
            return 1

        test_run = project.create_test_run(configuration)
        test_run.events.append(CommandLineResultsCollector(log))

        for entry_point in extensions.entry_points:
            entry_point.extend_execution(configuration, test_run)

        def configure_services(
            run_configuration: ResolvedConfiguration, services: ServiceRegistry
        ) -> None:
            services.register_instance(ConsoleResultsWriter, ConsoleResultsWriter())
            services.register_instance(LoadedExtensions, extensions)
            for entry_point in extensions.entry_points:
                entry_point.configure_execution_services(run_configuration, services)

        result = await test_run.execute(log, configure_services)

    return 0 if result.passed else 1


# =============================================================================
# Commands
# =============================================================================


def build_command(
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-d",
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Project directory (defaults to the current directory)",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Configuration file (defaults to autostep.config.json in the project directory)",
    ),
    option: list[str] | None = typer.Option(
        None, "--option", "-o", help="Configuration override as key=value (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    diagnostic: bool = typer.Option(
        False, "--diagnostic", help="Trace-level logging and compiler diagnostics"
    ),
) -> None:
    """
    Compile and link an AutoStep project.

    Reports every compiler and linker message. Exits 0 when the project
    compiles and every step binds, 1 otherwise.

    Examples:
        autostep build
        autostep build -d ./tests -o tests=features/**/*.as
    """
    configure_logging(verbose, diagnostic)
    project_dir = resolve_directory(directory)
    exit_code = execute_operation(build_operation(project_dir, config, option, diagnostic))
    raise typer.Exit(code=exit_code)


def run_command(
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-d",
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Project directory (defaults to the current directory)",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Configuration file (defaults to autostep.config.json in the project directory)",
    ),
    option: list[str] | None = typer.Option(
        None, "--option", "-o", help="Configuration override as key=value (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    diagnostic: bool = typer.Option(
        False, "--diagnostic", help="Trace-level logging and compiler diagnostics"
    ),
) -> None:
    """
    Build an AutoStep project and run its tests.

    Tests only run when the build succeeds. Exits 0 when every scenario
    passes, 1 otherwise.
    """
    configure_logging(verbose, diagnostic)
    project_dir = resolve_directory(directory)
    exit_code = execute_operation(run_operation(project_dir, config, option, diagnostic))
    raise typer.Exit(code=exit_code)
