"""Shared CLI helpers: logging setup, configuration loading and error reporting."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from autostep.core.compiler import TRACE
from autostep.core.config import ResolvedConfiguration, parse_key_value_pairs, resolve_configuration
from autostep.core.errors import AutoStepError, ProjectConfigurationError

ROOT_LOGGER_NAME = "autostep"

logger = logging.getLogger("autostep.cli")

# Handler installed by the last configure_logging call
_cli_handler: RichHandler | None = None


def configure_logging(verbose: bool = False, diagnostic: bool = False) -> logging.Logger:
    """
    Send ``autostep`` log records to stderr through rich.

    INFO by default, DEBUG with ``verbose``, TRACE with ``diagnostic``.
    Calling it again replaces the handler from the previous call.
    """
    global _cli_handler

    logging.addLevelName(TRACE, "TRACE")

    if diagnostic:
        level = TRACE
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _cli_handler is not None:
        root.removeHandler(_cli_handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=diagnostic,
    )
    handler.setLevel(level)

    root.addHandler(handler)
    _cli_handler = handler
    root.setLevel(level)
    root.propagate = False
    return root


def resolve_directory(directory: Path | None) -> Path:
    return (directory or Path.cwd()).resolve()


def load_configuration(
    directory: Path, config_file: Path | None, options: list[str] | None
) -> ResolvedConfiguration:
    """
    Resolve configuration for a build command.

    Raises:
        ProjectConfigurationError: If an ``-o`` value or the configuration
            file is malformed
    """
    parsed = parse_key_value_pairs(options or [])
    if parsed.errors:
        raise ProjectConfigurationError(" ".join(parsed.errors))

    return resolve_configuration(directory, config_file, parsed.pairs)


def execute_operation(operation: Coroutine[Any, Any, int]) -> int:
    """
    Run an async command to completion and map AutoStep errors to exit code 1.

    The coroutine releases its own resources before an error reaches this
    point, so each error is reported exactly once, here.
    """
    try:
        return asyncio.run(operation)
    except ProjectConfigurationError as e:
        logger.error("Project configuration error: %s", e)
        return 1
    except AutoStepError as e:
        logger.error("%s", e)
        return 1
