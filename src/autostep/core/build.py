"""
Build orchestration: compile, then link, then a verdict.

The link phase always runs, even when compilation reported errors, so a
single build shows every diagnostic from both phases. Diagnostics are
never dropped; only error-level diagnostics make the build fail.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .diagnostics import Diagnostic, DiagnosticLevel, has_errors

if TYPE_CHECKING:
    from .project import Project

BUILD_LOGGER_NAME = "autostep.build"

# Diagnostic severity -> logging level. Anything not listed logs at INFO.
DIAGNOSTIC_LOG_LEVELS: dict[DiagnosticLevel, int] = {
    DiagnosticLevel.ERROR: logging.ERROR,
    DiagnosticLevel.WARNING: logging.INFO,
    DiagnosticLevel.INFO: logging.INFO,
}


def log_level_for(level: DiagnosticLevel) -> int:
    return DIAGNOSTIC_LOG_LEVELS.get(level, logging.INFO)


@dataclass(frozen=True)
class BuildVerdict:
    """
    Outcome of a build.

    Attributes:
        success: True only if neither phase produced an error diagnostic
        compile_diagnostics: Everything the compile phase reported
        link_diagnostics: Everything the link phase reported
    """

    success: bool
    compile_diagnostics: tuple[Diagnostic, ...] = ()
    link_diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return self.compile_diagnostics + self.link_diagnostics

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.is_error)


def write_build_results(logger: logging.Logger, messages: Sequence[Diagnostic]) -> None:
    """Log every diagnostic at the level its severity maps to."""
    for message in messages:
        logger.log(log_level_for(message.level), "%s", message)


async def build_and_report(project: Project, logger: logging.Logger | None = None) -> BuildVerdict:
    """
    Compile and link ``project``, logging all diagnostics.

    Args:
        project: Assembled project
        logger: Where progress and diagnostics are logged

    Returns:
        BuildVerdict with the diagnostics of both phases

    Raises:
        Whatever the compiler raises for infrastructure faults; nothing is
        retried or swallowed.
    """
    if logger is None:
        logger = logging.getLogger(BUILD_LOGGER_NAME)

    logger.info("Compiling Project.")

    compiled = await project.compiler.compile()
    compile_messages = tuple(compiled.messages)

    success = True

    write_build_results(logger, compile_messages)

    if has_errors(compile_messages):
        logger.warning("Compilation failed with one or more errors.")
        success = False
    else:
        logger.info("Compiled successfully.")

    logger.info("Binding Steps.")

    linked = await project.compiler.link()
    link_messages = tuple(linked.messages)

    write_build_results(logger, link_messages)

    if has_errors(link_messages):
        logger.warning("Step binding failed with one or more errors.")
        success = False
    else:
        logger.info("All steps bound successfully.")

    return BuildVerdict(
        success=success,
        compile_diagnostics=compile_messages,
        link_diagnostics=link_messages,
    )
