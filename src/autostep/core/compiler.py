"""
Default compile and link service for AutoStep projects.

Compilation parses every interaction and test file in the project.
Linking binds each test step to exactly one step definition, taken from
the interaction files and from definitions registered by extensions.

Both phases return a ``ProjectCompilerResult``; problems are reported as
diagnostics and never raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .diagnostics import Diagnostic, DiagnosticLevel, has_errors
from .parser import FeatureSpec, parse_interaction_file, parse_test_file
from .steps import StepDefinition, StepRegistry

if TYPE_CHECKING:
    from .project import Project

logger = logging.getLogger(__name__)

TRACE = 5


@dataclass
class ProjectCompilerOptions:
    """
    Compiler options.

    Attributes:
        diagnostics: Emit per-file TRACE logging while compiling and linking
    """

    diagnostics: bool = False


@dataclass
class ProjectCompilerResult:
    """Outcome of a compile or link pass."""

    messages: list[Diagnostic] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not has_errors(self.messages)


def _read_error(path: Path, error: OSError | UnicodeDecodeError) -> Diagnostic:
    return Diagnostic(
        level=DiagnosticLevel.ERROR,
        code="AS030",
        message=f"Could not read file: {error}",
        file=path,
    )


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8-sig")


class ProjectCompiler:
    """
    Compiles and links the files of a ``Project``.

    After a successful link, ``features`` holds the parsed features with
    every step bound, ready to hand to a test run.
    """

    def __init__(self, project: Project, options: ProjectCompilerOptions | None = None):
        self.project = project
        self.options = options or ProjectCompilerOptions()
        self.features: list[FeatureSpec] = []
        self.interaction_steps: list[StepDefinition] = []
        self.linked = False

    def _trace(self, msg: str, *args: object) -> None:
        if self.options.diagnostics:
            logger.log(TRACE, msg, *args)

    async def compile(self) -> ProjectCompilerResult:
        """Parse every interaction and test file in the project."""
        result = ProjectCompilerResult()
        features: list[FeatureSpec] = []
        interaction_steps: list[StepDefinition] = []

        for path in self.project.interaction_files:
            self._trace("Compiling interaction file %s", path)
            try:
                text = await asyncio.to_thread(_read_text, path)
            except (OSError, UnicodeDecodeError) as e:
                result.messages.append(_read_error(path, e))
                continue
            definitions, messages = parse_interaction_file(path, text)
            interaction_steps.extend(definitions)
            result.messages.extend(messages)

        for path in self.project.test_files:
            self._trace("Compiling test file %s", path)
            try:
                text = await asyncio.to_thread(_read_text, path)
            except (OSError, UnicodeDecodeError) as e:
                result.messages.append(_read_error(path, e))
                continue
            feature, messages = parse_test_file(path, text)
            if feature is not None:
                features.append(feature)
            result.messages.extend(messages)

        self.features = features
        self.interaction_steps = interaction_steps
        self.linked = False
        self._trace(
            "Compiled %d feature(s) and %d interaction step(s)", len(features), len(interaction_steps)
        )
        return result

    async def link(self) -> ProjectCompilerResult:
        """Bind every compiled test step to a step definition."""
        result = ProjectCompilerResult()

        registry = StepRegistry()
        registry.extend(list(self.project.steps))
        registry.extend(self.interaction_steps)

        for feature in self.features:
            for scenario in feature.scenarios:
                for step in scenario.steps:
                    bindings = registry.find(step.step_type, step.text)
                    step.binding = None

                    if not bindings:
                        result.messages.append(
                            Diagnostic(
                                level=DiagnosticLevel.ERROR,
                                code="AS020",
                                message=f"No step definition matches '{step}'.",
                                file=step.file,
                                line=step.line,
                                column=step.column,
                            )
                        )
                    elif len(bindings) > 1:
                        candidates = ", ".join(b.definition.describe() for b in bindings)
                        result.messages.append(
                            Diagnostic(
                                level=DiagnosticLevel.ERROR,
                                code="AS021",
                                message=f"Step '{step}' matches more than one definition: {candidates}.",
                                file=step.file,
                                line=step.line,
                                column=step.column,
                            )
                        )
                    else:
                        step.binding = bindings[0]
                        self._trace("Bound '%s' to %s", step, bindings[0].definition.describe())

            # Cancellation checkpoint
            await asyncio.sleep(0)

        self.linked = result.success
        return result
