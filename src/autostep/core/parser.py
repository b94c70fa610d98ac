"""
Parsers for AutoStep test (``.as``) and interaction (``.asi``) files.

The grammar understood here is deliberately small.

Test files:

    # comment
    Feature: Login
      Free text description

      Scenario: Valid user can log in
        Given I am on the login page
        When I enter 'admin' into the username field
        And I click login
        Then I am logged in

Interaction files declare step definitions:

    # autostep interactions file
    Step: Given I am on the login page
    Step: When I click {button}

Other content in interaction files is accepted and ignored.

Parsing never raises for bad input; problems are returned as diagnostics.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from .diagnostics import Diagnostic, DiagnosticLevel
from .steps import StepBinding, StepDefinition, StepType

_STEP_LINE = re.compile(r"^(Given|When|Then|And|But)\s+(\S.*)$", re.IGNORECASE)
_SECTION_LINE = re.compile(r"^(Feature|Scenario)\s*:\s*(.*)$", re.IGNORECASE)
_STEP_DEF_LINE = re.compile(r"^Step\s*:\s*(.*)$", re.IGNORECASE)
_STEP_DEF_BODY = re.compile(r"^(Given|When|Then)\s+(\S.*)$", re.IGNORECASE)


@dataclass
class StepReference:
    """A step used in a scenario."""

    keyword: str
    step_type: StepType
    text: str
    file: Path
    line: int
    column: int
    binding: StepBinding | None = None

    def __str__(self) -> str:
        return f"{self.keyword} {self.text}"


@dataclass
class ScenarioSpec:
    title: str
    file: Path
    line: int
    steps: list[StepReference] = field(default_factory=list)


@dataclass
class FeatureSpec:
    title: str
    file: Path
    line: int
    description: list[str] = field(default_factory=list)
    scenarios: list[ScenarioSpec] = field(default_factory=list)


def _error(code: str, message: str, file: Path, line: int, column: int = 1) -> Diagnostic:
    return Diagnostic(
        level=DiagnosticLevel.ERROR, code=code, message=message, file=file, line=line, column=column
    )


def parse_test_file(path: Path, text: str) -> tuple[FeatureSpec | None, list[Diagnostic]]:
    """
    Parse a test file.

    Returns:
        Tuple of (feature, diagnostics). The feature is None when the file
        has no ``Feature:`` header.
    """
    diagnostics: list[Diagnostic] = []
    feature: FeatureSpec | None = None
    scenario: ScenarioSpec | None = None
    previous_type: StepType | None = None

    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        column = len(raw) - len(raw.lstrip()) + 1

        section = _SECTION_LINE.match(stripped)
        if section:
            kind, title = section.group(1).lower(), section.group(2).strip()
            if kind == "feature":
                if feature is not None:
                    diagnostics.append(
                        _error("AS006", "Only one Feature is allowed per file.", path, number, column)
                    )
                    continue
                feature = FeatureSpec(title=title, file=path, line=number)
            elif feature is None:
                diagnostics.append(
                    _error("AS002", "Scenario must appear inside a Feature.", path, number, column)
                )
            else:
                scenario = ScenarioSpec(title=title, file=path, line=number)
                feature.scenarios.append(scenario)
                previous_type = None
            continue

        if feature is None:
            diagnostics.append(
                _error("AS002", "Expected 'Feature:' before any other content.", path, number, column)
            )
            continue

        step = _STEP_LINE.match(stripped)
        if step is None:
            if scenario is None:
                feature.description.append(stripped)
            else:
                diagnostics.append(
                    _error("AS001", f"Unexpected content: '{stripped}'.", path, number, column)
                )
            continue

        keyword, step_text = step.group(1).capitalize(), step.group(2).strip()

        if scenario is None:
            diagnostics.append(
                _error("AS003", "Steps must appear inside a Scenario.", path, number, column)
            )
            continue

        if keyword in ("And", "But"):
            if previous_type is None:
                diagnostics.append(
                    _error(
                        "AS004",
                        f"'{keyword}' must follow a Given, When or Then step.",
                        path,
                        number,
                        column,
                    )
                )
                continue
            step_type = previous_type
        else:
            step_type = StepType(keyword.lower())

        scenario.steps.append(
            StepReference(
                keyword=keyword,
                step_type=step_type,
                text=step_text,
                file=path,
                line=number,
                column=column,
            )
        )
        previous_type = step_type

    if feature is None:
        if not diagnostics:
            diagnostics.append(_error("AS002", "File does not contain a Feature.", path, 1))
    elif not feature.scenarios:
        diagnostics.append(
            Diagnostic(
                level=DiagnosticLevel.WARNING,
                code="AS005",
                message=f"Feature '{feature.title}' has no scenarios.",
                file=path,
                line=feature.line,
                column=1,
            )
        )

    return feature, diagnostics


def parse_interaction_file(path: Path, text: str) -> tuple[list[StepDefinition], list[Diagnostic]]:
    """
    Parse an interaction file for ``Step:`` declarations.

    Returns:
        Tuple of (step definitions, diagnostics)
    """
    definitions: list[StepDefinition] = []
    diagnostics: list[Diagnostic] = []

    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue

        declaration = _STEP_DEF_LINE.match(stripped)
        if declaration is None:
            continue

        column = len(raw) - len(raw.lstrip()) + 1
        body = _STEP_DEF_BODY.match(declaration.group(1).strip())
        if body is None:
            diagnostics.append(
                _error(
                    "AS010",
                    "Step declarations must start with Given, When or Then.",
                    path,
                    number,
                    column,
                )
            )
            continue

        definitions.append(
            StepDefinition(
                step_type=StepType(body.group(1).lower()),
                pattern=body.group(2).strip(),
                source=str(path),
                line=number,
            )
        )

    return definitions, diagnostics
