"""
Step definitions and step matching.

A step definition pairs a step type (Given/When/Then) with a text pattern.
Patterns may contain ``{name}`` placeholders; each placeholder matches a
single- or double-quoted string or one whitespace-free token:

    Given I have logged in as {user}
    When I click {button}

matches ``Given I have logged in as 'admin'`` with the argument ``admin``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

_PLACEHOLDER = re.compile(r"\{[A-Za-z_][A-Za-z0-9_]*\}")
_ARGUMENT = r"(\"[^\"]*\"|'[^']*'|\S+)"


class StepType(StrEnum):
    """The three kinds of step a scenario can contain."""

    GIVEN = "given"
    WHEN = "when"
    THEN = "then"


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    last = 0
    for match in _PLACEHOLDER.finditer(pattern):
        parts.append(re.escape(pattern[last : match.start()]))
        parts.append(_ARGUMENT)
        last = match.end()
    parts.append(re.escape(pattern[last:]))
    # Whitespace in patterns matches any run of whitespace
    regex = "".join(parts).replace(r"\ ", r"\s+")
    return re.compile(regex, re.IGNORECASE)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


@dataclass
class StepDefinition:
    """
    A bindable step.

    Attributes:
        step_type: Given, When or Then
        pattern: Step text, optionally containing ``{name}`` placeholders
        callback: Called when a bound step executes, as
            ``callback(context, *arguments)``; may be a coroutine function.
            Definitions without a callback pass without doing anything.
        source: Where the definition came from (file path or extension name)
        line: Line number in ``source``, if it is a file
    """

    step_type: StepType
    pattern: str
    callback: Callable[..., Any] | None = None
    source: str = ""
    line: int | None = None
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.pattern = " ".join(self.pattern.split())
        self._regex = _compile_pattern(self.pattern)

    def match(self, text: str) -> list[str] | None:
        """Match step text, returning the placeholder arguments or None."""
        match = self._regex.fullmatch(text.strip())
        if match is None:
            return None
        return [_unquote(group) for group in match.groups()]

    def describe(self) -> str:
        location = self.source
        if self.line:
            location += f":{self.line}"
        return f"'{self.step_type.value.capitalize()} {self.pattern}' ({location})"


@dataclass
class StepBinding:
    """A test step bound to the definition that implements it."""

    definition: StepDefinition
    arguments: list[str] = field(default_factory=list)


class StepRegistry:
    """Ordered collection of step definitions."""

    def __init__(self) -> None:
        self._definitions: list[StepDefinition] = []

    def add(self, definition: StepDefinition) -> StepDefinition:
        self._definitions.append(definition)
        return definition

    def register(
        self,
        step_type: StepType | str,
        pattern: str,
        callback: Callable[..., Any] | None = None,
        source: str = "",
    ) -> StepDefinition:
        return self.add(StepDefinition(StepType(str(step_type).lower()), pattern, callback, source))

    def extend(self, definitions: list[StepDefinition]) -> None:
        self._definitions.extend(definitions)

    def find(self, step_type: StepType, text: str) -> list[StepBinding]:
        """Find every definition of ``step_type`` matching ``text``."""
        bindings = []
        for definition in self._definitions:
            if definition.step_type != step_type:
                continue
            arguments = definition.match(text)
            if arguments is not None:
                bindings.append(StepBinding(definition, arguments))
        return bindings

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)