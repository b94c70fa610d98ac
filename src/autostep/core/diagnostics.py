"""
Compiler and linker diagnostics.

Diagnostics are values, not exceptions: every problem found while compiling
or linking a project is collected and reported, and only error-level
diagnostics make a build fail.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class DiagnosticLevel(StrEnum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Diagnostic(BaseModel):
    """
    A single compiler or linker message.

    Attributes:
        level: Severity
        message: Human-readable description
        code: Short identifier for the kind of problem (e.g. ``AS001``)
        file: Source file the message relates to
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    level: DiagnosticLevel
    message: str
    code: str | None = None
    file: Path | None = None
    line: int | None = None
    column: int | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_error(self) -> bool:
        return self.level == DiagnosticLevel.ERROR

    def location(self) -> str:
        if self.file is None:
            return ""
        location = str(self.file)
        if self.line:
            location += f":{self.line}"
            if self.column:
                location += f":{self.column}"
        return location

    def __str__(self) -> str:
        label = self.level.value
        if self.code:
            label += f" {self.code}"
        location = self.location()
        if location:
            return f"{location}: {label}: {self.message}"
        return f"{label}: {self.message}"


def has_errors(diagnostics: list[Diagnostic] | tuple[Diagnostic, ...]) -> bool:
    return any(d.is_error for d in diagnostics)
