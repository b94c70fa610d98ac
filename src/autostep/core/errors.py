"""
Error types for AutoStep project configuration, extension loading and builds.

Compiler and linker problems are not exceptions; they are reported as
diagnostics (see ``autostep.core.compiler``). The exceptions here cover the
faults that stop a command outright.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class AutoStepError(Exception):
    """Base exception for all AutoStep errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}: {self.message}"
        return self.message


class ProjectConfigurationError(AutoStepError):
    """
    Raised when the project configuration is malformed or inconsistent.

    Examples:
    - autostep.config.json is not valid JSON
    - An ``-o`` override with an empty key
    - An extension entry without a package name
    """

    pass


class ExtensionLoadError(AutoStepError):
    """
    Raised when a configured extension cannot be resolved or imported.

    Examples:
    - Package not found in any configured source
    - Extension module raises on import
    - Extension module defines no entry point
    """

    pass


class FileSetError(AutoStepError):
    """Raised when a directory walk fails with an I/O error."""

    pass


class ScaffoldError(AutoStepError):
    """Raised when new project files cannot be written."""

    pass


@dataclass
class ErrorContext:
    """
    Source location attached to an error.

    Attributes:
        file: Path to the file the error relates to
        line: Line number (1-indexed), if known
        column: Column number (1-indexed), if known
    """

    file: Path
    line: int | None = None
    column: int | None = None

    def format(self) -> str:
        """Format as ``file``, ``file:line`` or ``file:line:column``."""
        location = str(self.file)
        if self.line:
            location += f":{self.line}"
            if self.column:
                location += f":{self.column}"
        return location


def make_configuration_error(
    message: str,
    file: Path | None = None,
    line: int | None = None,
    column: int | None = None,
) -> ProjectConfigurationError:
    """
    Helper to create a ProjectConfigurationError with optional file context.

    Args:
        message: Error description
        file: Optional configuration file path
        line: Optional line number
        column: Optional column number

    Returns:
        ProjectConfigurationError with context if a file was provided
    """
    if file:
        return ProjectConfigurationError(message, ErrorContext(file=file, line=line, column=column))
    return ProjectConfigurationError(message)
