"""
AutoStep core: configuration, extensions, project assembly, compile/link
and execution.
"""

from .build import BuildVerdict, build_and_report
from .config import ResolvedConfiguration, resolve_configuration
from .errors import (
    AutoStepError,
    ExtensionLoadError,
    FileSetError,
    ProjectConfigurationError,
    ScaffoldError,
)
from .extensions import ExtensionEntryPoint, LoadedExtensions, load_extensions
from .fileset import FileSet
from .project import Project, create_project

__all__ = [
    "AutoStepError",
    "BuildVerdict",
    "ExtensionEntryPoint",
    "ExtensionLoadError",
    "FileSet",
    "FileSetError",
    "LoadedExtensions",
    "Project",
    "ProjectConfigurationError",
    "ResolvedConfiguration",
    "ScaffoldError",
    "build_and_report",
    "create_project",
    "load_extensions",
    "resolve_configuration",
]
