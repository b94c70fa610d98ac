"""
Project model and project assembly.

A ``Project`` holds the two file sets the compiler consumes (interaction
files and test files), the compiler options, settings and step
definitions registered by extensions, and the compiler itself.

``create_project`` performs the common assembly pipeline:
1. Create the project (diagnostic compiler options if requested)
2. Let each loaded extension attach to the project
3. Merge extension content files
4. Merge project files selected by the configured globs
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .compiler import ProjectCompiler, ProjectCompilerOptions
from .config import ResolvedConfiguration
from .fileset import FileSet
from .steps import StepDefinition, StepRegistry, StepType

if TYPE_CHECKING:
    from .execution import TestRun
    from .extensions import LoadedExtensions

logger = logging.getLogger(__name__)

INTERACTION_FILE_EXTENSION = "asi"
TEST_FILE_EXTENSION = "as"

# Tool working directory (installed extensions, generated files)
WORKING_DIRECTORY = ".autostep"
WORKING_DIRECTORY_EXCLUDE = f"{WORKING_DIRECTORY}/**"

EXTENSION_INTERACTION_GLOB = f"*/content/**/*.{INTERACTION_FILE_EXTENSION}"
EXTENSION_TEST_GLOB = f"*/content/**/*.{TEST_FILE_EXTENSION}"

CompilerFactory = Callable[["Project", ProjectCompilerOptions], Any]


class Project:
    """
    In-memory model of an AutoStep project for one command invocation.

    Attributes:
        compiler_options: Options the compiler was created with
        interaction_files: Interaction (``.asi``) files in the project
        test_files: Test (``.as``) files in the project
        settings: Free-form settings registered by extensions
        steps: Step definitions registered by extensions
        compiler: Compile/link service for this project
    """

    def __init__(
        self,
        compiler_options: ProjectCompilerOptions | None = None,
        compiler_factory: CompilerFactory | None = None,
    ):
        self.compiler_options = compiler_options or ProjectCompilerOptions()
        self.interaction_files = FileSet.empty()
        self.test_files = FileSet.empty()
        self.settings: dict[str, Any] = {}
        self.steps = StepRegistry()

        factory = compiler_factory or ProjectCompiler
        self.compiler = factory(self, self.compiler_options)

    def merge_interaction_file_set(self, file_set: FileSet) -> None:
        self.interaction_files = self.interaction_files.merge(file_set)

    def merge_test_file_set(self, file_set: FileSet) -> None:
        self.test_files = self.test_files.merge(file_set)

    def register_step(
        self,
        step_type: StepType | str,
        pattern: str,
        callback: Callable[..., Any] | None = None,
        source: str = "",
    ) -> StepDefinition:
        """Register a step definition that test steps can bind to."""
        return self.steps.register(step_type, pattern, callback, source)

    def create_test_run(self, configuration: ResolvedConfiguration) -> TestRun:
        """Create a test run over the compiled and linked features."""
        from .execution import TestRun

        return TestRun(self, configuration, list(getattr(self.compiler, "features", [])))


def _project_excludes(directory: Path, extensions: LoadedExtensions) -> list[str]:
    """Skip the working directory and vendored extensions installed from inside the project."""
    excludes = [WORKING_DIRECTORY_EXCLUDE]
    root = directory.resolve()
    for source in extensions.vendored_directories:
        try:
            relative = source.resolve().relative_to(root)
        except ValueError:
            continue
        excludes.append(f"{relative.as_posix()}/**")
    return excludes


async def create_project(
    directory: Path,
    configuration: ResolvedConfiguration,
    extensions: LoadedExtensions,
    diagnostic: bool = False,
    compiler_factory: CompilerFactory | None = None,
) -> Project:
    """
    Assemble the project for ``directory``.

    Args:
        directory: Project directory
        configuration: Resolved project configuration
        extensions: Loaded extension set
        diagnostic: Create the compiler in diagnostic mode
        compiler_factory: Alternative compiler implementation

    Returns:
        The assembled project, ready to build

    Raises:
        FileSetError: If scanning the extension or project directories fails
    """
    project = Project(ProjectCompilerOptions(diagnostics=diagnostic), compiler_factory)

    for entry_point in extensions.entry_points:
        logger.debug("Attaching extension %s to project", entry_point.name)
        entry_point.attach_to_project(configuration, project)

    # The whole extensions directory is one file set per file kind
    ext_interaction_files = await asyncio.to_thread(
        FileSet.create, extensions.extensions_root_dir, [EXTENSION_INTERACTION_GLOB]
    )
    ext_test_files = await asyncio.to_thread(
        FileSet.create, extensions.extensions_root_dir, [EXTENSION_TEST_GLOB]
    )

    project.merge_interaction_file_set(ext_interaction_files)
    project.merge_test_file_set(ext_test_files)

    excludes = _project_excludes(directory, extensions)
    interaction_files = await asyncio.to_thread(
        FileSet.create, directory, configuration.get_interaction_file_globs(), excludes
    )
    test_files = await asyncio.to_thread(
        FileSet.create, directory, configuration.get_test_file_globs(), excludes
    )

    project.merge_interaction_file_set(interaction_files)
    project.merge_test_file_set(test_files)

    logger.debug(
        "Project has %d interaction file(s) and %d test file(s)",
        len(project.interaction_files),
        len(project.test_files),
    )
    return project
