"""
Extension loading.

Extensions are named in the ``extensions`` configuration section and
resolved against a list of sources. The first source is always the project
directory, for locally vendored extensions; ``extensionSources`` adds more.

The default loader resolves each package by looking for:

1. A vendored package in any local source: an archive
   ``<source>/<package>.zip`` or a directory ``<source>/<package>/``, with
   ``extension.py`` at its root. It is installed (extracted or copied) into
   ``<project>/.autostep/extensions/<package>/`` and imported from there.
   Project globs skip vendored directories under the project, so their
   content is only read from the installed copy.
2. An already-installed copy in the extensions directory.
3. An installed Python distribution that registers the package name in the
   ``autostep.extensions`` entry-point group.

Remote sources (URLs) are carried in the source list for loaders that can
fetch from them; the default loader only searches local directories.

Each extension module provides a subclass of ``ExtensionEntryPoint``:

    class WebExtension(ExtensionEntryPoint):
        def attach_to_project(self, configuration, project):
            project.register_step("given", "I navigate to {url}", self.navigate)

The loaded set must be released when the command finishes; use
``load_extensions`` as an async context manager to guarantee that.
"""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import logging
import re
import shutil
import sys
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, Protocol

from .config import ExtensionConfiguration, ResolvedConfiguration
from .errors import ErrorContext, ExtensionLoadError

if TYPE_CHECKING:
    from .execution import ServiceRegistry, TestRun
    from .project import Project

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "autostep.extensions"
EXTENSION_MODULE_FILE = "extension.py"
EXTENSIONS_DIRECTORY = Path(".autostep") / "extensions"

# Release segment followed by a pre-release tag; a local "+..." suffix never counts
_PRERELEASE = re.compile(
    r"^[^+]*?\d[-_.]?(?:a|b|c|rc|alpha|beta|pre|preview|dev)[-_.]?\d*"
    r"(?:[-_.]?post\d+)?(?:\+.*)?$",
    re.IGNORECASE,
)
_MODULE_NAME_CHARS = re.compile(r"[^0-9A-Za-z_]")


class ExtensionEntryPoint:
    """
    Base class for AutoStep extensions.

    Every hook is optional; the defaults do nothing.
    """

    #: Package name, set by the loader
    name: str = ""

    def attach_to_project(self, configuration: ResolvedConfiguration, project: Project) -> None:
        """Register step definitions or settings on the project."""

    def extend_execution(self, configuration: ResolvedConfiguration, test_run: TestRun) -> None:
        """Add event handlers or otherwise adjust a test run before it starts."""

    def configure_execution_services(
        self, configuration: ResolvedConfiguration, services: ServiceRegistry
    ) -> None:
        """Register services available to steps during execution."""

    def dispose(self) -> None:
        """Release resources held by the extension."""


def _is_url(source: str) -> bool:
    return "://" in source


@dataclass
class SourceSettings:
    """Where extension packages are resolved from."""

    project_directory: Path
    custom_sources: list[str] = field(default_factory=list)

    def append_custom_sources(self, sources: Sequence[str]) -> None:
        self.custom_sources.extend(sources)

    @property
    def all_sources(self) -> list[str]:
        return [str(self.project_directory), *self.custom_sources]

    def local_directories(self) -> list[Path]:
        """Local sources, relative paths resolved against the project directory."""
        directories = [self.project_directory]
        for source in self.custom_sources:
            if _is_url(source):
                continue
            path = Path(source).expanduser()
            if not path.is_absolute():
                path = self.project_directory / path
            directories.append(path)
        return directories

    def remote_sources(self) -> list[str]:
        return [source for source in self.custom_sources if _is_url(source)]


@dataclass
class LoadedExtension:
    """A single resolved and loaded extension."""

    package: str
    entry_point: ExtensionEntryPoint
    version: str | None = None
    module_name: str | None = None
    install_dir: Path | None = None
    # Vendored directory the extension was copied from
    source_dir: Path | None = None


class LoadedExtensions:
    """
    The extensions loaded for one command.

    ``entry_points`` is ordered as the extensions appear in configuration.
    """

    def __init__(self, extensions_root_dir: Path):
        self.extensions_root_dir = extensions_root_dir
        self.extensions: list[LoadedExtension] = []
        self.released = False

    def add(self, extension: LoadedExtension) -> None:
        self.extensions.append(extension)

    @property
    def entry_points(self) -> list[ExtensionEntryPoint]:
        return [ext.entry_point for ext in self.extensions]

    @property
    def vendored_directories(self) -> list[Path]:
        return [ext.source_dir for ext in self.extensions if ext.source_dir is not None]

    def release(self) -> None:
        """Dispose every entry point and unload imported extension modules."""
        if self.released:
            return
        self.released = True

        for ext in reversed(self.extensions):
            try:
                ext.entry_point.dispose()
            except Exception as e:
                logger.warning("Extension %s failed to dispose: %s", ext.package, e)

            if ext.module_name:
                for name in [
                    m for m in sys.modules if m == ext.module_name or m.startswith(ext.module_name + ".")
                ]:
                    del sys.modules[name]

        logger.debug("Released %d extension(s)", len(self.extensions))
        self.extensions = []

    def __len__(self) -> int:
        return len(self.extensions)


class ExtensionLoader(Protocol):
    """Anything that can resolve and load a set of extensions."""

    extensions_dir: Path

    async def load_extensions(
        self,
        sources: SourceSettings,
        manifest: Sequence[ExtensionConfiguration],
        diagnostics: bool = False,
    ) -> LoadedExtensions: ...


def _find_entry_point_class(module: ModuleType, package: str) -> type[ExtensionEntryPoint]:
    candidates = [
        obj
        for _name, obj in inspect.getmembers(module, inspect.isclass)
        if issubclass(obj, ExtensionEntryPoint)
        and obj is not ExtensionEntryPoint
        and obj.__module__ == module.__name__
    ]
    if not candidates:
        raise ExtensionLoadError(f"Extension '{package}' does not define an ExtensionEntryPoint.")
    if len(candidates) > 1:
        names = ", ".join(c.__name__ for c in candidates)
        raise ExtensionLoadError(
            f"Extension '{package}' defines more than one ExtensionEntryPoint: {names}."
        )
    return candidates[0]


def _instantiate(target: Any, package: str) -> ExtensionEntryPoint:
    entry_point = target() if inspect.isclass(target) else target
    if not isinstance(entry_point, ExtensionEntryPoint):
        raise ExtensionLoadError(
            f"Entry point for extension '{package}' is not an ExtensionEntryPoint."
        )
    entry_point.name = package
    return entry_point


def is_prerelease(version: str) -> bool:
    return bool(_PRERELEASE.match(version))


class ExtensionSetLoader:
    """
    Default extension loader.

    Args:
        extensions_dir: Directory extensions are installed into
        root_package: Prefix for the module names of imported extensions
    """

    def __init__(self, extensions_dir: Path, root_package: str = "autostep"):
        self.extensions_dir = extensions_dir
        self.root_package = root_package

    async def load_extensions(
        self,
        sources: SourceSettings,
        manifest: Sequence[ExtensionConfiguration],
        diagnostics: bool = False,
    ) -> LoadedExtensions:
        """
        Resolve and load every extension in ``manifest``.

        On failure or cancellation, anything loaded so far is released
        before the exception propagates.

        Raises:
            ExtensionLoadError: If a package cannot be resolved or imported
        """
        loaded = LoadedExtensions(self.extensions_dir)

        if manifest:
            logger.info("Loading %d extension(s).", len(manifest))
        if diagnostics:
            logger.debug("Extension sources: %s", ", ".join(sources.all_sources))

        try:
            for config in manifest:
                extension = await self._load_one(sources, config)
                loaded.add(extension)
                logger.debug("Loaded extension %s", config.package)
        except BaseException:
            loaded.release()
            raise

        return loaded

    async def _load_one(
        self, sources: SourceSettings, config: ExtensionConfiguration
    ) -> LoadedExtension:
        vendored = self._find_vendored(sources, config.package)
        if vendored is not None:
            install_dir = await asyncio.to_thread(self._install, vendored, config.package)
            extension = self._import_directory(install_dir, config.package)
            if vendored.is_dir():
                extension.source_dir = vendored
            return extension

        installed = self.extensions_dir / config.package
        if (installed / EXTENSION_MODULE_FILE).is_file():
            return self._import_directory(installed, config.package)

        extension = self._load_distribution(config)
        if extension is not None:
            return extension

        searched = [str(d) for d in sources.local_directories()]
        message = f"Could not resolve extension '{config.package}'. Searched: {', '.join(searched)}"
        remote = sources.remote_sources()
        if remote:
            message += f" (remote sources not searched: {', '.join(remote)})"
        raise ExtensionLoadError(message)

    def _find_vendored(self, sources: SourceSettings, package: str) -> Path | None:
        for directory in sources.local_directories():
            archive = directory / f"{package}.zip"
            if archive.is_file():
                return archive
            candidate = directory / package
            if (candidate / EXTENSION_MODULE_FILE).is_file():
                return candidate
        return None

    def _install(self, source: Path, package: str) -> Path:
        target = self.extensions_dir / package
        if source.resolve() == target.resolve():
            return target
        try:
            self.extensions_dir.mkdir(parents=True, exist_ok=True)
            if target.exists():
                shutil.rmtree(target)
            if source.is_file():
                shutil.unpack_archive(source, target, "zip")
            else:
                shutil.copytree(source, target)
        except OSError as e:
            raise ExtensionLoadError(
                f"Failed to install extension '{package}': {e}", ErrorContext(file=source)
            ) from e

        if not (target / EXTENSION_MODULE_FILE).is_file():
            raise ExtensionLoadError(
                f"Extension '{package}' has no {EXTENSION_MODULE_FILE} at its root.",
                ErrorContext(file=source),
            )
        logger.debug("Installed extension %s into %s", package, target)
        return target

    def _import_directory(self, directory: Path, package: str) -> LoadedExtension:
        module_name = f"{self.root_package}_ext_{_MODULE_NAME_CHARS.sub('_', package.lower())}"
        module_file = directory / EXTENSION_MODULE_FILE

        spec = importlib.util.spec_from_file_location(
            module_name, module_file, submodule_search_locations=[str(directory)]
        )
        if spec is None or spec.loader is None:
            raise ExtensionLoadError(
                f"Cannot import extension '{package}'.", ErrorContext(file=module_file)
            )

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
            entry_point = _instantiate(_find_entry_point_class(module, package), package)
        except ExtensionLoadError:
            sys.modules.pop(module_name, None)
            raise
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise ExtensionLoadError(
                f"Extension '{package}' failed to load: {e}", ErrorContext(file=module_file)
            ) from e

        return LoadedExtension(
            package=package,
            entry_point=entry_point,
            module_name=module_name,
            install_dir=directory,
        )

    def _load_distribution(self, config: ExtensionConfiguration) -> LoadedExtension | None:
        for ep in metadata.entry_points(group=ENTRY_POINT_GROUP):
            if ep.name.lower() != config.package.lower():
                continue

            dist = getattr(ep, "dist", None)
            version = dist.version if dist is not None else None

            if version is not None:
                if config.version and version != config.version:
                    raise ExtensionLoadError(
                        f"Extension '{config.package}' is installed at version {version}, "
                        f"but version {config.version} is configured."
                    )
                if is_prerelease(version) and not config.prerelease:
                    raise ExtensionLoadError(
                        f"Extension '{config.package}' {version} is a prerelease; "
                        "set \"prerelease\": true to allow it."
                    )

            try:
                target = ep.load()
            except Exception as e:
                raise ExtensionLoadError(f"Extension '{config.package}' failed to load: {e}") from e

            return LoadedExtension(
                package=config.package,
                entry_point=_instantiate(target, config.package),
                version=version,
            )
        return None


@asynccontextmanager
async def load_extensions(
    directory: Path,
    configuration: ResolvedConfiguration,
    diagnostics: bool = False,
    loader: ExtensionLoader | None = None,
) -> AsyncIterator[LoadedExtensions]:
    """
    Load the configured extensions for the project in ``directory``.

    The loader is invoked once. The yielded set is released when the
    ``async with`` block exits, whether normally, by exception or by
    cancellation.

    Raises:
        ProjectConfigurationError: If the extension configuration is invalid
        ExtensionLoadError: If an extension cannot be loaded
    """
    sources = SourceSettings(directory)
    custom_sources = configuration.get_extension_sources()
    if custom_sources:
        sources.append_custom_sources(custom_sources)

    manifest = configuration.get_extension_configuration()

    if loader is None:
        loader = ExtensionSetLoader(directory / EXTENSIONS_DIRECTORY)

    extensions = await loader.load_extensions(sources, manifest, diagnostics)
    try:
        yield extensions
    finally:
        extensions.release()
