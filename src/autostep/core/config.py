"""
Layered project configuration.

A command invocation reads its configuration from three layers, lowest
precedence first:

1. ``autostep.config.json`` in the project directory (or the file given
   with ``--config``), when it exists
2. ``AUTOSTEP_*`` environment variables, prefix stripped
3. ``-o key=value`` overrides from the command line

Keys are hierarchical paths separated by ``:`` and compare
case-insensitively. JSON objects and arrays are flattened into that key
space, so ``{"extensions": [{"package": "X"}]}`` contributes the key
``extensions:0:package``. Environment variables use ``__`` in place of ``:``
(``AUTOSTEP_TESTS__0=features/**/*.as``).

Usage:
    config = resolve_configuration(project_dir, overrides=[("tests:0", "**/*.as")])
    config.get_test_file_globs()
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ProjectConfigurationError, make_configuration_error

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "autostep.config.json"
ENV_PREFIX = "AUTOSTEP_"
KEY_DELIMITER = ":"

DEFAULT_INTERACTION_GLOBS = ("**/*.asi",)
DEFAULT_TEST_GLOBS = ("**/*.as",)

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


# =============================================================================
# Extension manifest
# =============================================================================


class ExtensionConfiguration(BaseModel):
    """
    One entry of the ``extensions`` configuration array.

    Example in autostep.config.json:

        "extensions": [
          { "package": "AutoStep.Web", "prerelease": true }
        ]
    """

    package: str = Field(min_length=1)
    version: str | None = None
    prerelease: bool = False

    model_config = ConfigDict(frozen=True)


def _extension_entry(index: int, entry: Any, file: Path | None = None) -> ExtensionConfiguration:
    """Validate one ``extensions`` entry; keys compare case-insensitively."""
    if not isinstance(entry, dict):
        raise make_configuration_error(
            f"Extension entry {index} must be an object with a 'package' property.", file
        )
    try:
        return ExtensionConfiguration.model_validate({k.lower(): v for k, v in entry.items()})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise make_configuration_error(f"Invalid extension entry {index}: {problems}", file) from e


def _check_extension_manifest(data: dict[str, Any], file: Path) -> None:
    """
    Validate the ``extensions`` array of a configuration file before it is
    flattened, while empty entries are still visible.
    """
    for key, value in data.items():
        if _normalize(key) != "extensions":
            continue
        if not isinstance(value, list):
            raise make_configuration_error(
                "'extensions' must be an array of extension entries.", file
            )
        for index, entry in enumerate(value):
            _extension_entry(index, entry, file)


# =============================================================================
# Override parsing
# =============================================================================


@dataclass
class OptionParseResult:
    """Key/value pairs parsed from ``-o`` tokens, plus any parse errors."""

    pairs: list[tuple[str, str]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def parse_key_value_pairs(tokens: Iterable[str]) -> OptionParseResult:
    """
    Parse ``key=value`` override tokens.

    The token is split on the first ``=``. A bare ``key`` means boolean
    true. A token with an empty key is recorded as an error and contributes
    nothing to the result.
    """
    result = OptionParseResult()

    for token in tokens:
        key, sep, value = token.partition("=")

        if not key:
            result.errors.append(f"Option argument '{token}' has an empty key.")
            continue

        result.pairs.append((key, value if sep else "true"))

    return result


# =============================================================================
# Layers
# =============================================================================


def _normalize(key: str) -> str:
    return key.strip(KEY_DELIMITER).lower()


def _join(prefix: str, key: str) -> str:
    return f"{prefix}{KEY_DELIMITER}{key}" if prefix else key


def _overlaps(a: str, b: str) -> bool:
    """True if one normalized key is an ancestor of the other."""
    return a.startswith(b + KEY_DELIMITER) or b.startswith(a + KEY_DELIMITER)


def _scalar_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _flatten(data: Any, prefix: str = "") -> dict[str, str]:
    """Flatten nested JSON data into ``:``-separated keys."""
    items: dict[str, str] = {}
    if isinstance(data, dict):
        for key, value in data.items():
            items.update(_flatten(value, _join(prefix, str(key))))
    elif isinstance(data, list):
        for index, value in enumerate(data):
            items.update(_flatten(value, _join(prefix, str(index))))
    elif prefix:
        items[prefix] = _scalar_to_str(data)
    return items


@dataclass(frozen=True)
class ConfigLayer:
    """
    One source of configuration values.

    ``values`` maps normalized (lower-case) keys to the key as originally
    written and its value.
    """

    name: str
    values: Mapping[str, tuple[str, str]]

    @classmethod
    def from_pairs(cls, name: str, pairs: Iterable[tuple[str, str]]) -> ConfigLayer:
        values: dict[str, tuple[str, str]] = {}
        for key, value in pairs:
            original = key.strip(KEY_DELIMITER)
            values[_normalize(key)] = (original, value)
        return cls(name=name, values=MappingProxyType(values))

    def __len__(self) -> int:
        return len(self.values)


def _build_tree(entries: list[tuple[list[str], str]]) -> Any:
    """Rebuild nested dicts/lists from flattened key segments."""
    if len(entries) == 1 and not entries[0][0]:
        return entries[0][1]

    groups: dict[str, tuple[str, list[tuple[list[str], str]]]] = {}
    for segments, value in entries:
        if not segments:
            # Scalar shadowed by a section at the same key
            continue
        head, *rest = segments
        _, children = groups.setdefault(head.lower(), (head, []))
        children.append((rest, value))

    if groups and all(name.isdigit() for name in groups):
        return [_build_tree(groups[name][1]) for name in sorted(groups, key=int)]
    return {display: _build_tree(children) for display, children in groups.values()}


# =============================================================================
# Resolved configuration
# =============================================================================


@dataclass(frozen=True)
class ResolvedConfiguration:
    """
    Read-only, layered view over the project configuration.

    Lookups return the value from the highest-precedence layer that defines
    the key. A key set in a layer also hides the ancestors and descendants
    of that key set by lower layers, so ``-o tests=a/*.as`` replaces a
    ``tests`` array from the file. Instances are never mutated after
    ``resolve_configuration`` returns them.
    """

    layers: tuple[ConfigLayer, ...] = ()

    @cached_property
    def _entries(self) -> Mapping[str, tuple[str, str]]:
        merged: dict[str, tuple[str, str]] = {}
        for layer in self.layers:
            if merged and layer.values:
                merged = {
                    name: entry
                    for name, entry in merged.items()
                    if not any(_overlaps(name, key) for key in layer.values)
                }
            merged.update(layer.values)
        return MappingProxyType(merged)

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get the scalar value for ``key``."""
        entry = self._entries.get(_normalize(key))
        return entry[1] if entry is not None else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get ``key`` as a boolean; unrecognised values are a configuration error."""
        value = self.get(key)
        if value is None:
            return default
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ProjectConfigurationError(f"Configuration value '{key}' is not a boolean: '{value}'")

    def has_section(self, key: str) -> bool:
        prefix = _normalize(key) + KEY_DELIMITER
        return any(name.startswith(prefix) for name in self._entries)

    def get_section(self, key: str) -> ConfigSection:
        return ConfigSection(self, _normalize(key))

    def to_python(self, key: str = "") -> Any:
        """
        Rebuild the value at ``key`` as plain Python data.

        Sections whose children are all integer indexes become lists, other
        sections become dicts and leaves are strings. Returns None when the
        key is not defined.
        """
        prefix = _normalize(key)
        depth = len(prefix.split(KEY_DELIMITER)) if prefix else 0

        entries: list[tuple[list[str], str]] = []
        for name, (original, value) in self._entries.items():
            if prefix and name != prefix and not name.startswith(prefix + KEY_DELIMITER):
                continue
            segments = original.split(KEY_DELIMITER)[depth:]
            entries.append((segments, value))

        if not entries:
            return None
        return _build_tree(entries)

    def get_list(self, key: str) -> list[str] | None:
        """
        Get ``key`` as a list of strings.

        A scalar value is treated as a single-element list. Returns None
        when the key is not defined.
        """
        value = self.to_python(key)
        if value is None:
            return None
        if isinstance(value, str):
            return [value]
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return value
        raise ProjectConfigurationError(f"Configuration value '{key}' must be a list of strings.")

    # -------------------------------------------------------------------------
    # Project settings
    # -------------------------------------------------------------------------

    def get_extension_configuration(self) -> list[ExtensionConfiguration]:
        """Read the ``extensions`` manifest."""
        raw = self.to_python("extensions")
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ProjectConfigurationError("'extensions' must be an array of extension entries.")

        return [_extension_entry(index, entry) for index, entry in enumerate(raw)]

    def get_extension_sources(self) -> list[str]:
        return self.get_list("extensionSources") or []

    def get_interaction_file_globs(self) -> list[str]:
        return self.get_list("interactions") or list(DEFAULT_INTERACTION_GLOBS)

    def get_test_file_globs(self) -> list[str]:
        return self.get_list("tests") or list(DEFAULT_TEST_GLOBS)


@dataclass(frozen=True)
class ConfigSection:
    """A view of the configuration rooted at a key path."""

    configuration: ResolvedConfiguration
    path: str

    def _key(self, key: str) -> str:
        return _join(self.path, key)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.configuration.get(self._key(key), default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self.configuration.get_bool(self._key(key), default)

    def get_list(self, key: str) -> list[str] | None:
        return self.configuration.get_list(self._key(key))

    def get_section(self, key: str) -> ConfigSection:
        return ConfigSection(self.configuration, _normalize(self._key(key)))

    def exists(self) -> bool:
        return self.configuration.get(self.path) is not None or self.configuration.has_section(
            self.path
        )

    def to_python(self) -> Any:
        return self.configuration.to_python(self.path)


# =============================================================================
# Resolution
# =============================================================================


def _load_json_layer(path: Path) -> ConfigLayer:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise make_configuration_error(f"Could not read configuration file: {e}", path) from e
    except UnicodeDecodeError as e:
        raise make_configuration_error(f"Configuration file is not valid UTF-8: {e}", path) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise make_configuration_error(f"Invalid JSON: {e.msg}", path, e.lineno, e.colno) from e

    if not isinstance(data, dict):
        raise make_configuration_error("Configuration root must be a JSON object.", path)

    _check_extension_manifest(data, path)

    return ConfigLayer.from_pairs(str(path), _flatten(data).items())


def _environment_layer(environ: Mapping[str, str]) -> ConfigLayer:
    pairs = []
    for name, value in environ.items():
        if len(name) > len(ENV_PREFIX) and name.upper().startswith(ENV_PREFIX):
            key = name[len(ENV_PREFIX) :].replace("__", KEY_DELIMITER)
            pairs.append((key, value))
    return ConfigLayer.from_pairs("environment", pairs)


def resolve_configuration(
    directory: Path,
    config_file: Path | None = None,
    overrides: Iterable[tuple[str, str]] = (),
    environ: Mapping[str, str] | None = None,
) -> ResolvedConfiguration:
    """
    Build the layered configuration for a project.

    Args:
        directory: Project directory
        config_file: Explicit configuration file; defaults to
            ``<directory>/autostep.config.json``
        overrides: Key/value pairs from the command line (highest precedence)
        environ: Environment mapping; defaults to ``os.environ``

    Returns:
        The resolved, read-only configuration

    Raises:
        ProjectConfigurationError: If the configuration file is not a valid
            JSON object
    """
    if config_file is None:
        config_file = directory / CONFIG_FILE_NAME

    layers: list[ConfigLayer] = []

    if config_file.is_file():
        logger.debug("Loading configuration from %s", config_file)
        layers.append(_load_json_layer(config_file))
    else:
        logger.debug("No configuration file at %s", config_file)
        layers.append(ConfigLayer.from_pairs(str(config_file), []))

    layers.append(_environment_layer(os.environ if environ is None else environ))
    layers.append(ConfigLayer.from_pairs("command line", overrides))

    return ResolvedConfiguration(layers=tuple(layers))
