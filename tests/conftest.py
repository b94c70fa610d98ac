"""Shared pytest fixtures for AutoStep tests."""

import logging
from pathlib import Path

import pytest

from autostep.core.config import ResolvedConfiguration, resolve_configuration


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Return an empty project directory."""
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def empty_configuration(project_dir: Path) -> ResolvedConfiguration:
    """Return the configuration of a project with no config file."""
    return resolve_configuration(project_dir, environ={})


@pytest.fixture(autouse=True)
def reset_autostep_logging():
    """Restore the autostep logger after tests that configure CLI logging."""
    root = logging.getLogger("autostep")
    handlers = list(root.handlers)
    level = root.level
    propagate = root.propagate
    yield
    root.handlers = handlers
    root.setLevel(level)
    root.propagate = propagate

