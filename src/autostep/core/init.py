"""
New project scaffolding.

Both templates name their files after the project directory:
``<dir>/<dir name>.as`` for the test file and, for web projects,
``<dir>/<dir name>.asi`` for the interactions file. Existing files are
overwritten.
"""

import json
import logging
from pathlib import Path

from .config import CONFIG_FILE_NAME
from .errors import ScaffoldError
from .project import INTERACTION_FILE_EXTENSION, TEST_FILE_EXTENSION

logger = logging.getLogger(__name__)

BLANK_TEST_FILE_CONTENT = "Feature: <Feature title> \n   Scenario: Clicked on X shows Y"
INTERACTIONS_FILE_CONTENT = "# autostep interactions file"

WEB_EXTENSION_PACKAGE = "AutoStep.Web"
WEB_EXTENSION_FEED = "https://f.feedz.io/autostep/ci/nuget/index.json"

BLANK_CONFIG = {
    "extensions": [],
    "extensionSources": [],
}

WEB_CONFIG = {
    "extensions": [
        {"package": WEB_EXTENSION_PACKAGE, "prerelease": True},
    ],
    "extensionSources": [
        WEB_EXTENSION_FEED,
    ],
}


def _write_files(directory: Path, files: dict[str, str]) -> list[Path]:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for name, content in files.items():
            path = directory / name
            path.write_text(content, encoding="utf-8")
            written.append(path)
    except OSError as e:
        raise ScaffoldError(f"Failed to create project files in {directory}: {e}") from e
    return written


def _project_name(directory: Path) -> str:
    return directory.resolve().name


def create_blank_project(directory: Path) -> list[Path]:
    """
    Create a blank project: one test file and an empty configuration.

    Returns:
        The files written

    Raises:
        ScaffoldError: If the directory or a file cannot be written
    """
    name = _project_name(directory)
    written = _write_files(
        directory,
        {
            f"{name}.{TEST_FILE_EXTENSION}": BLANK_TEST_FILE_CONTENT,
            CONFIG_FILE_NAME: json.dumps(BLANK_CONFIG, indent=4) + "\n",
        },
    )
    logger.info("Blank project created.")
    return written


def create_web_project(directory: Path) -> list[Path]:
    """
    Create a web project: interactions file, test file and a configuration
    that references the web extension.

    Returns:
        The files written

    Raises:
        ScaffoldError: If the directory or a file cannot be written
    """
    name = _project_name(directory)
    written = _write_files(
        directory,
        {
            f"{name}.{INTERACTION_FILE_EXTENSION}": INTERACTIONS_FILE_CONTENT,
            f"{name}.{TEST_FILE_EXTENSION}": BLANK_TEST_FILE_CONTENT,
            CONFIG_FILE_NAME: json.dumps(WEB_CONFIG, indent=4) + "\n",
        },
    )
    logger.info("Blank web project created.")
    return written
