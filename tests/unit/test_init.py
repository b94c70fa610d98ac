"""Tests for new project scaffolding."""

import json
from pathlib import Path

import pytest

from autostep.core.errors import ScaffoldError
from autostep.core.init import (
    BLANK_TEST_FILE_CONTENT,
    WEB_EXTENSION_FEED,
    create_blank_project,
    create_web_project,
)


def test_blank_project(tmp_path: Path):
    directory = tmp_path / "myproj"

    written = create_blank_project(directory)

    assert sorted(p.name for p in written) == ["autostep.config.json", "myproj.as"]
    assert (directory / "myproj.as").read_text() == BLANK_TEST_FILE_CONTENT
    config = json.loads((directory / "autostep.config.json").read_text())
    assert config == {"extensions": [], "extensionSources": []}


def test_web_project(tmp_path: Path):
    directory = tmp_path / "site"
    directory.mkdir()

    create_web_project(directory)

    assert (directory / "site.asi").read_text() == "# autostep interactions file"
    assert (directory / "site.as").is_file()
    config = json.loads((directory / "autostep.config.json").read_text())
    assert config["extensions"] == [{"package": "AutoStep.Web", "prerelease": True}]
    assert config["extensionSources"] == [WEB_EXTENSION_FEED]


def test_existing_files_are_overwritten(tmp_path: Path):
    directory = tmp_path / "proj"
    directory.mkdir()
    (directory / "proj.as").write_text("old")

    create_blank_project(directory)

    assert (directory / "proj.as").read_text() == BLANK_TEST_FILE_CONTENT


def test_write_failure_raises_scaffold_error(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("")

    with pytest.raises(ScaffoldError):
        create_blank_project(blocker / "child")
