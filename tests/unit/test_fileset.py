"""Tests for glob matching and FileSet discovery."""

from pathlib import Path

import pytest

from autostep.core.fileset import FileSet, glob_match


def touch(root: Path, *relative: str) -> None:
    for name in relative:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("**/*.as", "a.as", True),
        ("**/*.as", "x/y/a.as", True),
        ("**/*.as", "a.asi", False),
        ("*.as", "x/a.as", False),
        ("*/content/**/*.asi", "Ext/content/steps.asi", True),
        ("*/content/**/*.asi", "Ext/content/deep/steps.asi", True),
        ("*/content/**/*.asi", "Ext/other/steps.asi", False),
        (".autostep/**", ".autostep/extensions/Ext/a.as", True),
        ("features/*.as", "Features/a.as", False),
    ],
)
def test_glob_match(pattern: str, path: str, expected: bool):
    assert glob_match(pattern, path) is expected


class TestFileSetCreate:
    def test_includes_and_excludes(self, project_dir: Path):
        touch(project_dir, "a.as", "sub/b.as", "c.asi", ".autostep/extensions/Ext/content/d.as")
        root = project_dir.resolve()

        files = FileSet.create(project_dir, ["**/*.as"], [".autostep/**"])

        assert set(files) == {root / "a.as", root / "sub" / "b.as"}

    def test_missing_root_is_empty(self, tmp_path: Path):
        files = FileSet.create(tmp_path / "missing", ["**/*"])
        assert len(files) == 0

    def test_no_includes_is_empty(self, project_dir: Path):
        touch(project_dir, "a.as")
        assert len(FileSet.create(project_dir, [])) == 0

    def test_iteration_is_sorted(self, project_dir: Path):
        touch(project_dir, "b.as", "a.as", "c.as")
        names = [p.name for p in FileSet.create(project_dir, ["*.as"])]
        assert names == ["a.as", "b.as", "c.as"]


class TestFileSetMerge:
    def test_union(self, tmp_path: Path):
        a = FileSet([tmp_path / "1", tmp_path / "2"])
        b = FileSet([tmp_path / "2", tmp_path / "3"])

        merged = a.merge(b)

        assert merged.files == {tmp_path / "1", tmp_path / "2", tmp_path / "3"}
        assert len(a) == 2

    def test_merge_with_empty_is_identity(self, tmp_path: Path):
        a = FileSet([tmp_path / "1"])
        assert a.merge(FileSet.empty()) == a
        assert FileSet.empty().merge(a) == a

    def test_merge_is_commutative_and_idempotent(self, tmp_path: Path):
        a = FileSet([tmp_path / "1"])
        b = FileSet([tmp_path / "2"])
        assert a | b == b | a
        assert a | a == a

    def test_merge_is_associative(self, tmp_path: Path):
        a = FileSet([tmp_path / "1", tmp_path / "2"])
        b = FileSet([tmp_path / "2", tmp_path / "3"])
        c = FileSet([tmp_path / "3", tmp_path / "4"])

        assert a.merge(b).merge(c) == a.merge(b.merge(c))
        assert (a | b) | c == a | (b | c)
        assert len(a.merge(b).merge(c)) == 4

    def test_contains(self, tmp_path: Path):
        a = FileSet([tmp_path / "1"])
        assert tmp_path / "1" in a
        assert str(tmp_path / "1") in a
        assert tmp_path / "2" not in a
