"""
Glob-based file discovery for AutoStep projects.

A FileSet is the set of files under a root directory that match one or
more include globs and none of the exclude globs. Globs are matched
against root-relative POSIX paths:

- ``*``, ``?`` and ``[...]`` match within a single path segment
- ``**`` matches zero or more whole segments

FileSets are immutable; merging two sets produces a third holding the
union of both.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Sequence
from fnmatch import fnmatchcase
from functools import lru_cache
from pathlib import Path

from .errors import ErrorContext, FileSetError


@lru_cache(maxsize=256)
def _split_pattern(pattern: str) -> tuple[str, ...]:
    parts = [part for part in pattern.replace("\\", "/").split("/") if part not in ("", ".")]
    # Collapse runs of ** so matching stays linear in practice
    collapsed: list[str] = []
    for part in parts:
        if part == "**" and collapsed and collapsed[-1] == "**":
            continue
        collapsed.append(part)
    return tuple(collapsed)


def _match_segments(pattern: Sequence[str], segments: Sequence[str]) -> bool:
    if not pattern:
        return not segments

    head = pattern[0]
    if head == "**":
        rest = pattern[1:]
        return any(_match_segments(rest, segments[i:]) for i in range(len(segments) + 1))

    if not segments:
        return False
    return fnmatchcase(segments[0], head) and _match_segments(pattern[1:], segments[1:])


def glob_match(pattern: str, relative_path: str) -> bool:
    """Check whether a root-relative POSIX path matches a glob pattern."""
    return _match_segments(_split_pattern(pattern), relative_path.split("/"))


class FileSet:
    """
    An immutable, deduplicated set of absolute file paths.

    Iteration order is sorted so diagnostics are reported deterministically.
    """

    __slots__ = ("_files",)

    def __init__(self, files: Iterable[Path] = ()):
        self._files = frozenset(Path(f) for f in files)

    @classmethod
    def empty(cls) -> FileSet:
        return cls()

    @classmethod
    def create(
        cls,
        root: Path | str,
        include_globs: Iterable[str],
        exclude_globs: Iterable[str] = (),
    ) -> FileSet:
        """
        Discover files under ``root`` matching the include globs.

        A root directory that does not exist yields an empty set.

        Args:
            root: Directory to walk recursively
            include_globs: Patterns a file must match (any of)
            exclude_globs: Patterns that reject a file (any of)

        Raises:
            FileSetError: If the directory walk fails with an I/O error
        """
        root = Path(root).resolve()
        includes = [p for p in include_globs if p]
        excludes = [p for p in exclude_globs if p]

        if not includes or not root.is_dir():
            return cls.empty()

        def _raise(error: OSError) -> None:
            raise FileSetError(
                f"Failed to scan directory: {error.strerror or error}",
                ErrorContext(file=Path(error.filename or root)),
            ) from error

        files: list[Path] = []
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
            base = Path(dirpath)
            for filename in filenames:
                full = base / filename
                relative = full.relative_to(root).as_posix()
                if not any(glob_match(p, relative) for p in includes):
                    continue
                if any(glob_match(p, relative) for p in excludes):
                    continue
                files.append(full)

        return cls(files)

    def merge(self, other: FileSet) -> FileSet:
        """Return the union of this set and ``other``."""
        if not other._files:
            return self
        return FileSet(self._files | other._files)

    __or__ = merge

    @property
    def files(self) -> frozenset[Path]:
        return self._files

    def __iter__(self) -> Iterator[Path]:
        return iter(sorted(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, (str, Path)) and Path(item) in self._files

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileSet):
            return NotImplemented
        return self._files == other._files

    def __hash__(self) -> int:
        return hash(self._files)

    def __repr__(self) -> str:
        return f"FileSet({len(self._files)} files)"
