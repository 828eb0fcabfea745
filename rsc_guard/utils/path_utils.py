"""Path utilities for discovering JavaScript projects and filtering paths."""

import fnmatch
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Union

from .logging import get_logger

logger = get_logger("path_utils")

PathLike = Union[str, Path]

DEFAULT_IGNORE_DIRS = (
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    ".nuxt",
    ".turbo",
    "coverage",
)

DEFAULT_MAX_DEPTH = 20


class PathFilter:
    """Decides which directories a project walk descends into."""

    def __init__(
        self,
        ignore_patterns: Optional[Iterable[str]] = None,
        skip_hidden: bool = True
    ) -> None:
        """Initialize path filter.

        Args:
            ignore_patterns: Extra directory names or glob patterns to ignore,
                on top of the default ignore set
            skip_hidden: Skip directories whose name starts with a dot
        """
        self.ignore_patterns: List[str] = list(DEFAULT_IGNORE_DIRS)
        for pattern in ignore_patterns or []:
            pattern = pattern.strip().rstrip("/")
            if pattern and pattern not in self.ignore_patterns:
                self.ignore_patterns.append(pattern)
        self.skip_hidden = skip_hidden

    def is_ignored(self, path: Path, root: Optional[Path] = None) -> bool:
        """Check if a directory should be skipped.

        Patterns are matched against the directory name and, when ``root`` is
        given, against the path relative to it.

        Args:
            path: Directory to check
            root: Walk root used to build the relative path

        Returns:
            True if the directory should be ignored
        """
        name = path.name
        if self.skip_hidden and name.startswith("."):
            return True

        relative = None
        if root is not None:
            try:
                relative = path.relative_to(root).as_posix()
            except ValueError:
                relative = None

        for pattern in self.ignore_patterns:
            if name == pattern or fnmatch.fnmatch(name, pattern):
                return True
            if relative and fnmatch.fnmatch(relative, pattern):
                return True

        return False


def walk_directories(
    root: PathLike,
    path_filter: Optional[PathFilter] = None,
    max_depth: int = DEFAULT_MAX_DEPTH
) -> Iterator[Path]:
    """Walk a directory tree depth-first, yielding every directory.

    The root itself is yielded first (depth 0). Descent stops at
    ``max_depth`` and a directory whose real path was already visited is not
    entered again, so symlink loops terminate. Unreadable directories are
    skipped.

    Args:
        root: Directory to start from
        path_filter: Filter deciding which subdirectories to skip
        max_depth: Maximum depth below the root to descend into

    Yields:
        Directories in walk order
    """
    root_path = Path(root)
    path_filter = path_filter or PathFilter()
    visited: Set[str] = set()
    stack = [(root_path, 0)]

    while stack:
        current, depth = stack.pop()
        real = os.path.realpath(current)
        if real in visited:
            logger.debug(f"Skipping already visited directory: {current}")
            continue
        visited.add(real)

        yield current

        if depth >= max_depth:
            continue

        try:
            entries = sorted(os.scandir(current), key=lambda e: e.name)
        except OSError as e:
            logger.debug(f"Cannot read directory {current}: {e}")
            continue

        children = []
        for entry in entries:
            try:
                if not entry.is_dir():
                    continue
            except OSError:
                continue
            child = Path(entry.path)
            if path_filter.is_ignored(child, root_path):
                continue
            children.append((child, depth + 1))

        # reversed so siblings come off the stack in name order
        stack.extend(reversed(children))


def find_project_dirs(
    root: PathLike,
    ignore_patterns: Optional[Iterable[str]] = None,
    max_depth: int = DEFAULT_MAX_DEPTH
) -> List[Path]:
    """Find every directory below ``root`` that holds a package.json.

    Args:
        root: Root directory to search
        ignore_patterns: Additional ignore patterns
        max_depth: Maximum walk depth

    Returns:
        Project directories in walk order
    """
    path_filter = PathFilter(ignore_patterns)
    return [
        directory
        for directory in walk_directories(root, path_filter, max_depth)
        if (directory / "package.json").is_file()
    ]


def is_within_root(root: PathLike, target: PathLike) -> bool:
    """Check that ``target`` is lexically contained in ``root``.

    Args:
        root: Containing directory
        target: Path to check

    Returns:
        True unless the relative path escapes the root or is absolute
    """
    try:
        rel = os.path.relpath(os.path.abspath(target), os.path.abspath(root))
    except ValueError:
        # different drives on Windows
        return False
    return not rel.startswith("..") and not os.path.isabs(rel)
