"""Monorepo workspace detection (npm, yarn, pnpm and lerna)."""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .parsers.manifest import read_manifest
from ..utils.logging import get_logger
from ..utils.path_utils import is_within_root

logger = get_logger("workspace")

PathLike = Union[str, Path]

PACKAGE_JSON = "package.json"

# Lockfiles a lerna root may use, in probing order
LERNA_LOCKFILES = ("pnpm-lock.yaml", "yarn.lock", "package-lock.json")


class WorkspaceType(str, Enum):
    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"
    LERNA = "lerna"
    NONE = "none"


@dataclass
class WorkspaceInfo:
    """Workspace configuration found at a project root.

    Every entry of ``packages`` is an absolute directory lexically inside
    ``root_path``.
    """

    type: WorkspaceType
    root_path: Path
    patterns: List[str] = field(default_factory=list)
    packages: List[Path] = field(default_factory=list)

    @property
    def is_workspace(self) -> bool:
        return self.type != WorkspaceType.NONE


def _npm_patterns(root: Path) -> Optional[List[str]]:
    manifest = read_manifest(root)
    if manifest is None:
        return None
    return manifest.workspace_patterns


def _pnpm_patterns(root: Path) -> Optional[List[str]]:
    workspace_file = root / "pnpm-workspace.yaml"
    if not workspace_file.is_file():
        return None

    try:
        with open(workspace_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning(f"Failed to parse {workspace_file}: {e}")
        return None

    if isinstance(data, dict) and isinstance(data.get("packages"), list):
        return [p for p in data["packages"] if isinstance(p, str)]
    return None


def _lerna_patterns(root: Path) -> Optional[List[str]]:
    lerna_file = root / "lerna.json"
    if not lerna_file.is_file():
        return None

    try:
        with open(lerna_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Failed to parse {lerna_file}: {e}")
        return None

    if isinstance(data, dict) and isinstance(data.get("packages"), list):
        return [p for p in data["packages"] if isinstance(p, str)]

    # lerna's default layout
    return ["packages/*"]


def normalize_pattern(pattern: str) -> str:
    """Turn a workspace glob into a glob matching member package.json files.

    ``packages/*`` -> ``packages/*/package.json``, ``apps/web`` ->
    ``apps/web/package.json``.
    """
    if pattern.endswith("/" + PACKAGE_JSON):
        return pattern
    if pattern.endswith("/*"):
        return pattern[:-2] + "/*/" + PACKAGE_JSON
    return f"{pattern}/{PACKAGE_JSON}"


def resolve_patterns(root_path: PathLike, patterns: List[str]) -> List[Path]:
    """Resolve workspace globs to member package directories.

    Negated (``!``) patterns are dropped rather than applied as exclusions.
    Patterns containing ``..`` are rejected, and every match is re-checked to
    lie inside the root.

    Args:
        root_path: Workspace root
        patterns: Globs as written in the workspace configuration

    Returns:
        Absolute member directories, deduplicated in match order
    """
    root = Path(os.path.abspath(root_path))
    resolved: List[Path] = []

    for pattern in patterns:
        if pattern.startswith("!"):
            continue

        if ".." in pattern:
            logger.warning(f"Ignoring potentially dangerous workspace pattern: {pattern}")
            continue

        try:
            matches = sorted(root.glob(normalize_pattern(pattern)))
        except (ValueError, NotImplementedError, OSError) as e:
            logger.warning(f"Invalid workspace pattern {pattern!r}: {e}")
            continue

        for match in matches:
            if "node_modules" in match.relative_to(root).parts or not match.is_file():
                continue

            package_dir = match.parent
            if is_within_root(root, package_dir):
                resolved.append(package_dir)
            else:
                logger.warning(f"Ignoring path outside workspace root: {package_dir}")

    return list(dict.fromkeys(resolved))


def detect_workspace(root_path: PathLike) -> WorkspaceInfo:
    """Detect the workspace configuration of a directory.

    pnpm-workspace.yaml is checked first, then lerna.json, then the
    ``workspaces`` field of package.json (yarn when a yarn.lock exists,
    npm otherwise).

    Args:
        root_path: Directory to inspect

    Returns:
        Workspace information, of type ``none`` when nothing is configured
    """
    root = Path(os.path.abspath(root_path))

    detectors = (
        (WorkspaceType.PNPM, _pnpm_patterns),
        (WorkspaceType.LERNA, _lerna_patterns),
        (WorkspaceType.NPM, _npm_patterns),
    )

    for workspace_type, detector in detectors:
        patterns = detector(root)
        if patterns is None:
            continue

        if workspace_type == WorkspaceType.NPM and (root / "yarn.lock").is_file():
            workspace_type = WorkspaceType.YARN

        info = WorkspaceInfo(
            type=workspace_type,
            root_path=root,
            patterns=patterns,
            packages=resolve_patterns(root, patterns),
        )
        logger.debug(get_workspace_summary(info))
        return info

    return WorkspaceInfo(type=WorkspaceType.NONE, root_path=root)


def is_workspace_package(project_path: PathLike, workspace: WorkspaceInfo) -> bool:
    """Check whether a directory is one of the workspace's member packages."""
    if not workspace.is_workspace:
        return False
    return Path(os.path.abspath(project_path)) in workspace.packages


def find_root_lockfile(workspace: WorkspaceInfo) -> Optional[Path]:
    """Locate the lockfile at the workspace root.

    Args:
        workspace: Detected workspace

    Returns:
        Lockfile path for the workspace's package manager, or None
    """
    if workspace.type == WorkspaceType.NPM:
        candidates = ("package-lock.json",)
    elif workspace.type == WorkspaceType.PNPM:
        candidates = ("pnpm-lock.yaml",)
    elif workspace.type == WorkspaceType.YARN:
        candidates = ("yarn.lock",)
    elif workspace.type == WorkspaceType.LERNA:
        candidates = LERNA_LOCKFILES
    else:
        return None

    for name in candidates:
        lockfile = workspace.root_path / name
        if lockfile.is_file():
            return lockfile
    return None


def get_workspace_summary(workspace: WorkspaceInfo) -> str:
    if not workspace.is_workspace:
        return "Single project (no workspace detected)"
    return f"{workspace.type.value} workspace with {len(workspace.packages)} package(s)"
