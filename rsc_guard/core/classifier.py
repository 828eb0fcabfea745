"""Framework detection for Next.js and React Server Components projects."""

from pathlib import Path
from typing import Mapping, Optional, Union

from .models import FrameworkInfo, FrameworkType
from .parsers.base import LockfileEntry
from .parsers.manifest import ManifestDeclaration, get_all_dependencies

PathLike = Union[str, Path]

NEXT_CONFIG_FILES = ("next.config.js", "next.config.mjs", "next.config.ts")

RSC_PACKAGES = (
    "react-server-dom-webpack",
    "react-server-dom-parcel",
    "react-server-dom-turbopack",
    "react-server",
)


def has_app_router(project_dir: PathLike) -> bool:
    """Check for an App Router directory (``app/`` or ``src/app/``)."""
    project_dir = Path(project_dir)
    return (project_dir / "app").exists() or (project_dir / "src" / "app").exists()


def has_next_config(project_dir: PathLike) -> bool:
    return any((Path(project_dir) / name).exists() for name in NEXT_CONFIG_FILES)


def detect_framework(
    project_dir: PathLike,
    manifest: ManifestDeclaration,
    resolved: Optional[Mapping[str, LockfileEntry]] = None
) -> FrameworkInfo:
    """Classify the framework of a project directory.

    Next.js is recognised by its dependency or a next.config file, a bare
    RSC setup by a react-server-dom package, and anything else depending on
    react is client-only.

    Args:
        project_dir: Project directory
        manifest: Parsed package.json of the project
        resolved: Resolved package map, if a lockfile was found

    Returns:
        Framework information
    """
    declared = get_all_dependencies(manifest)
    resolved = resolved or {}

    if "next" in declared or has_next_config(project_dir):
        entry = resolved.get("next")
        return FrameworkInfo(
            type=FrameworkType.NEXTJS,
            version=entry.version if entry else None,
            app_router_detected=has_app_router(project_dir),
        )

    if any(name in declared or name in resolved for name in RSC_PACKAGES):
        return FrameworkInfo(type=FrameworkType.REACT_RSC)

    if "react" in declared:
        return FrameworkInfo(type=FrameworkType.REACT_CLIENT_ONLY)

    return FrameworkInfo()


def classify_packages(resolved: Mapping[str, LockfileEntry]) -> FrameworkInfo:
    """Classify a bare package map, as read from an SBOM.

    Args:
        resolved: Resolved package map

    Returns:
        ``nextjs`` with its version, ``react-rsc``, or ``unknown``
    """
    entry = resolved.get("next")
    if entry is not None:
        return FrameworkInfo(type=FrameworkType.NEXTJS, version=entry.version)

    # only the react-server-dom-* bundler packages
    if any(name in resolved for name in RSC_PACKAGES[:3]):
        return FrameworkInfo(type=FrameworkType.REACT_RSC)

    return FrameworkInfo()
