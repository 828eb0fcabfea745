"""Parser for package.json manifests."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ...utils.logging import get_logger

logger = get_logger("parsers.manifest")

PathLike = Union[str, Path]

MANIFEST_NAME = "package.json"


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


@dataclass
class ManifestDeclaration:
    """Declared dependency ranges, name and workspace globs of a package.json."""

    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    workspaces: Optional[Union[List[str], Dict[str, List[str]]]] = None
    source_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_file: Optional[Path] = None) -> "ManifestDeclaration":
        """Build a declaration from decoded package.json data.

        Args:
            data: Decoded JSON object
            source_file: File the data came from

        Returns:
            Manifest declaration
        """
        name = data.get("name")
        version = data.get("version")
        workspaces = data.get("workspaces")
        if not isinstance(workspaces, (list, dict)):
            workspaces = None

        return cls(
            name=name if isinstance(name, str) and name else None,
            version=version if isinstance(version, str) else None,
            dependencies=_string_map(data.get("dependencies")),
            dev_dependencies=_string_map(data.get("devDependencies")),
            workspaces=workspaces,
            source_file=source_file,
        )

    @property
    def workspace_patterns(self) -> Optional[List[str]]:
        """Workspace globs, from either the array or the ``{packages}`` form."""
        if isinstance(self.workspaces, list):
            return [p for p in self.workspaces if isinstance(p, str)]
        if isinstance(self.workspaces, dict):
            packages = self.workspaces.get("packages")
            if isinstance(packages, list):
                return [p for p in packages if isinstance(p, str)]
        return None


def read_manifest(project_dir: PathLike) -> Optional[ManifestDeclaration]:
    """Parse the package.json in a directory.

    Args:
        project_dir: Project directory

    Returns:
        Manifest declaration, or None when the file is missing or malformed
    """
    manifest_path = Path(project_dir) / MANIFEST_NAME
    if not manifest_path.is_file():
        return None

    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Failed to parse {manifest_path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Failed to parse {manifest_path}: top level is not an object")
        return None

    return ManifestDeclaration.from_dict(data, manifest_path)


def get_all_dependencies(manifest: ManifestDeclaration) -> Dict[str, str]:
    """Merge dependencies and devDependencies; dev ranges win on conflict."""
    return {**manifest.dependencies, **manifest.dev_dependencies}


def has_dependency(manifest: ManifestDeclaration, package_name: str) -> bool:
    return package_name in get_all_dependencies(manifest)


def get_dependency_range(manifest: ManifestDeclaration, package_name: str) -> Optional[str]:
    return get_all_dependencies(manifest).get(package_name)
