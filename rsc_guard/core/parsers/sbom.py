"""Parser for CycloneDX SBOM files (JSON, specVersion 1.4 and 1.5)."""

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import unquote

from .base import BaseLockfileParser, LockfileEntry, ParseOutcome

PathLike = Union[str, Path]

# pkg:npm/[namespace/]name@version[?qualifiers][#subpath]
_NPM_PURL = re.compile(r"^pkg:npm/(.+?)@([^?#]+)")

COMMON_SBOM_NAMES = (
    "bom.json",
    "sbom.json",
    "cyclonedx.json",
    "cyclonedx-bom.json",
    ".sbom.json",
)


def parse_purl(purl: str) -> Optional[Tuple[str, str]]:
    """Parse an npm package URL.

    ``pkg:npm/%40scope/package@1.0.0`` -> ``("@scope/package", "1.0.0")``

    Args:
        purl: Package URL

    Returns:
        ``(name, version)`` or None for non-npm or malformed purls
    """
    match = _NPM_PURL.match(purl)
    if not match:
        return None
    return unquote(match.group(1)), unquote(match.group(2))


class CycloneDXParser(BaseLockfileParser):
    """Parser for CycloneDX JSON SBOMs.

    Unlike the lockfile parsers this one works on an explicit file path
    (:meth:`parse_file`); :meth:`parse` probes the common SBOM file names in
    a directory.
    """

    lockfile_name = "bom.json"
    parser_type = "cyclonedx"

    def parse(self, project_dir: PathLike) -> ParseOutcome:
        """Find and parse the first SBOM with a common name in a directory.

        Args:
            project_dir: Directory to probe

        Returns:
            Parse outcome of the first SBOM found
        """
        for name in COMMON_SBOM_NAMES:
            candidate = Path(project_dir) / name
            if candidate.is_file():
                return self.parse_file(candidate)
        return ParseOutcome.not_present(f"No SBOM found in {project_dir}")

    def can_parse(self, project_dir: PathLike) -> bool:
        return any((Path(project_dir) / name).is_file() for name in COMMON_SBOM_NAMES)

    def _parse_file(self, file_path: Path) -> Dict[str, LockfileEntry]:
        bom = json.loads(self.read_text(file_path))
        if not isinstance(bom, dict):
            raise ValueError("SBOM root is not an object")

        if bom.get("bomFormat") != "CycloneDX":
            raise ValueError(f"Invalid SBOM format: {bom.get('bomFormat')}")

        packages: Dict[str, LockfileEntry] = {}
        components = bom.get("components") or []
        if not isinstance(components, list):
            raise ValueError("components is not a list")

        for component in components:
            if not isinstance(component, dict) or component.get("type") != "library":
                continue

            parsed = self._component_coordinates(component)
            if parsed:
                name, version = parsed
                packages[name] = LockfileEntry(version=version)

        return packages

    @staticmethod
    def _component_coordinates(component: Dict[str, Any]) -> Optional[Tuple[str, str]]:
        """Name and version of a component, preferring its purl."""
        purl = component.get("purl")
        if isinstance(purl, str):
            parsed = parse_purl(purl)
            if parsed:
                return parsed

        name = component.get("name")
        version = component.get("version")
        if not isinstance(name, str) or not isinstance(version, str) or not name or not version:
            return None

        group = component.get("group")
        if isinstance(group, str) and group and not name.startswith("@"):
            name = f"@{group.lstrip('@')}/{name}"

        return name, version


def parse_cyclonedx_file(file_path: PathLike) -> ParseOutcome:
    """Parse a CycloneDX SBOM file."""
    return CycloneDXParser().parse_file(file_path)


def find_and_parse_sbom(directory: PathLike) -> ParseOutcome:
    """Find an SBOM by its common file names in a directory and parse it."""
    return CycloneDXParser().parse(directory)
