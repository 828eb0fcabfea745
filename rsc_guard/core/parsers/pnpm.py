"""Parser for pnpm-lock.yaml files."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .base import BaseLockfileParser, LockfileEntry


def strip_peer_suffix(version: str) -> str:
    """Drop a peer disambiguation suffix: ``1.0.0(react@18.2.0)`` -> ``1.0.0``."""
    return version.split("(", 1)[0].strip()


def parse_package_key(key: str) -> Optional[Tuple[str, str]]:
    """Extract package name and version from a pnpm ``packages`` key.

    Examples:
        ``/react@18.2.0`` -> ``("react", "18.2.0")``
        ``/@scope/pkg@1.0.0`` -> ``("@scope/pkg", "1.0.0")``
        ``next@15.1.0(react@19.0.0)`` -> ``("next", "15.1.0")``
        ``/react/18.2.0`` (lockfile v5) -> ``("react", "18.2.0")``

    Args:
        key: Key of the ``packages`` map

    Returns:
        ``(name, version)`` or None if the key cannot be split
    """
    normalized = key[1:] if key.startswith("/") else key
    # peer suffixes may themselves contain "@", cut them off first
    normalized = strip_peer_suffix(normalized)

    if normalized.startswith("@"):
        at = normalized.rfind("@")
    else:
        at = normalized.find("@")

    scoped = normalized.startswith("@")
    name_segments = 2 if scoped else 1

    if at > 0:
        name, version = normalized[:at], normalized[at + 1:]
        if version and name.count("/") == name_segments - 1:
            return name, version

    # lockfile v5 keys: /name/version[_peer@x] and /@scope/name/version
    parts = normalized.split("/")
    if len(parts) > name_segments:
        name = "/".join(parts[:name_segments])
        version = "/".join(parts[name_segments:]).split("_", 1)[0]
        if version and version[0].isdigit():
            return name, version

    return None


class PnpmLockfileParser(BaseLockfileParser):
    """Parser for pnpm-lock.yaml."""

    lockfile_name = "pnpm-lock.yaml"
    parser_type = "pnpm"

    def _parse_file(self, file_path: Path) -> Dict[str, LockfileEntry]:
        try:
            data = yaml.safe_load(self.read_text(file_path))
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("lockfile root is not a mapping")

        packages = self._extract_packages(data.get("packages"))

        self._extract_specifiers(data.get("dependencies"), packages)
        self._extract_specifiers(data.get("devDependencies"), packages)

        importers = data.get("importers")
        if isinstance(importers, dict):
            for importer in importers.values():
                if not isinstance(importer, dict):
                    continue
                self._extract_specifiers(importer.get("dependencies"), packages)
                self._extract_specifiers(importer.get("devDependencies"), packages)

        return packages

    def _extract_packages(self, section: Any) -> Dict[str, LockfileEntry]:
        """Read resolved versions from the ``packages`` map.

        Args:
            section: Value of the ``packages`` key

        Returns:
            Package entries keyed by name
        """
        packages: Dict[str, LockfileEntry] = {}
        if not isinstance(section, dict):
            return packages

        for key, info in section.items():
            parsed = parse_package_key(str(key))
            if not parsed:
                self.logger.debug(f"Unrecognised pnpm package key: {key}")
                continue

            name, version = parsed
            integrity = None
            if isinstance(info, dict) and isinstance(info.get("resolution"), dict):
                integrity = info["resolution"].get("integrity")

            packages[name] = LockfileEntry(
                version=version,
                integrity=integrity if isinstance(integrity, str) else None,
            )

        return packages

    def _extract_specifiers(self, section: Any, packages: Dict[str, LockfileEntry]) -> None:
        """Fill in versions from a dependencies/devDependencies section.

        Values are either a version string (lockfile v5) or a
        ``{specifier, version}`` mapping (v6+). Names already known from the
        ``packages`` map are kept; ``link:`` versions are skipped.

        Args:
            section: Dependency section to read
            packages: Entries collected so far, updated in place
        """
        if not isinstance(section, dict):
            return

        for name, info in section.items():
            version = info.get("version") if isinstance(info, dict) else info
            if version is None or isinstance(version, bool):
                continue
            version = str(version)
            if not version or version.startswith("link:") or name in packages:
                continue
            packages[name] = LockfileEntry(version=strip_peer_suffix(version))
