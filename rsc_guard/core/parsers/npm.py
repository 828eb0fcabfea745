"""Parser for npm package-lock.json files (lockfile v1, v2 and v3)."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .base import BaseLockfileParser, LockfileEntry


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def package_name_from_key(key: str) -> str:
    """Derive a package name from a v2/v3 ``packages`` key.

    ``node_modules/@scope/pkg`` becomes ``@scope/pkg`` and nested installs
    such as ``node_modules/a/node_modules/b`` become ``b``.

    Args:
        key: node_modules-relative path key

    Returns:
        Package name, empty for the root entry
    """
    return key.split("node_modules/")[-1]


class NpmLockfileParser(BaseLockfileParser):
    """Parser for package-lock.json."""

    lockfile_name = "package-lock.json"
    parser_type = "npm"

    def _parse_file(self, file_path: Path) -> Dict[str, LockfileEntry]:
        data = json.loads(self.read_text(file_path))
        if not isinstance(data, dict):
            raise ValueError("lockfile root is not an object")

        packages = self._extract_packages(data.get("packages"))

        # v1 lockfiles only carry the nested dependencies tree
        if not packages and isinstance(data.get("dependencies"), dict):
            self.logger.debug(f"No v2/v3 packages map in {file_path}, using v1 dependencies")
            packages = self._extract_dependencies(data["dependencies"])

        return packages

    def _extract_packages(self, section: Any) -> Dict[str, LockfileEntry]:
        """Extract entries from the flat v2/v3 ``packages`` map.

        Later keys overwrite earlier ones for the same derived name.

        Args:
            section: Value of the ``packages`` key

        Returns:
            Package entries keyed by name
        """
        packages: Dict[str, LockfileEntry] = {}
        if not isinstance(section, dict):
            return packages

        for key, info in section.items():
            if not isinstance(info, dict):
                continue
            version = info.get("version")
            if not isinstance(version, str) or not version:
                continue

            name = package_name_from_key(key)
            if not name:
                continue

            packages[name] = LockfileEntry(
                version=version,
                resolved=_optional_str(info.get("resolved")),
                integrity=_optional_str(info.get("integrity")),
            )

        return packages

    def _extract_dependencies(self, section: Dict[str, Any]) -> Dict[str, LockfileEntry]:
        """Flatten the v1 nested ``dependencies`` tree depth first.

        The first occurrence of a name wins.

        Args:
            section: Value of the top-level ``dependencies`` key

        Returns:
            Package entries keyed by name
        """
        packages: Dict[str, LockfileEntry] = {}
        stack = [iter(section.items())]

        while stack:
            try:
                name, info = next(stack[-1])
            except StopIteration:
                stack.pop()
                continue

            if not isinstance(info, dict):
                continue

            version = info.get("version")
            if isinstance(version, str) and version and name not in packages:
                packages[name] = LockfileEntry(
                    version=version,
                    resolved=_optional_str(info.get("resolved")),
                    integrity=_optional_str(info.get("integrity")),
                )

            nested = info.get("dependencies")
            if isinstance(nested, dict) and nested:
                stack.append(iter(nested.items()))

        return packages
