"""Base parser class and data models for lockfile parsing."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from ...config import MAX_LOCKFILE_SIZE
from ...utils.logging import get_logger

PathLike = Union[str, Path]


class LockfileTooLargeError(ValueError):
    """Raised internally when a lockfile exceeds the size guard."""


@dataclass(frozen=True)
class LockfileEntry:
    """Resolved version of a single package."""

    version: str
    resolved: Optional[str] = None
    integrity: Optional[str] = None


class ResolvedPackageMap(Mapping[str, LockfileEntry]):
    """Read-only mapping of package name to its resolved lockfile entry.

    Scoped packages keep their ``@scope/name`` form. Instances are built once
    per parse call and never mutated afterwards.
    """

    def __init__(
        self,
        packages: Optional[Mapping[str, LockfileEntry]] = None,
        source_file: Optional[Path] = None,
        parser_type: str = ""
    ) -> None:
        self._packages = MappingProxyType(dict(packages or {}))
        self.source_file = source_file
        self.parser_type = parser_type

    def __getitem__(self, name: str) -> LockfileEntry:
        return self._packages[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ResolvedPackageMap):
            return dict(self._packages) == dict(other._packages)
        if isinstance(other, Mapping):
            return dict(self._packages) == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResolvedPackageMap({len(self)} packages, parser={self.parser_type!r})"

    @property
    def packages(self) -> Mapping[str, LockfileEntry]:
        return self._packages

    def get_version(self, name: str) -> Optional[str]:
        """Get the resolved version of a package.

        Args:
            name: Package name

        Returns:
            Resolved version or None when the package is not in the map
        """
        entry = self._packages.get(name)
        return entry.version if entry else None


@dataclass(frozen=True)
class ParseOutcome:
    """Tagged result of a parse call: either found or not present."""

    resolved: Optional[ResolvedPackageMap] = None
    reason: str = ""

    @classmethod
    def found(cls, resolved: ResolvedPackageMap) -> "ParseOutcome":
        return cls(resolved=resolved)

    @classmethod
    def not_present(cls, reason: str) -> "ParseOutcome":
        return cls(resolved=None, reason=reason)

    @property
    def is_found(self) -> bool:
        return self.resolved is not None

    def __bool__(self) -> bool:
        return self.is_found


class BaseLockfileParser(ABC):
    """Abstract base class for lockfile parsers.

    Subclasses implement :meth:`_parse_file`. The public :meth:`parse` handles
    file presence, the size guard and every soft failure, so a parser never
    raises on malformed input.
    """

    lockfile_name: str = ""
    parser_type: str = ""

    def __init__(self, max_size: int = MAX_LOCKFILE_SIZE) -> None:
        """Initialize the parser.

        Args:
            max_size: Maximum accepted lockfile size in bytes
        """
        self.max_size = max_size
        self.logger = get_logger(f"parsers.{self.parser_type or type(self).__name__}")

    def lockfile_path(self, project_dir: PathLike) -> Path:
        return Path(project_dir) / self.lockfile_name

    def can_parse(self, project_dir: PathLike) -> bool:
        """Check if the project directory holds this parser's lockfile.

        Args:
            project_dir: Project directory

        Returns:
            True if the lockfile exists
        """
        return self.lockfile_path(project_dir).is_file()

    def parse(self, project_dir: PathLike) -> ParseOutcome:
        """Parse the lockfile in a project directory.

        Args:
            project_dir: Project directory

        Returns:
            ``ParseOutcome.found`` with the package map, or
            ``ParseOutcome.not_present`` with the reason
        """
        return self.parse_file(self.lockfile_path(project_dir))

    def parse_file(self, file_path: PathLike) -> ParseOutcome:
        """Parse a lockfile at an explicit path.

        Args:
            file_path: Lockfile path

        Returns:
            Parse outcome
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            return ParseOutcome.not_present(f"{file_path.name} not found")

        try:
            self.validate_size(file_path)
            packages = self._parse_file(file_path)
        except LockfileTooLargeError as e:
            self.logger.warning(str(e))
            return ParseOutcome.not_present(str(e))
        except (OSError, UnicodeDecodeError, ValueError, TypeError, AttributeError) as e:
            self.logger.warning(f"Failed to parse {file_path}: {e}")
            return ParseOutcome.not_present(f"Failed to parse {file_path}: {e}")

        self.logger.debug(f"Parsed {len(packages)} packages from {file_path}")
        return ParseOutcome.found(
            ResolvedPackageMap(packages, source_file=file_path, parser_type=self.parser_type)
        )

    def validate_size(self, file_path: Path) -> None:
        """Reject files above the size guard without reading them.

        Args:
            file_path: Lockfile path

        Raises:
            LockfileTooLargeError: If the file is larger than ``max_size``
        """
        size = os.stat(file_path).st_size
        if size > self.max_size:
            raise LockfileTooLargeError(
                f"Lockfile too large ({size / 1024 / 1024:.1f}MB > "
                f"{self.max_size / 1024 / 1024:.0f}MB limit): {file_path}"
            )

    def read_text(self, file_path: Path) -> str:
        with open(file_path, "r", encoding="utf-8") as f:
            return f.read()

    @abstractmethod
    def _parse_file(self, file_path: Path) -> Dict[str, LockfileEntry]:
        """Parse lockfile content into a name -> entry dictionary.

        Args:
            file_path: Lockfile path, already size checked

        Returns:
            Package entries keyed by name
        """


def split_package_spec(spec: str) -> str:
    """Extract the package name from a ``name@something`` specifier.

    Scoped names split on the last ``@``, unscoped names on the first.

    Args:
        spec: Specifier such as ``react@^18.2.0`` or ``@scope/pkg@1.0.0``

    Returns:
        Package name, or the specifier itself when it has no version part
    """
    if spec.startswith("@"):
        at = spec.rfind("@")
        return spec[:at] if at > 0 else spec
    at = spec.find("@")
    return spec[:at] if at > 0 else spec


def strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 1 and value[0] in "\"'":
        value = value[1:]
    if len(value) >= 1 and value[-1] in "\"'":
        value = value[:-1]
    return value
