"""Lockfile, manifest and SBOM parsers."""

from ...config import MAX_LOCKFILE_SIZE
from .base import (
    BaseLockfileParser,
    LockfileEntry,
    LockfileTooLargeError,
    ParseOutcome,
    ResolvedPackageMap,
)
from .manifest import ManifestDeclaration, read_manifest
from .npm import NpmLockfileParser
from .pnpm import PnpmLockfileParser
from .registry import ParserRegistry
from .sbom import (
    COMMON_SBOM_NAMES,
    CycloneDXParser,
    find_and_parse_sbom,
    parse_cyclonedx_file,
    parse_purl,
)
from .yarn import YarnLockfileParser


def create_default_registry(max_size: int = MAX_LOCKFILE_SIZE) -> ParserRegistry:
    """Registry probing package-lock.json, pnpm-lock.yaml, then yarn.lock."""
    registry = ParserRegistry()
    registry.register(NpmLockfileParser(max_size))
    registry.register(PnpmLockfileParser(max_size))
    registry.register(YarnLockfileParser(max_size))
    return registry


# Register built-in parsers
registry = create_default_registry()

__all__ = [
    "BaseLockfileParser",
    "COMMON_SBOM_NAMES",
    "CycloneDXParser",
    "LockfileEntry",
    "LockfileTooLargeError",
    "ManifestDeclaration",
    "NpmLockfileParser",
    "ParseOutcome",
    "ParserRegistry",
    "PnpmLockfileParser",
    "ResolvedPackageMap",
    "YarnLockfileParser",
    "create_default_registry",
    "find_and_parse_sbom",
    "parse_cyclonedx_file",
    "parse_purl",
    "read_manifest",
    "registry",
]
