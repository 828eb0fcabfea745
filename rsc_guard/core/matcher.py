"""Rule matching: npm range membership and fixed version selection."""

import re
from functools import lru_cache
from typing import List, Mapping, Optional, Sequence

from semantic_version import NpmSpec, Version

from .models import Finding
from .parsers.base import LockfileEntry
from .rules import CVERule, VulnerablePackage
from ..utils.logging import get_logger

_LEADING_NOISE = re.compile(r"^[=v]+")

# ">= 1.2.3" -> ">=1.2.3", as node-semver trims comparator whitespace
_OPERATOR_SPACE = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")

logger = get_logger("matcher")


def clean_version(version: Optional[str]) -> Optional[str]:
    """Normalize a version the way ``npm semver.clean`` does.

    Surrounding whitespace and leading ``=``/``v`` characters are removed and
    the remainder must be a valid semantic version.

    Args:
        version: Raw version string

    Returns:
        Normalized version, or None if it is not a valid version
    """
    if not isinstance(version, str):
        return None

    candidate = _LEADING_NOISE.sub("", version.strip())
    try:
        return str(Version(candidate))
    except ValueError:
        return None


@lru_cache(maxsize=256)
def _compile_range(range_expr: str) -> Optional[NpmSpec]:
    normalized = _OPERATOR_SPACE.sub(r"\1", range_expr.strip())
    try:
        return NpmSpec(normalized)
    except ValueError as e:
        logger.warning(f"Invalid npm range '{range_expr}': {e}")
        return None


def is_version_vulnerable(version: Optional[str], vulnerable_range: str) -> bool:
    """Check if a version falls within an npm range expression.

    Never raises: malformed versions or ranges evaluate to False.

    Args:
        version: Installed version
        vulnerable_range: npm range such as ``>=19.0.0 <19.0.1 || >=19.1.0 <19.1.2``

    Returns:
        True if the version is in the range
    """
    cleaned = clean_version(version)
    if cleaned is None:
        return False

    if not isinstance(vulnerable_range, str):
        return False

    spec = _compile_range(vulnerable_range)
    if spec is None:
        return False

    return Version(cleaned) in spec


def find_fixed_version(current_version: Optional[str], fixed_versions: Sequence[str]) -> str:
    """Pick the minimal safe upgrade target for an installed version.

    The smallest candidate on the same major.minor line is preferred, then
    the smallest later minor of the same major, then the greatest candidate.

    Args:
        current_version: Installed version
        fixed_versions: Candidate fixed versions

    Returns:
        One of ``fixed_versions``, unchanged

    Raises:
        ValueError: If ``fixed_versions`` is empty
    """
    if not fixed_versions:
        raise ValueError("No fixed versions to choose from")

    cleaned = clean_version(current_version)
    if cleaned is None:
        return fixed_versions[-1]

    candidates = []
    for fixed in fixed_versions:
        parsed = clean_version(fixed)
        if parsed is not None:
            candidates.append((Version(parsed), fixed))
    if not candidates:
        return fixed_versions[-1]

    candidates.sort(key=lambda item: item[0])
    current = Version(cleaned)

    for parsed, fixed in candidates:
        if parsed.major == current.major and parsed.minor == current.minor:
            return fixed
        if parsed.major == current.major and parsed.minor > current.minor:
            return fixed

    return candidates[-1][1]


class RuleMatcher:
    """Matches resolved package maps against CVE rules."""

    def __init__(self) -> None:
        self.logger = get_logger("matcher")

    def match(self, resolved: Mapping[str, LockfileEntry], rule: CVERule) -> List[Finding]:
        """Match resolved versions against a rule.

        Rule packages are checked first, then frameworks, each in rule order.

        Args:
            resolved: Package name to resolved lockfile entry
            rule: CVE rule

        Returns:
            One finding per vulnerable package
        """
        findings = []
        for target in rule.targets:
            finding = self._match_target(resolved, target, rule)
            if finding:
                findings.append(finding)
        return findings

    def _match_target(
        self,
        resolved: Mapping[str, LockfileEntry],
        target: VulnerablePackage,
        rule: CVERule
    ) -> Optional[Finding]:
        entry = resolved.get(target.name)
        if entry is None or not entry.version:
            return None

        if not is_version_vulnerable(entry.version, target.vulnerable):
            self.logger.debug(f"{target.name}@{entry.version} not affected by {rule.id}")
            return None

        fixed = find_fixed_version(entry.version, target.fixed)
        self.logger.debug(f"{target.name}@{entry.version} affected by {rule.id}, fix: {fixed}")
        return Finding(
            package=target.name,
            current_version=entry.version,
            fixed_version=fixed,
            severity=rule.severity,
            advisory_url=rule.advisory_url,
        )

    def has_target_packages(self, resolved: Mapping[str, LockfileEntry], rule: CVERule) -> bool:
        """Check if any package named by the rule is present at all."""
        return any(target.name in resolved for target in rule.targets)


def match_against_rule(resolved: Mapping[str, LockfileEntry], rule: CVERule) -> List[Finding]:
    """Match resolved versions against a rule."""
    return RuleMatcher().match(resolved, rule)
