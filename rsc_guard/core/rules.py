"""CVE rule documents and the store that loads them."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..config import DEFAULT_RULES_DIR, PRIMARY_CVE_ID
from ..utils.logging import get_logger

PathLike = Union[str, Path]


class RuleNotFoundError(LookupError):
    """Raised when a required CVE rule is not available."""


@dataclass(frozen=True)
class VulnerablePackage:
    """A package (or framework) affected by a rule."""

    name: str
    vulnerable: str
    fixed: Tuple[str, ...]
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VulnerablePackage":
        """Build an entry from its JSON form.

        Args:
            data: Decoded entry

        Returns:
            Vulnerable package

        Raises:
            ValueError: If a required field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise ValueError("entry is not an object")

        name = data.get("name")
        vulnerable = data.get("vulnerable")
        fixed = data.get("fixed")
        notes = data.get("notes")

        if not isinstance(name, str) or not name:
            raise ValueError("entry has no name")
        if not isinstance(vulnerable, str) or not vulnerable:
            raise ValueError(f"{name}: missing vulnerable range")
        if not isinstance(fixed, list) or not fixed or not all(isinstance(v, str) for v in fixed):
            raise ValueError(f"{name}: fixed must be a non-empty list of versions")

        return cls(
            name=name,
            vulnerable=vulnerable,
            fixed=tuple(fixed),
            notes=notes if isinstance(notes, str) else None,
        )


@dataclass(frozen=True)
class CVERule:
    """Declarative description of a CVE affecting npm packages."""

    id: str
    title: str
    severity: str
    packages: Tuple[VulnerablePackage, ...] = ()
    frameworks: Tuple[VulnerablePackage, ...] = ()
    cvss: Optional[float] = None
    advisory_url: Optional[str] = None

    @property
    def targets(self) -> Tuple[VulnerablePackage, ...]:
        """Packages followed by frameworks, in match order."""
        return self.packages + self.frameworks

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CVERule":
        """Build a rule from a decoded rule document.

        Args:
            data: Decoded JSON document

        Returns:
            CVE rule

        Raises:
            ValueError: If the document is not a valid rule
        """
        if not isinstance(data, dict):
            raise ValueError("rule document is not an object")

        rule_id = data.get("id")
        packages = data.get("packages")
        if not isinstance(rule_id, str) or not rule_id:
            raise ValueError("rule has no id")
        if not isinstance(packages, list):
            raise ValueError(f"{rule_id}: packages must be a list")

        frameworks = data.get("frameworks") or []
        if not isinstance(frameworks, list):
            raise ValueError(f"{rule_id}: frameworks must be a list")

        cvss = data.get("cvss")
        if isinstance(cvss, bool) or not isinstance(cvss, (int, float)):
            cvss = None

        advisory_url = data.get("advisoryUrl")

        return cls(
            id=rule_id,
            title=str(data.get("title") or rule_id),
            severity=str(data.get("severity") or "unknown"),
            packages=tuple(VulnerablePackage.from_dict(p) for p in packages),
            frameworks=tuple(VulnerablePackage.from_dict(f) for f in frameworks),
            cvss=float(cvss) if cvss is not None else None,
            advisory_url=advisory_url if isinstance(advisory_url, str) else None,
        )


class RuleStore:
    """Loads CVE rule documents from a directory, once.

    The store is created by the scanner (or passed to it) and loads lazily on
    first use; later calls reuse the cached rules until :meth:`clear_cache`.
    """

    def __init__(self, rules_dir: PathLike = DEFAULT_RULES_DIR) -> None:
        """Initialize the rule store.

        Args:
            rules_dir: Directory holding ``*.json`` rule documents
        """
        self.rules_dir = Path(rules_dir)
        self.logger = get_logger("rules")
        self._rules: Optional[List[CVERule]] = None

    def load_rules(self) -> List[CVERule]:
        """Load every rule document, skipping invalid ones.

        Returns:
            Rules sorted by file name
        """
        if self._rules is not None:
            return self._rules

        rules: List[CVERule] = []
        if not self.rules_dir.is_dir():
            self.logger.error(f"Rules directory not found: {self.rules_dir}")
            self._rules = rules
            return rules

        for rule_file in sorted(self.rules_dir.glob("*.json")):
            try:
                with open(rule_file, "r", encoding="utf-8") as f:
                    rules.append(CVERule.from_dict(json.load(f)))
            except (OSError, UnicodeDecodeError, ValueError) as e:
                self.logger.error(f"Invalid rule file {rule_file.name}: {e}")
                continue

        self.logger.debug(f"Loaded {len(rules)} rule(s) from {self.rules_dir}")
        self._rules = rules
        return rules

    def get_rule(self, cve_id: str) -> Optional[CVERule]:
        """Get a rule by CVE id, or None."""
        for rule in self.load_rules():
            if rule.id == cve_id:
                return rule
        return None

    def get_primary_rule(self, cve_id: str = PRIMARY_CVE_ID) -> CVERule:
        """Get the rule a scan is run against.

        Args:
            cve_id: Id of the primary rule

        Returns:
            The rule

        Raises:
            RuleNotFoundError: If no loaded rule has that id
        """
        rule = self.get_rule(cve_id)
        if rule is None:
            raise RuleNotFoundError(
                f"Primary CVE rule {cve_id} not found. "
                f"Please ensure {self.rules_dir / (cve_id.lower() + '.json')} exists."
            )
        return rule

    def clear_cache(self) -> None:
        self._rules = None
