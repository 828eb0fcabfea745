"""Core parsing, workspace resolution and rule matching for rsc-guard."""

from .matcher import RuleMatcher, find_fixed_version, is_version_vulnerable
from .models import Finding, FrameworkInfo, FrameworkType, ProjectResult, ScanResult
from .rules import CVERule, RuleNotFoundError, RuleStore, VulnerablePackage
from .scanner import Scanner, scan, scan_sbom

__all__ = [
    "CVERule",
    "Finding",
    "FrameworkInfo",
    "FrameworkType",
    "ProjectResult",
    "RuleMatcher",
    "RuleNotFoundError",
    "RuleStore",
    "ScanResult",
    "Scanner",
    "VulnerablePackage",
    "find_fixed_version",
    "is_version_vulnerable",
    "scan",
    "scan_sbom",
]
