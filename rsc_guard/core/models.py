"""Scan result data models and their JSON form."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class FrameworkType(str, Enum):
    NEXTJS = "nextjs"
    REACT_RSC = "react-rsc"
    REACT_CLIENT_ONLY = "react-client-only"
    UNKNOWN = "unknown"


@dataclass
class Finding:
    """A vulnerable package version found in a project."""

    package: str
    current_version: str
    fixed_version: str
    severity: str
    advisory_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "package": self.package,
            "currentVersion": self.current_version,
            "fixedVersion": self.fixed_version,
            "severity": self.severity,
        }
        if self.advisory_url:
            data["advisoryUrl"] = self.advisory_url
        return data


@dataclass
class FrameworkInfo:
    """Framework a project is built on."""

    type: FrameworkType = FrameworkType.UNKNOWN
    version: Optional[str] = None
    app_router_detected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.version:
            data["version"] = self.version
        data["appRouterDetected"] = self.app_router_detected
        return data


@dataclass
class ProjectResult:
    """Scan result of a single project directory (or SBOM)."""

    name: str
    path: str
    framework: FrameworkInfo
    findings: List[Finding] = field(default_factory=list)

    @property
    def vulnerable(self) -> bool:
        return len(self.findings) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "framework": self.framework.to_dict(),
            "findings": [finding.to_dict() for finding in self.findings],
            "vulnerable": self.vulnerable,
        }


def format_scan_time(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision: ``2025-12-04T10:00:00.000Z``."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


@dataclass
class ScanResult:
    """Result of a whole scan invocation."""

    cve: str
    projects: List[ProjectResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    scan_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def vulnerable(self) -> bool:
        return any(project.vulnerable for project in self.projects)

    @property
    def findings(self) -> List[Finding]:
        """Findings of every project, in project order."""
        return [finding for project in self.projects for finding in project.findings]

    @classmethod
    def failed(cls, cve: str, error: str) -> "ScanResult":
        """A result with no projects and a single error."""
        return cls(cve=cve, errors=[error])

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stable JSON contract.

        Returns:
            Dictionary with ``cve``, ``vulnerable``, ``scanTime``,
            ``projects`` and ``errors``
        """
        return {
            "cve": self.cve,
            "vulnerable": self.vulnerable,
            "scanTime": format_scan_time(self.scan_time),
            "projects": [project.to_dict() for project in self.projects],
            "errors": list(self.errors),
        }
