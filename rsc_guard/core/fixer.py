"""Rewrite vulnerable dependency ranges in package.json to fixed versions."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .models import Finding
from .rules import CVERule
from ..utils.logging import get_logger

logger = get_logger("fixer")

PathLike = Union[str, Path]

_RANGE_PREFIX = re.compile(r"^[\^~>=<]*")

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")


@dataclass
class PackageUpdate:
    package: str
    from_range: str
    to_range: str
    section: str = "dependencies"


@dataclass
class FixResult:
    """Outcome of a fix run on one project."""

    package_json_path: Path
    success: bool = False
    updated_packages: List[PackageUpdate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False


def upgraded_range(current_range: str, fixed_version: str) -> str:
    """Build the new range, keeping the operator prefix of the old one.

    ``~19.1.0`` -> ``~19.1.2``; an exact pin such as ``15.2.1`` gets ``^``.

    Args:
        current_range: Range currently declared in package.json
        fixed_version: Version to move to

    Returns:
        New range expression
    """
    prefix = _RANGE_PREFIX.match(current_range).group(0) or "^"
    return f"{prefix}{fixed_version}"


def fix_vulnerabilities(
    project_path: PathLike,
    findings: Sequence[Finding],
    dry_run: bool = False
) -> FixResult:
    """Update package.json so every finding's package requires its fixed version.

    Both ``dependencies`` and ``devDependencies`` are updated. The package
    manager is not run; the lockfile changes on the next install.

    Args:
        project_path: Project directory
        findings: Findings of a scan of that project
        dry_run: Report the updates without writing the file

    Returns:
        Fix result listing the updated ranges
    """
    package_json_path = Path(project_path) / "package.json"
    result = FixResult(package_json_path=package_json_path, dry_run=dry_run)

    if not package_json_path.is_file():
        result.errors.append(f"package.json not found at {package_json_path}")
        return result

    if not findings:
        result.success = True
        return result

    try:
        with open(package_json_path, "r", encoding="utf-8") as f:
            package_json = json.load(f)
        if not isinstance(package_json, dict):
            raise ValueError("top level is not an object")
    except (OSError, UnicodeDecodeError, ValueError) as e:
        result.errors.append(f"Failed to process package.json: {e}")
        return result

    for finding in findings:
        for section in DEPENDENCY_SECTIONS:
            update = _update_section(package_json, section, finding)
            if update:
                result.updated_packages.append(update)

    if not dry_run and result.updated_packages:
        try:
            _write_package_json(package_json_path, package_json)
        except OSError as e:
            result.errors.append(f"Failed to write {package_json_path}: {e}")
            return result
        logger.info(f"Updated {len(result.updated_packages)} range(s) in {package_json_path}")

    result.success = not result.errors
    return result


def _update_section(
    package_json: Dict[str, Any],
    section: str,
    finding: Finding
) -> Optional[PackageUpdate]:
    dependencies = package_json.get(section)
    if not isinstance(dependencies, dict):
        return None

    current_range = dependencies.get(finding.package)
    if not isinstance(current_range, str) or not current_range:
        return None

    new_range = upgraded_range(current_range, finding.fixed_version)
    dependencies[finding.package] = new_range
    return PackageUpdate(
        package=finding.package,
        from_range=current_range,
        to_range=new_range,
        section=section,
    )


def _write_package_json(path: Path, package_json: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(package_json, f, indent=2, ensure_ascii=False)
        f.write("\n")


def generate_fix_summary(result: FixResult, rule: CVERule) -> str:
    """Render a Markdown pull request description for a fix.

    Args:
        result: Fix result
        rule: Rule the findings came from

    Returns:
        Markdown text
    """
    lines = [
        f"## Security Fix: {rule.id}",
        "",
        f"This update fixes {rule.title} ({rule.severity}).",
        "",
        "### Updated Packages",
        "",
    ]

    for update in result.updated_packages:
        lines.append(f"- `{update.package}`: {update.from_range} -> {update.to_range}")

    lines.extend(["", "### References", ""])
    if rule.advisory_url:
        lines.append(f"- [Security Advisory]({rule.advisory_url})")
    lines.append(f"- [{rule.id}](https://nvd.nist.gov/vuln/detail/{rule.id})")

    return "\n".join(lines)
