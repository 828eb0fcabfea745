"""Scan orchestration: project discovery, lockfile resolution and matching."""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from ..config import ScanConfig
from ..utils.logging import get_logger
from ..utils.path_utils import find_project_dirs
from .classifier import classify_packages, detect_framework
from .matcher import RuleMatcher
from .models import ProjectResult, ScanResult
from .parsers import ParserRegistry, ResolvedPackageMap, create_default_registry, read_manifest
from .parsers.sbom import CycloneDXParser
from .rules import CVERule, RuleStore
from .workspace import WorkspaceInfo, detect_workspace, get_workspace_summary, is_workspace_package

PathLike = Union[str, Path]

_ScanOutcome = Tuple[Optional[ProjectResult], Optional[str]]


class Scanner:
    """Scans directory trees and SBOMs against the configured CVE rule.

    The rule store and parser registry are shared by every project of a
    scan; workspace members without a lockfile of their own share the root's
    read-only package map.
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        rule_store: Optional[RuleStore] = None,
        registry: Optional[ParserRegistry] = None
    ) -> None:
        """Initialize the scanner.

        Args:
            config: Scan configuration, defaults when None
            rule_store: Rule store, loaded from ``config.rules_dir`` when None
            registry: Lockfile parser registry, npm/pnpm/yarn when None
        """
        self.config = config or ScanConfig()
        self.rule_store = rule_store or RuleStore(self.config.rules_dir)
        self.registry = registry or create_default_registry(self.config.max_lockfile_size)
        self.matcher = RuleMatcher()
        self.logger = get_logger("scanner")

    def scan(self, root_path: PathLike, ignore_paths: Optional[Iterable[str]] = None) -> ScanResult:
        """Scan a directory for vulnerable resolved dependencies.

        Args:
            root_path: Project or monorepo root
            ignore_paths: Extra directory names or globs to skip during
                discovery, on top of ``config.ignore_paths``

        Returns:
            Scan result; a missing root yields a single error

        Raises:
            RuleNotFoundError: If the configured rule is not available
        """
        cve_id = self.config.cve_id
        if not os.path.exists(root_path):
            return ScanResult.failed(cve_id, f"Path does not exist: {root_path}")

        rule = self.rule_store.get_primary_rule(cve_id)
        root = Path(os.path.abspath(root_path))

        workspace = detect_workspace(root)
        self.logger.debug(f"Workspace: {get_workspace_summary(workspace)}")

        project_dirs = self._project_dirs(root, workspace, ignore_paths)
        self.logger.debug(f"Found {len(project_dirs)} project(s) to scan")

        root_resolved = None
        if workspace.is_workspace:
            outcome = self.registry.parse_project(workspace.root_path)
            root_resolved = outcome.resolved
            if root_resolved is not None:
                self.logger.debug(f"Using root lockfile from {workspace.root_path}")

        def scan_one(project_dir: Path) -> _ScanOutcome:
            inherited = None
            if (
                root_resolved is not None
                and is_workspace_package(project_dir, workspace)
                and not self.registry.has_lockfile(project_dir)
            ):
                inherited = root_resolved

            try:
                return self.scan_project(project_dir, rule, inherited), None
            except Exception as e:
                self.logger.error(f"Error scanning {project_dir}: {e}")
                return None, f"Error scanning {project_dir}: {e}"

        if self.config.max_workers > 1 and len(project_dirs) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                outcomes = list(executor.map(scan_one, project_dirs))
        else:
            outcomes = [scan_one(project_dir) for project_dir in project_dirs]

        result = ScanResult(cve=cve_id)
        for project, error in outcomes:
            if project is not None:
                result.projects.append(project)
            if error:
                result.errors.append(error)

        return result

    def _project_dirs(
        self,
        root: Path,
        workspace: WorkspaceInfo,
        ignore_paths: Optional[Iterable[str]]
    ) -> List[Path]:
        if workspace.is_workspace and workspace.packages:
            return list(dict.fromkeys([root] + workspace.packages))

        patterns = list(self.config.ignore_paths) + list(ignore_paths or [])
        return find_project_dirs(root, patterns, self.config.max_depth)

    def scan_project(
        self,
        project_dir: PathLike,
        rule: CVERule,
        parent_resolved: Optional[ResolvedPackageMap] = None
    ) -> Optional[ProjectResult]:
        """Scan a single project directory.

        Args:
            project_dir: Directory holding a package.json
            rule: Rule to match against
            parent_resolved: Package map of the workspace root, used when the
                project has no lockfile of its own

        Returns:
            Project result, or None when there is no readable package.json
        """
        project_dir = Path(project_dir)
        manifest = read_manifest(project_dir)
        if manifest is None:
            self.logger.debug(f"No package.json found in {project_dir}")
            return None

        resolved = self.registry.parse_project(project_dir).resolved
        if resolved is None and parent_resolved is not None:
            self.logger.debug(f"Using parent lockfile for {project_dir.name}")
            resolved = parent_resolved

        if resolved is None:
            self.logger.debug(f"No lockfile found in {project_dir}")

        findings = self.matcher.match(resolved, rule) if resolved is not None else []

        return ProjectResult(
            name=manifest.name or project_dir.name,
            path=str(project_dir),
            framework=detect_framework(project_dir, manifest, resolved),
            findings=findings,
        )

    def scan_sbom(self, sbom_path: PathLike) -> ScanResult:
        """Scan a CycloneDX SBOM file.

        Args:
            sbom_path: Path to the SBOM

        Returns:
            Scan result with one project named after the file

        Raises:
            RuleNotFoundError: If the configured rule is not available
        """
        cve_id = self.config.cve_id
        if not os.path.exists(sbom_path):
            return ScanResult.failed(cve_id, f"SBOM file does not exist: {sbom_path}")

        self.logger.debug(f"Scanning SBOM: {sbom_path}")
        outcome = CycloneDXParser(self.config.max_lockfile_size).parse_file(sbom_path)
        if not outcome.is_found:
            return ScanResult.failed(cve_id, f"Failed to parse SBOM file: {sbom_path}")

        rule = self.rule_store.get_primary_rule(cve_id)

        name = Path(sbom_path).name
        if name.endswith(".json"):
            name = name[:-len(".json")]

        project = ProjectResult(
            name=name,
            path=str(sbom_path),
            framework=classify_packages(outcome.resolved),
            findings=self.matcher.match(outcome.resolved, rule),
        )
        return ScanResult(cve=cve_id, projects=[project])


_default_rule_store: Optional[RuleStore] = None
_default_rule_store_lock = threading.Lock()


def get_default_rule_store() -> RuleStore:
    """Return the process-wide rule store, loading it on first use."""
    global _default_rule_store
    with _default_rule_store_lock:
        if _default_rule_store is None:
            _default_rule_store = RuleStore()
        return _default_rule_store


def scan(root_path: PathLike, ignore_paths: Optional[Iterable[str]] = None) -> ScanResult:
    """Scan a directory with the default configuration."""
    return Scanner(rule_store=get_default_rule_store()).scan(root_path, ignore_paths)


def scan_sbom(sbom_path: PathLike) -> ScanResult:
    """Scan a CycloneDX SBOM with the default configuration."""
    return Scanner(rule_store=get_default_rule_store()).scan_sbom(sbom_path)
