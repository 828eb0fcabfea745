"""Output formatters for rsc-guard results."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.fixer import FixResult
from ..core.models import ProjectResult, ScanResult
from ..utils.logging import get_logger


class ConsoleFormatter:
    """Rich console formatter for rsc-guard output."""

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the console formatter.

        Args:
            console: Rich console instance
        """
        self.console = console or Console()
        self.logger = get_logger("ConsoleFormatter")

    def format_scan_result(self, result: ScanResult) -> None:
        """Format and display a scan result.

        Args:
            result: Scan result
        """
        self.console.print(self._create_summary_panel(result))

        for project in result.projects:
            if project.vulnerable:
                self.console.print(self._create_findings_table(project))

        for error in result.errors:
            self.format_error(error)

        if result.vulnerable:
            self.console.print(
                Panel(
                    "Run 'rsc-guard fix <path>' to update package.json to the fixed versions, "
                    "then reinstall to refresh the lockfile.",
                    style="blue"
                )
            )
        elif result.projects:
            self.console.print(Panel("No vulnerable packages found!", style="green"))

    def _create_summary_panel(self, result: ScanResult) -> Panel:
        vulnerable_projects = [p for p in result.projects if p.vulnerable]

        if result.vulnerable:
            style = "red"
            title = f"{result.cve}: {len(vulnerable_projects)} vulnerable project(s)"
        else:
            style = "green"
            title = f"{result.cve}: not vulnerable"

        lines = [
            "Scan Summary:",
            f"• Projects scanned: {len(result.projects)}",
            f"• Vulnerable projects: {len(vulnerable_projects)}",
            f"• Findings: {len(result.findings)}",
        ]
        if result.errors:
            lines.append(f"• Errors: {len(result.errors)}")

        for project in result.projects:
            lines.append(f"  - {project.name} ({self._describe_framework(project)})")

        return Panel("\n".join(lines), title=title, style=style)

    @staticmethod
    def _describe_framework(project: ProjectResult) -> str:
        framework = project.framework
        label = framework.type.value
        if framework.version:
            label += f" {framework.version}"
        if framework.app_router_detected:
            label += ", App Router"
        return label

    def _create_findings_table(self, project: ProjectResult) -> Table:
        """Create the findings table of one project.

        Args:
            project: Vulnerable project

        Returns:
            Rich table with one row per finding
        """
        table = Table(title=f"{project.name} ({project.path})")

        table.add_column("Package", style="cyan", no_wrap=True)
        table.add_column("Installed", style="blue")
        table.add_column("Fixed", style="green")
        table.add_column("Severity", style="yellow")

        for finding in project.findings:
            table.add_row(
                finding.package,
                finding.current_version,
                finding.fixed_version,
                Text(finding.severity.upper(), style=self._get_severity_style(finding.severity)),
            )

        return table

    def format_fix_result(self, result: FixResult) -> None:
        """Display the ranges a fix run changed (or would change).

        Args:
            result: Fix result
        """
        for error in result.errors:
            self.format_error(error)

        if not result.updated_packages:
            if result.success:
                self.console.print("[yellow]Nothing to update[/yellow]")
            return

        verb = "Would update" if result.dry_run else "Updated"
        table = Table(title=f"{verb} {result.package_json_path}")
        table.add_column("Package", style="cyan", no_wrap=True)
        table.add_column("Section", style="dim")
        table.add_column("From", style="red")
        table.add_column("To", style="green")

        for update in result.updated_packages:
            table.add_row(update.package, update.section, update.from_range, update.to_range)

        self.console.print(table)

    def _get_severity_style(self, severity: str) -> str:
        """Get color style for severity level.

        Args:
            severity: Severity level

        Returns:
            Color style string
        """
        severity_lower = (severity or "").lower()

        if severity_lower == "critical":
            return "red bold"
        elif severity_lower == "high":
            return "red"
        elif severity_lower == "medium":
            return "yellow"
        elif severity_lower == "low":
            return "blue"
        else:
            return "white"

    def format_error(self, error: str, details: Optional[str] = None) -> None:
        """Format and display error message.

        Args:
            error: Error message
            details: Optional error details
        """
        content = Text.assemble(("Error: ", "bold red"), error)
        if details:
            content.append(f"\n\n{details}", style="dim")

        self.console.print(Panel(content, style="red"))

    def format_info(self, message: str, title: Optional[str] = None) -> None:
        self.console.print(Panel(message, title=title, style="blue"))


class JSONFormatter:
    """JSON formatter for rsc-guard output."""

    def __init__(self, output_file: Optional[Path] = None) -> None:
        """Initialize the JSON formatter.

        Args:
            output_file: Optional output file path
        """
        self.output_file = output_file
        self.logger = get_logger("JSONFormatter")

    def format_scan_result(self, result: ScanResult) -> Dict[str, Any]:
        """Format a scan result as its JSON contract."""
        return result.to_dict()

    def dumps(self, results: Dict[str, Any]) -> str:
        return json.dumps(results, indent=2, ensure_ascii=False)

    def save_results(
        self,
        results: Dict[str, Any],
        output_file: Optional[Path] = None
    ) -> None:
        """Save results to JSON file.

        Args:
            results: Results dictionary
            output_file: Output file path (uses instance default if None)
        """
        file_path = output_file or self.output_file
        if not file_path:
            raise ValueError("No output file specified")

        try:
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(self.dumps(results))
                f.write("\n")

            self.logger.info(f"Results saved to {file_path}")
        except IOError as e:
            self.logger.error(f"Failed to save results to {file_path}: {e}")
            raise
