"""Main CLI interface for rsc-guard."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from ..config import ScanConfig
from ..core.fixer import fix_vulnerabilities, generate_fix_summary
from ..core.models import ScanResult
from ..core.parsers import COMMON_SBOM_NAMES, registry
from ..core.rules import RuleNotFoundError, RuleStore
from ..core.scanner import Scanner
from ..output.formatters import ConsoleFormatter, JSONFormatter
from ..utils.logging import get_logger, setup_logging

app = typer.Typer(
    name="rsc-guard",
    help="Detect React Server Components vulnerabilities in JavaScript projects from their lockfiles",
    add_completion=False
)

console = Console()
logger = get_logger("CLI")


def _build_scanner(verbose: bool, ignore_patterns: Optional[List[str]] = None) -> Scanner:
    config = ScanConfig.from_env(ignore_paths=ignore_patterns or None)
    setup_logging(verbose=verbose or config.debug)
    return Scanner(config)


def _emit_json(result: ScanResult, output: Optional[Path]) -> None:
    formatter = JSONFormatter(output)
    data = formatter.format_scan_result(result)
    if output:
        formatter.save_results(data)
    else:
        typer.echo(formatter.dumps(data))


@app.command()
def scan(
    path: Path = typer.Argument(
        Path("."),
        help="Path to the project or monorepo root to scan"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print results as JSON"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file for JSON results"
    ),
    ignore_patterns: Optional[List[str]] = typer.Option(
        None,
        "--ignore",
        help="Additional directory names or glob patterns to skip"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
) -> None:
    """Scan a project for vulnerable React Server Components packages."""
    try:
        scanner = _build_scanner(verbose, ignore_patterns)
        result = scanner.scan(path)
    except (RuleNotFoundError, ValueError) as e:
        logger.error(f"Scan failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if json_output or output:
        _emit_json(result, output)
        if output and not json_output:
            ConsoleFormatter(console).format_scan_result(result)
    else:
        ConsoleFormatter(console).format_scan_result(result)

    if result.vulnerable or result.errors:
        raise typer.Exit(1)


@app.command()
def sbom(
    sbom_file: Path = typer.Argument(
        ...,
        help="CycloneDX JSON SBOM to scan"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print results as JSON"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file for JSON results"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
) -> None:
    """Scan a CycloneDX SBOM for vulnerable packages."""
    try:
        scanner = _build_scanner(verbose)
        result = scanner.scan_sbom(sbom_file)
    except (RuleNotFoundError, ValueError) as e:
        logger.error(f"SBOM scan failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if json_output or output:
        _emit_json(result, output)
    else:
        ConsoleFormatter(console).format_scan_result(result)

    if result.vulnerable or result.errors:
        raise typer.Exit(1)


@app.command()
def fix(
    path: Path = typer.Argument(
        Path("."),
        help="Path to the project to fix"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the updates without writing package.json"
    ),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Print a Markdown pull request description of the fix"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
) -> None:
    """Update vulnerable dependency ranges in package.json to fixed versions."""
    try:
        scanner = _build_scanner(verbose)
        rule = scanner.rule_store.get_primary_rule(scanner.config.cve_id)
        project = scanner.scan_project(path, rule)
    except (RuleNotFoundError, ValueError) as e:
        logger.error(f"Fix failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    findings = project.findings if project else []
    result = fix_vulnerabilities(path, findings, dry_run=dry_run)
    ConsoleFormatter(console).format_fix_result(result)

    if summary and result.updated_packages:
        typer.echo(generate_fix_summary(result, rule))

    if not result.success:
        raise typer.Exit(1)


@app.command()
def info() -> None:
    """Show rsc-guard information."""
    config = ScanConfig.from_env()

    ConsoleFormatter(console).format_info(
        "[bold blue]rsc-guard[/bold blue]\n"
        "Static detection of vulnerable React Server Components packages\n"
        "in npm, pnpm and yarn lockfiles and CycloneDX SBOMs",
        title="Information"
    )

    rules = RuleStore(config.rules_dir).load_rules()
    console.print(f"\n[bold]Rules:[/bold] {', '.join(rule.id for rule in rules) or 'none'}")
    console.print(f"[bold]Package managers:[/bold] {', '.join(registry.get_supported_parser_types())}")
    console.print(f"[bold]Lockfiles:[/bold] {', '.join(registry.get_lockfile_names())}")
    console.print(f"[bold]SBOM files:[/bold] {', '.join(COMMON_SBOM_NAMES)}")

    rule = next((r for r in rules if r.id == config.cve_id), None)
    if rule:
        console.print(f"\n[bold]{rule.id}[/bold] {rule.title} ({rule.severity})")
        for target in rule.targets:
            console.print(f"  • {target.name}: {target.vulnerable}")


def main() -> None:
    """Main entry point for rsc-guard CLI."""
    app()


if __name__ == "__main__":
    main()
