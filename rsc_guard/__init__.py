"""rsc-guard - static detection of React Server Components vulnerabilities in JavaScript projects."""

__version__ = "0.1.0"

from .config import ScanConfig
from .core.fixer import fix_vulnerabilities, generate_fix_summary
from .core.models import ScanResult
from .core.rules import RuleNotFoundError, RuleStore
from .core.scanner import Scanner, scan, scan_sbom
from .output.formatters import ConsoleFormatter, JSONFormatter

__all__ = [
    "ConsoleFormatter",
    "JSONFormatter",
    "RuleNotFoundError",
    "RuleStore",
    "ScanConfig",
    "ScanResult",
    "Scanner",
    "fix_vulnerabilities",
    "generate_fix_summary",
    "scan",
    "scan_sbom",
]
