"""Scan configuration for rsc-guard."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .utils.path_utils import DEFAULT_MAX_DEPTH

PRIMARY_CVE_ID = "CVE-2025-55182"

# Lockfiles above this size are treated as absent
MAX_LOCKFILE_SIZE = 100 * 1024 * 1024

DEFAULT_RULES_DIR = Path(__file__).parent / "rules"


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ScanConfig:
    """Configuration shared by the scanner and its collaborators."""

    rules_dir: Path = DEFAULT_RULES_DIR
    cve_id: str = PRIMARY_CVE_ID
    ignore_paths: List[str] = field(default_factory=list)
    max_depth: int = DEFAULT_MAX_DEPTH
    max_lockfile_size: int = MAX_LOCKFILE_SIZE
    max_workers: int = 1
    debug: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.rules_dir = Path(self.rules_dir)
        if not self.cve_id:
            raise ValueError("cve_id cannot be empty")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_lockfile_size <= 0:
            raise ValueError(f"max_lockfile_size must be positive, got {self.max_lockfile_size}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_env(cls, **overrides) -> "ScanConfig":
        """Build a configuration from ``RSC_GUARD_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        values = {}

        rules_dir = os.environ.get("RSC_GUARD_RULES_DIR")
        if rules_dir:
            values["rules_dir"] = Path(rules_dir)

        cve_id = os.environ.get("RSC_GUARD_CVE")
        if cve_id:
            values["cve_id"] = cve_id

        for env_name, key in (
            ("RSC_GUARD_MAX_DEPTH", "max_depth"),
            ("RSC_GUARD_MAX_WORKERS", "max_workers"),
        ):
            raw = os.environ.get(env_name)
            if raw:
                try:
                    values[key] = int(raw)
                except ValueError:
                    raise ValueError(f"{env_name} must be an integer, got {raw!r}") from None

        if "RSC_GUARD_DEBUG" in os.environ:
            values["debug"] = _env_flag(os.environ.get("RSC_GUARD_DEBUG"))

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
