"""Utility functions and helpers for rsc-guard."""

from .logging import setup_logging, get_logger
from .path_utils import PathFilter, find_project_dirs, is_within_root, walk_directories

__all__ = [
    "setup_logging",
    "get_logger",
    "PathFilter",
    "find_project_dirs",
    "is_within_root",
    "walk_directories",
]
