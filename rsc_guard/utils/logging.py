"""Logging utilities for rsc-guard."""

import logging
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

ROOT_LOGGER_NAME = "rsc_guard"


def _build_handler() -> RichHandler:
    """Create the rich stderr handler shared by every rsc-guard logger."""
    # stdout carries scan output
    console = Console(stderr=True, theme=Theme({
        "info": "cyan",
        "warning": "yellow",
        "error": "red",
        "critical": "red bold",
        "debug": "dim",
    }))

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(name)s: %(message)s", datefmt="[%X]"))
    return handler


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(_build_handler())
        root.setLevel(logging.WARNING)
        root.propagate = False
    return root


class GuardLogger:
    """Component logger that routes through the shared rich handler."""

    def __init__(self, name: str) -> None:
        _root_logger()
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(msg, extra=kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(msg, extra=kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(msg, extra=kwargs)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(msg, extra=kwargs)


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    verbose: bool = False
) -> None:
    """Setup logging configuration for rsc-guard.

    Args:
        level: Logging level for the rsc-guard logger tree
        log_file: Optional log file path
        verbose: Enable debug logging
    """
    if verbose:
        level = logging.DEBUG

    root = _root_logger()
    root.setLevel(level)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(file_handler)


def get_logger(name: str) -> GuardLogger:
    """Get an rsc-guard logger instance.

    Args:
        name: Logger name, usually the component

    Returns:
        Configured logger instance
    """
    return GuardLogger(name)
