"""Registry dispatching project directories to lockfile parsers."""

from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import BaseLockfileParser, ParseOutcome
from ...utils.logging import get_logger

PathLike = Union[str, Path]


class ParserRegistry:
    """Ordered registry of lockfile parsers.

    Registration order is the probing priority: the first parser whose
    lockfile is present and parses successfully wins.
    """

    def __init__(self) -> None:
        """Initialize the parser registry."""
        self._parsers: Dict[str, BaseLockfileParser] = {}
        self.logger = get_logger("parsers.registry")

    def register(self, parser: BaseLockfileParser) -> None:
        """Register a parser at the lowest priority.

        Args:
            parser: Parser instance to register
        """
        self._parsers[parser.parser_type] = parser

    def get_parser(self, parser_type: str) -> Optional[BaseLockfileParser]:
        """Get a parser by its type name ("npm", "pnpm", "yarn")."""
        return self._parsers.get(parser_type)

    @property
    def parsers(self) -> List[BaseLockfileParser]:
        return list(self._parsers.values())

    def get_supported_parser_types(self) -> List[str]:
        return list(self._parsers.keys())

    def get_lockfile_names(self) -> List[str]:
        return [parser.lockfile_name for parser in self._parsers.values()]

    def has_lockfile(self, project_dir: PathLike) -> bool:
        """Check whether any registered lockfile exists in a directory."""
        return any(parser.can_parse(project_dir) for parser in self._parsers.values())

    def parse_project(self, project_dir: PathLike) -> ParseOutcome:
        """Parse the highest-priority lockfile available in a directory.

        A present but unparseable lockfile falls through to the next format.

        Args:
            project_dir: Project directory

        Returns:
            First successful outcome, or not present
        """
        reasons = []
        for parser in self._parsers.values():
            if not parser.can_parse(project_dir):
                continue

            outcome = parser.parse(project_dir)
            if outcome.is_found:
                self.logger.debug(f"Using {parser.lockfile_name} in {project_dir}")
                return outcome
            reasons.append(outcome.reason)

        if reasons:
            return ParseOutcome.not_present("; ".join(reasons))
        return ParseOutcome.not_present(f"No lockfile found in {project_dir}")
