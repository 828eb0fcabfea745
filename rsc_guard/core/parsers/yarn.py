"""Parser for yarn.lock files (Classic v1 and Berry v2+ formats)."""

import re
from pathlib import Path
from typing import Dict, List, Optional

from .base import BaseLockfileParser, LockfileEntry, split_package_spec, strip_quotes

# Berry specifiers carry a protocol: react@npm:^18.2.0, app@workspace:.
_BERRY_PROTOCOL = re.compile(r"@(?:npm|workspace):.*$")

# Classic fields: version "1.2.3" / Berry fields: version: 1.2.3
_CLASSIC_FIELD = re.compile(r"^(version|resolved|integrity)\s+[\"']?([^\"'\s]+)[\"']?\s*$")
_BERRY_FIELD = re.compile(r"^(version|resolution|checksum):\s*[\"']?([^\"'\s]+)[\"']?\s*$")


def is_yarn_berry(content: str) -> bool:
    """Detect the Berry dialect by its metadata block or npm protocol."""
    return "__metadata:" in content or "@npm:" in content


def classic_name(spec: str) -> str:
    """Package name from a Classic specifier such as ``@scope/pkg@^1.0.0``."""
    return split_package_spec(strip_quotes(spec))


def berry_name(spec: str) -> str:
    """Package name from a Berry specifier such as ``react@npm:^18.2.0``."""
    return split_package_spec(_BERRY_PROTOCOL.sub("", strip_quotes(spec)))


class _EntryState:
    """Fields collected for the entry currently being read."""

    def __init__(self, specs: Optional[List[str]] = None) -> None:
        self.specs = specs or []
        self.version: Optional[str] = None
        self.resolved: Optional[str] = None
        self.integrity: Optional[str] = None
        self.field_indent: Optional[int] = None


class YarnLockfileParser(BaseLockfileParser):
    """Parser for yarn.lock, auto-detecting the Classic and Berry dialects.

    Both dialects are read by the same line-oriented state machine: an
    unindented line ending in ``:`` opens an entry that may list several
    comma-separated specifiers, and the first level of indented lines below
    it carries the resolved fields. Nested blocks (``dependencies:`` and the
    like) are skipped. The first entry seen for a package name wins.
    """

    lockfile_name = "yarn.lock"
    parser_type = "yarn"

    def _parse_file(self, file_path: Path) -> Dict[str, LockfileEntry]:
        content = self.read_text(file_path)
        berry = is_yarn_berry(content)
        self.logger.debug(f"Detected yarn {'berry' if berry else 'classic'} format in {file_path}")
        return self.parse_content(content, berry)

    def parse_content(self, content: str, berry: Optional[bool] = None) -> Dict[str, LockfileEntry]:
        """Parse yarn.lock text.

        Args:
            content: Lockfile text
            berry: Force a dialect; detected from the content when None

        Returns:
            Package entries keyed by name
        """
        if berry is None:
            berry = is_yarn_berry(content)

        field_pattern = _BERRY_FIELD if berry else _CLASSIC_FIELD
        name_of = berry_name if berry else classic_name
        # Berry calls the fields resolution/checksum
        resolved_key = "resolution" if berry else "resolved"
        integrity_key = "checksum" if berry else "integrity"

        packages: Dict[str, LockfileEntry] = {}
        state = _EntryState()

        for raw_line in content.splitlines():
            line = raw_line.rstrip()
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue

            indent = len(line) - len(line.lstrip(" \t"))

            if indent == 0:
                self._save(state, packages, name_of)
                if line.endswith(":") and not line.startswith("__metadata"):
                    header = line[:-1]
                    state = _EntryState([
                        strip_quotes(spec) for spec in header.split(",") if spec.strip()
                    ])
                else:
                    state = _EntryState()
                continue

            if not state.specs:
                continue

            if state.field_indent is None:
                state.field_indent = indent
            if indent != state.field_indent:
                continue

            match = field_pattern.match(stripped)
            if not match:
                continue

            key, value = match.group(1), match.group(2)
            if key == "version":
                state.version = value
            elif key == resolved_key:
                state.resolved = value
            elif key == integrity_key:
                state.integrity = value

        self._save(state, packages, name_of)
        return packages

    @staticmethod
    def _save(state: _EntryState, packages: Dict[str, LockfileEntry], name_of) -> None:
        if not state.specs or not state.version:
            return

        for spec in state.specs:
            name = name_of(spec)
            if name and name not in packages:
                packages[name] = LockfileEntry(
                    version=state.version,
                    resolved=state.resolved,
                    integrity=state.integrity,
                )
