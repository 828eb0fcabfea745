"""Tests for lockfile, manifest and SBOM parsers."""

import json
from unittest.mock import patch

import pytest

from rsc_guard.core.parsers import ParseOutcome, create_default_registry
from rsc_guard.core.parsers.base import LockfileEntry, ResolvedPackageMap, split_package_spec
from rsc_guard.core.parsers.manifest import (
    ManifestDeclaration,
    get_all_dependencies,
    get_dependency_range,
    has_dependency,
    read_manifest,
)
from rsc_guard.core.parsers.npm import NpmLockfileParser, package_name_from_key
from rsc_guard.core.parsers.pnpm import PnpmLockfileParser, parse_package_key
from rsc_guard.core.parsers.sbom import CycloneDXParser, find_and_parse_sbom, parse_purl
from rsc_guard.core.parsers.yarn import YarnLockfileParser, is_yarn_berry


PNPM_LOCKFILE = """\
lockfileVersion: '6.0'

importers:
  .:
    dependencies:
      next:
        specifier: 15.1.0
        version: 15.1.0(react-dom@19.0.0)(react@19.0.0)
      local-lib:
        specifier: link:../lib
        version: link:../lib
    devDependencies:
      typescript:
        specifier: ^5.0.0
        version: 5.3.3

dependencies:
  next: 15.0.0

packages:
  /next@15.1.0(react-dom@19.0.0)(react@19.0.0):
    resolution: {integrity: sha512-next}
  /@scope/pkg@1.2.3:
    resolution: {integrity: sha512-scope}
  /react-server-dom-webpack@19.1.0(react@19.1.0):
    resolution: {integrity: sha512-rsdw}
"""

PNPM_V5_LOCKFILE = """\
lockfileVersion: 5.4

specifiers:
  react: ^18.2.0

dependencies:
  react: 18.2.0

packages:
  /react/18.2.0:
    resolution: {integrity: sha512-react}
  /@babel/core/7.22.0_react@18.2.0:
    resolution: {integrity: sha512-babel}
"""

YARN_CLASSIC_LOCKFILE = """\
# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@scope/pkg@^1.0.0":
  version "1.0.5"
  resolved "https://registry.yarnpkg.com/@scope/pkg/-/pkg-1.0.5.tgz#abc"
  integrity sha512-scoped==

"pkg@^1.0.0", "pkg@^2.0.0":
  version "1.2.3"
  resolved "https://registry.yarnpkg.com/pkg/-/pkg-1.2.3.tgz"
  dependencies:
    loose-envify "^1.1.0"

pkg@^3.0.0:
  version "3.0.0"

next@15.3.0:
  version "15.3.0"
"""

YARN_BERRY_LOCKFILE = """\
# This file is generated by running "yarn install" inside your project.
# Manual changes might be lost - proceed with caution!

__metadata:
  version: 8
  cacheKey: 10c0

"@scope/pkg@npm:^1.0.0, @scope/pkg@npm:^1.1.0":
  version: 1.1.0
  resolution: "@scope/pkg@npm:1.1.0"
  checksum: 10c0/def
  languageName: node
  linkType: hard

"app@workspace:.":
  version: 0.0.0-use.local
  resolution: "app@workspace:."
  languageName: unknown
  linkType: soft

"next@npm:15.3.0":
  version: 15.3.0
  resolution: "next@npm:15.3.0"
  dependencies:
    react: "npm:^19.0.0"
  checksum: 10c0/abc
  languageName: node
  linkType: hard
"""


def write_json(path, data):
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture
def npm_project(tmp_path):
    """Create a project with a lockfile v3 package-lock.json."""
    write_json(tmp_path / "package-lock.json", {
        "name": "app",
        "lockfileVersion": 3,
        "packages": {
            "": {"name": "app", "version": "1.0.0"},
            "node_modules/next": {
                "version": "15.2.1",
                "resolved": "https://registry.npmjs.org/next/-/next-15.2.1.tgz",
                "integrity": "sha512-next",
            },
            "node_modules/@scope/pkg": {"version": "1.0.0"},
            "node_modules/a/node_modules/b": {"version": "2.0.0"},
            "node_modules/b": {"version": "1.0.0"},
            "node_modules/no-version": {},
        },
    })
    return tmp_path


class TestNpmLockfileParser:
    """Test package-lock.json parser."""

    def test_package_name_from_key(self):
        """Test that names are derived from node_modules keys."""
        assert package_name_from_key("node_modules/@scope/pkg") == "@scope/pkg"
        assert package_name_from_key("node_modules/a/node_modules/b") == "b"
        assert package_name_from_key("") == ""

    def test_parse_v3_lockfile(self, npm_project):
        """Test parsing the flat packages map."""
        outcome = NpmLockfileParser().parse(npm_project)

        assert outcome.is_found
        resolved = outcome.resolved
        assert resolved.parser_type == "npm"
        assert resolved.get_version("next") == "15.2.1"
        assert resolved["next"].integrity == "sha512-next"
        assert resolved.get_version("@scope/pkg") == "1.0.0"
        assert "" not in resolved
        assert "no-version" not in resolved

    def test_later_keys_overwrite_earlier_ones(self, npm_project):
        """Test that the last key deriving a name wins."""
        resolved = NpmLockfileParser().parse(npm_project).resolved
        assert resolved.get_version("b") == "1.0.0"

    def test_later_nested_key_wins(self, tmp_path):
        """Test last-wins when the nested install comes last."""
        write_json(tmp_path / "package-lock.json", {
            "lockfileVersion": 2,
            "packages": {
                "node_modules/b": {"version": "1.0.0"},
                "node_modules/a/node_modules/b": {"version": "2.0.0"},
            },
        })

        resolved = NpmLockfileParser().parse(tmp_path).resolved
        assert resolved.get_version("b") == "2.0.0"

    def test_v1_first_occurrence_wins(self, tmp_path):
        """Test that the v1 dependency tree is flattened depth first, first wins."""
        write_json(tmp_path / "package-lock.json", {
            "lockfileVersion": 1,
            "dependencies": {
                "a": {
                    "version": "1.0.0",
                    "dependencies": {"b": {"version": "2.0.0"}},
                },
                "b": {"version": "1.0.0"},
                "react-server-dom-webpack": {"version": "19.1.0"},
            },
        })

        resolved = NpmLockfileParser().parse(tmp_path).resolved
        assert resolved.get_version("a") == "1.0.0"
        assert resolved.get_version("b") == "2.0.0"
        assert resolved.get_version("react-server-dom-webpack") == "19.1.0"

    def test_missing_lockfile(self, tmp_path):
        """Test that a missing lockfile is reported as not present."""
        outcome = NpmLockfileParser().parse(tmp_path)
        assert not outcome
        assert "package-lock.json not found" in outcome.reason

    def test_malformed_lockfile(self, tmp_path):
        """Test that invalid JSON is treated as absent instead of raising."""
        (tmp_path / "package-lock.json").write_text("{ not json")
        outcome = NpmLockfileParser().parse(tmp_path)
        assert not outcome.is_found
        assert "Failed to parse" in outcome.reason

    def test_non_object_lockfile(self, tmp_path):
        """Test that a JSON array is treated as absent."""
        (tmp_path / "package-lock.json").write_text("[1, 2, 3]")
        assert not NpmLockfileParser().parse(tmp_path).is_found

    def test_parse_is_deterministic(self, npm_project):
        """Test that parsing the same lockfile twice yields equal maps."""
        parser = NpmLockfileParser()
        first = parser.parse(npm_project).resolved
        second = parser.parse(npm_project).resolved
        assert first == second
        assert first is not second


class TestLockfileSizeGuard:
    """Test the size guard shared by every parser."""

    def test_oversized_lockfile_is_not_read(self, npm_project):
        """Test that a lockfile over the limit is treated as missing, unread."""
        parser = NpmLockfileParser(max_size=16)

        with patch.object(NpmLockfileParser, "read_text") as read_text:
            outcome = parser.parse(npm_project)

        assert not outcome.is_found
        assert "too large" in outcome.reason
        read_text.assert_not_called()

    def test_default_limit_is_100mb(self):
        """Test the default size limit."""
        assert NpmLockfileParser().max_size == 100 * 1024 * 1024

    def test_guard_applies_to_sbom(self, tmp_path):
        """Test that SBOMs are subject to the same guard."""
        sbom = write_json(tmp_path / "bom.json", {"bomFormat": "CycloneDX", "components": []})
        assert not CycloneDXParser(max_size=4).parse_file(sbom).is_found
        assert CycloneDXParser().parse_file(sbom).is_found


class TestPnpmLockfileParser:
    """Test pnpm-lock.yaml parser."""

    def test_parse_package_key(self):
        """Test splitting of package keys across lockfile versions."""
        assert parse_package_key("/react@18.2.0") == ("react", "18.2.0")
        assert parse_package_key("/@scope/pkg@1.0.0") == ("@scope/pkg", "1.0.0")
        assert parse_package_key("next@15.1.0(react@19.0.0)") == ("next", "15.1.0")
        assert parse_package_key("/react/18.2.0") == ("react", "18.2.0")
        assert parse_package_key("/@babel/core/7.22.0_react@18.2.0") == ("@babel/core", "7.22.0")
        assert parse_package_key("/next/13.0.0_react@18.2.0") == ("next", "13.0.0")
        assert parse_package_key("garbage") is None

    def test_parse_lockfile(self, tmp_path):
        """Test parsing packages and importer sections."""
        (tmp_path / "pnpm-lock.yaml").write_text(PNPM_LOCKFILE)

        outcome = PnpmLockfileParser().parse(tmp_path)

        assert outcome.is_found
        resolved = outcome.resolved
        assert resolved.parser_type == "pnpm"
        assert resolved.get_version("next") == "15.1.0"
        assert resolved["next"].integrity == "sha512-next"
        assert resolved.get_version("@scope/pkg") == "1.2.3"
        assert resolved.get_version("react-server-dom-webpack") == "19.1.0"

    def test_importers_fill_missing_names(self, tmp_path):
        """Test that importer entries add packages absent from the packages map."""
        (tmp_path / "pnpm-lock.yaml").write_text(PNPM_LOCKFILE)
        resolved = PnpmLockfileParser().parse(tmp_path).resolved
        assert resolved.get_version("typescript") == "5.3.3"

    def test_secondary_sections_do_not_overwrite(self, tmp_path):
        """Test that the packages map takes precedence over dependencies."""
        (tmp_path / "pnpm-lock.yaml").write_text(PNPM_LOCKFILE)
        resolved = PnpmLockfileParser().parse(tmp_path).resolved
        assert resolved.get_version("next") == "15.1.0"

    def test_link_versions_skipped(self, tmp_path):
        """Test that link: dependencies are not recorded."""
        (tmp_path / "pnpm-lock.yaml").write_text(PNPM_LOCKFILE)
        resolved = PnpmLockfileParser().parse(tmp_path).resolved
        assert "local-lib" not in resolved

    def test_parse_v5_lockfile(self, tmp_path):
        """Test legacy slash-separated keys."""
        (tmp_path / "pnpm-lock.yaml").write_text(PNPM_V5_LOCKFILE)
        resolved = PnpmLockfileParser().parse(tmp_path).resolved
        assert resolved.get_version("react") == "18.2.0"
        assert resolved.get_version("@babel/core") == "7.22.0"

    def test_invalid_yaml(self, tmp_path):
        """Test that invalid YAML is treated as absent."""
        (tmp_path / "pnpm-lock.yaml").write_text("packages: [unclosed\n  - {")
        assert not PnpmLockfileParser().parse(tmp_path).is_found

    def test_non_mapping_root(self, tmp_path):
        """Test that a YAML list is treated as absent."""
        (tmp_path / "pnpm-lock.yaml").write_text("- a\n- b\n")
        assert not PnpmLockfileParser().parse(tmp_path).is_found


class TestYarnLockfileParser:
    """Test yarn.lock parser."""

    def test_detect_berry(self):
        """Test dialect detection."""
        assert is_yarn_berry(YARN_BERRY_LOCKFILE)
        assert not is_yarn_berry(YARN_CLASSIC_LOCKFILE)

    def test_split_package_spec(self):
        """Test name extraction from specifiers."""
        assert split_package_spec("react@^18.2.0") == "react"
        assert split_package_spec("@scope/pkg@1.0.0") == "@scope/pkg"
        assert split_package_spec("@scope/pkg") == "@scope/pkg"

    def test_parse_classic(self, tmp_path):
        """Test parsing a Classic lockfile."""
        (tmp_path / "yarn.lock").write_text(YARN_CLASSIC_LOCKFILE)

        outcome = YarnLockfileParser().parse(tmp_path)

        assert outcome.is_found
        resolved = outcome.resolved
        assert resolved.parser_type == "yarn"
        assert resolved.get_version("@scope/pkg") == "1.0.5"
        assert resolved["@scope/pkg"].integrity == "sha512-scoped=="
        assert resolved["@scope/pkg"].resolved == (
            "https://registry.yarnpkg.com/@scope/pkg/-/pkg-1.0.5.tgz#abc"
        )
        assert resolved.get_version("next") == "15.3.0"

    def test_multi_specifier_entry_first_wins(self, tmp_path):
        """Test that a multi-specifier entry yields one entry and first wins."""
        (tmp_path / "yarn.lock").write_text(YARN_CLASSIC_LOCKFILE)
        resolved = YarnLockfileParser().parse(tmp_path).resolved
        assert resolved.get_version("pkg") == "1.2.3"

    def test_nested_blocks_ignored(self, tmp_path):
        """Test that dependency blocks do not produce entries."""
        (tmp_path / "yarn.lock").write_text(YARN_CLASSIC_LOCKFILE)
        resolved = YarnLockfileParser().parse(tmp_path).resolved
        assert "loose-envify" not in resolved

    def test_single_multi_spec_entry(self):
        """Test the minimal multi-specifier case."""
        content = '"pkg@^1.0.0", "pkg@^2.0.0":\n  version "1.2.3"\n'
        packages = YarnLockfileParser().parse_content(content)
        assert packages == {"pkg": LockfileEntry(version="1.2.3")}

    def test_parse_berry(self, tmp_path):
        """Test parsing a Berry lockfile."""
        (tmp_path / "yarn.lock").write_text(YARN_BERRY_LOCKFILE)

        resolved = YarnLockfileParser().parse(tmp_path).resolved

        assert resolved.get_version("next") == "15.3.0"
        assert resolved["next"].resolved == "next@npm:15.3.0"
        assert resolved["next"].integrity == "10c0/abc"
        assert resolved.get_version("@scope/pkg") == "1.1.0"
        assert resolved.get_version("app") == "0.0.0-use.local"
        assert "__metadata" not in resolved
        assert "react" not in resolved

    def test_empty_lockfile(self, tmp_path):
        """Test that an empty yarn.lock parses to an empty map."""
        (tmp_path / "yarn.lock").write_text("")
        outcome = YarnLockfileParser().parse(tmp_path)
        assert outcome.is_found
        assert len(outcome.resolved) == 0


class TestCycloneDXParser:
    """Test CycloneDX SBOM parser."""

    @pytest.fixture
    def sbom_file(self, tmp_path):
        return write_json(tmp_path / "bom.json", {
            "bomFormat": "CycloneDX",
            "specVersion": "1.5",
            "components": [
                {"type": "library", "name": "next", "version": "15.2.1",
                 "purl": "pkg:npm/next@15.2.1"},
                {"type": "library", "name": "pkg", "version": "1.0.0",
                 "purl": "pkg:npm/%40scope/pkg@1.0.0"},
                {"type": "library", "group": "babel", "name": "core", "version": "7.0.0"},
                {"type": "application", "name": "my-app", "version": "1.0.0"},
                {"type": "library", "name": "no-version"},
            ],
        })

    def test_parse_purl(self):
        """Test npm package URL parsing."""
        assert parse_purl("pkg:npm/next@15.2.1") == ("next", "15.2.1")
        assert parse_purl("pkg:npm/%40scope/pkg@1.0.0") == ("@scope/pkg", "1.0.0")
        assert parse_purl("pkg:npm/@scope/pkg@1.0.0?arch=x64") == ("@scope/pkg", "1.0.0")
        assert parse_purl("pkg:pypi/requests@2.0.0") is None

    def test_parse_components(self, sbom_file):
        """Test that library components are read."""
        outcome = CycloneDXParser().parse_file(sbom_file)

        assert outcome.is_found
        resolved = outcome.resolved
        assert resolved.get_version("next") == "15.2.1"
        assert resolved.get_version("@scope/pkg") == "1.0.0"
        assert resolved.get_version("@babel/core") == "7.0.0"
        assert "my-app" not in resolved
        assert "no-version" not in resolved

    def test_rejects_other_formats(self, tmp_path):
        """Test that non-CycloneDX documents are not parsed."""
        sbom = write_json(tmp_path / "sbom.json", {"spdxVersion": "SPDX-2.3"})
        assert not CycloneDXParser().parse_file(sbom).is_found

    def test_find_and_parse_sbom(self, tmp_path, sbom_file):
        """Test probing common SBOM file names."""
        assert find_and_parse_sbom(tmp_path).resolved.get_version("next") == "15.2.1"

    def test_find_and_parse_sbom_without_file(self, tmp_path):
        """Test probing a directory without an SBOM."""
        assert not find_and_parse_sbom(tmp_path).is_found


class TestParserRegistry:
    """Test lockfile dispatch."""

    def test_npm_has_priority(self, npm_project):
        """Test that package-lock.json wins over yarn.lock."""
        (npm_project / "yarn.lock").write_text(YARN_CLASSIC_LOCKFILE)

        outcome = create_default_registry().parse_project(npm_project)

        assert outcome.resolved.parser_type == "npm"

    def test_falls_through_on_malformed_lockfile(self, tmp_path):
        """Test that an unparseable lockfile falls through to the next format."""
        (tmp_path / "package-lock.json").write_text("{ broken")
        (tmp_path / "yarn.lock").write_text(YARN_CLASSIC_LOCKFILE)

        outcome = create_default_registry().parse_project(tmp_path)

        assert outcome.resolved.parser_type == "yarn"

    def test_no_lockfile(self, tmp_path):
        """Test a directory without any lockfile."""
        registry = create_default_registry()
        assert not registry.has_lockfile(tmp_path)
        outcome = registry.parse_project(tmp_path)
        assert outcome == ParseOutcome.not_present(f"No lockfile found in {tmp_path}")

    def test_get_parser(self):
        """Test lookup by parser type."""
        registry = create_default_registry()
        assert isinstance(registry.get_parser("pnpm"), PnpmLockfileParser)
        assert registry.get_parser("cargo") is None
        assert registry.get_lockfile_names() == ["package-lock.json", "pnpm-lock.yaml", "yarn.lock"]
        assert registry.get_supported_parser_types() == ["npm", "pnpm", "yarn"]


class TestResolvedPackageMap:
    """Test the resolved package map."""

    def test_read_only(self):
        """Test that the map cannot be mutated."""
        resolved = ResolvedPackageMap({"next": LockfileEntry(version="15.2.1")})
        with pytest.raises(TypeError):
            resolved.packages["next"] = LockfileEntry(version="0.0.0")
        with pytest.raises(TypeError):
            resolved["react"] = LockfileEntry(version="19.0.0")

    def test_get_version(self):
        resolved = ResolvedPackageMap({"next": LockfileEntry(version="15.2.1")})
        assert resolved.get_version("next") == "15.2.1"
        assert resolved.get_version("react") is None


class TestManifest:
    """Test package.json reading."""

    def test_read_manifest(self, tmp_path):
        """Test reading declared dependencies."""
        write_json(tmp_path / "package.json", {
            "name": "next-vulnerable-example",
            "dependencies": {"next": "15.2.1", "react": "^19.1.0", "bogus": 42},
            "devDependencies": {"typescript": "^5.0.0"},
        })

        manifest = read_manifest(tmp_path)

        assert manifest.name == "next-vulnerable-example"
        assert manifest.dependencies == {"next": "15.2.1", "react": "^19.1.0"}
        assert has_dependency(manifest, "typescript")
        assert not has_dependency(manifest, "vue")
        assert get_dependency_range(manifest, "next") == "15.2.1"

    def test_missing_manifest(self, tmp_path):
        assert read_manifest(tmp_path / "missing") is None

    def test_malformed_manifest(self, tmp_path):
        """Test that malformed JSON yields no manifest."""
        (tmp_path / "package.json").write_text("{")
        assert read_manifest(tmp_path) is None

    def test_get_all_dependencies(self):
        """Test merging dependency sections."""
        manifest = ManifestDeclaration(
            dependencies={"react": "^18.0.0"},
            dev_dependencies={"typescript": "^5.0.0"},
        )
        assert get_all_dependencies(manifest) == {"react": "^18.0.0", "typescript": "^5.0.0"}

    def test_workspace_patterns(self):
        """Test both workspace declaration forms."""
        array_form = ManifestDeclaration.from_dict({"workspaces": ["packages/*"]})
        object_form = ManifestDeclaration.from_dict({"workspaces": {"packages": ["apps/*"]}})
        none_form = ManifestDeclaration.from_dict({"name": "single"})

        assert array_form.workspace_patterns == ["packages/*"]
        assert object_form.workspace_patterns == ["apps/*"]
        assert none_form.workspace_patterns is None
