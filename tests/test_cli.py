"""Tests for the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from rsc_guard.cli.main import app

runner = CliRunner()


def write_project(directory, next_version):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps({
        "name": f"app-{next_version}",
        "dependencies": {"next": f"^{next_version}"},
    }))
    (directory / "package-lock.json").write_text(json.dumps({
        "lockfileVersion": 3,
        "packages": {
            "": {"name": f"app-{next_version}"},
            "node_modules/next": {"version": next_version},
        },
    }))
    return directory


@pytest.fixture
def vulnerable_project(tmp_path):
    return write_project(tmp_path / "vulnerable", "15.2.1")


@pytest.fixture
def patched_project(tmp_path):
    return write_project(tmp_path / "patched", "15.2.6")


class TestScanCommand:
    """Test the scan command."""

    def test_vulnerable_exit_code(self, vulnerable_project):
        result = runner.invoke(app, ["scan", str(vulnerable_project)])
        assert result.exit_code == 1

    def test_patched_exit_code(self, patched_project):
        result = runner.invoke(app, ["scan", str(patched_project)])

        assert result.exit_code == 0
        assert "No vulnerable packages found" in result.stdout

    def test_json_output(self, vulnerable_project):
        result = runner.invoke(app, ["scan", str(vulnerable_project), "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["cve"] == "CVE-2025-55182"
        assert data["vulnerable"] is True
        assert data["projects"][0]["findings"][0]["fixedVersion"] == "15.2.6"

    def test_output_file(self, patched_project, tmp_path):
        output = tmp_path / "results.json"

        result = runner.invoke(app, ["scan", str(patched_project), "--output", str(output)])

        assert result.exit_code == 0
        assert json.loads(output.read_text())["vulnerable"] is False

    def test_missing_path(self, tmp_path):
        """Test that a missing path is reported as an error."""
        result = runner.invoke(app, ["scan", str(tmp_path / "missing"), "--json"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["errors"] == [f"Path does not exist: {tmp_path / 'missing'}"]

    def test_ignore_option(self, tmp_path, vulnerable_project, patched_project):
        result = runner.invoke(app, ["scan", str(tmp_path), "--json", "--ignore", "vulnerable"])

        assert result.exit_code == 0
        assert [p["name"] for p in json.loads(result.stdout)["projects"]] == ["app-15.2.6"]

    def test_missing_rules(self, vulnerable_project, tmp_path, monkeypatch):
        monkeypatch.setenv("RSC_GUARD_RULES_DIR", str(tmp_path / "no-rules"))

        result = runner.invoke(app, ["scan", str(vulnerable_project)])

        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestSbomCommand:
    """Test the sbom command."""

    def test_vulnerable_sbom(self, tmp_path):
        bom = tmp_path / "bom.json"
        bom.write_text(json.dumps({
            "bomFormat": "CycloneDX",
            "specVersion": "1.5",
            "components": [
                {"type": "library", "name": "next", "version": "15.1.0", "purl": "pkg:npm/next@15.1.0"},
            ],
        }))

        result = runner.invoke(app, ["sbom", str(bom), "--json"])

        assert result.exit_code == 1
        project = json.loads(result.stdout)["projects"][0]
        assert project["name"] == "bom"
        assert project["findings"][0]["fixedVersion"] == "15.1.9"

    def test_missing_sbom(self, tmp_path):
        result = runner.invoke(app, ["sbom", str(tmp_path / "missing.json")])
        assert result.exit_code == 1


class TestFixCommand:
    """Test the fix command."""

    def test_dry_run(self, vulnerable_project):
        before = (vulnerable_project / "package.json").read_text()

        result = runner.invoke(app, ["fix", str(vulnerable_project), "--dry-run", "--summary"])

        assert result.exit_code == 0
        assert "## Security Fix: CVE-2025-55182" in result.stdout
        assert (vulnerable_project / "package.json").read_text() == before

    def test_fix_writes_package_json(self, vulnerable_project):
        result = runner.invoke(app, ["fix", str(vulnerable_project)])

        assert result.exit_code == 0
        package_json = json.loads((vulnerable_project / "package.json").read_text())
        assert package_json["dependencies"]["next"] == "^15.2.6"

    def test_missing_package_json(self, tmp_path):
        result = runner.invoke(app, ["fix", str(tmp_path)])
        assert result.exit_code == 1


class TestInfoCommand:
    """Test the info command."""

    def test_info(self):
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "CVE-2025-55182" in result.stdout
        assert "package-lock.json" in result.stdout
        assert "npm, pnpm, yarn" in result.stdout
