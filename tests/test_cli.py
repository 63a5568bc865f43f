"""
Tests for CLI commands — install lifecycle, registry queries and build.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from boxpm.main import cli


@pytest.fixture
def registry_dir(tmp_path: Path) -> Path:
    """A file:// NUR registry with one binary module."""
    root = tmp_path / "nur"
    (root / "modules").mkdir(parents=True)
    (root / "bin").mkdir()
    (root / "bin" / "base64.bin").write_bytes(b"\x7fELF-fake")

    binary = f"file://{root / 'bin' / 'base64.bin'}"
    (root / "nur.json").write_text(json.dumps({
        "version": "1.0",
        "modules": {"base64": "./modules/base64.json", "crypto": "./modules/crypto.json"},
    }))
    (root / "modules" / "base64.json").write_text(json.dumps({
        "name": "base64",
        "description": "Base64 codec",
        "author": "neutron",
        "latest": "1.0.1",
        "versions": {
            "1.0.1": {
                "entry-linux": binary,
                "entry-win": binary,
                "entry-mac": binary,
                "dependencies": {"crypto": ">=1.0"},
            },
        },
    }))
    return root


@pytest.fixture
def project(tmp_path: Path, registry_dir: Path) -> Path:
    """A project whose box.yml points at the file:// registry."""
    path = tmp_path / "project"
    path.mkdir()
    (path / "box.yml").write_text(textwrap.dedent(f"""\
        registry_url: file://{registry_dir}
        global_modules_dir: {tmp_path / 'global'}
    """))
    (path / ".quark").write_text("[project]\nname=demo\n")
    return path


def _invoke(project: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(project / "box.yml"), *args])


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Neutron" in result.output
        for command in ("install", "uninstall", "update", "list", "search", "info", "build"):
            assert command in result.output

    def test_version_option(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_version_command(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "Box Package Manager v1.0.0" in result.output
        assert "Library Extension:" in result.output

    def test_missing_config(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yml"), "list"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestInstallCommands:
    def test_install_list_uninstall(self, project: Path):
        result = _invoke(project, "install", "base64")
        assert result.exit_code == 0, result.output
        assert "Installed base64@1.0.1" in result.output
        assert "base64=1.0.1" in (project / ".quark").read_text()

        module_dir = project / ".box" / "modules" / "base64"
        assert (module_dir / "metadata.json").is_file()
        assert any(p.name.startswith("base64.") for p in module_dir.iterdir() if p.name != "metadata.json")

        result = _invoke(project, "list")
        assert result.exit_code == 0
        assert "base64@1.0.1" in result.output

        result = _invoke(project, "uninstall", "base64")
        assert result.exit_code == 0
        assert not module_dir.exists()

        result = _invoke(project, "list")
        assert "No modules installed (local)" in result.output

    def test_install_json(self, project: Path):
        result = _invoke(project, "install", "base64", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["strategy"] == "binary"
        assert data["manifest"] == "added"

    def test_global_install(self, project: Path, tmp_path: Path):
        result = _invoke(project, "install", "-g", "base64")
        assert result.exit_code == 0
        assert (tmp_path / "global" / "base64" / "metadata.json").is_file()
        assert "base64" not in (project / ".quark").read_text()

        result = _invoke(project, "list", "--global", "--json")
        assert [m["name"] for m in json.loads(result.output)] == ["base64"]

    def test_install_unknown_module(self, project: Path):
        result = _invoke(project, "install", "nope")
        assert result.exit_code == 1
        assert "Module not found: nope" in result.output

    def test_install_unknown_version(self, project: Path):
        result = _invoke(project, "install", "base64@0.0.1")
        assert result.exit_code == 1
        assert "Version not found: base64@0.0.1" in result.output

    def test_uninstall_not_installed(self, project: Path):
        result = _invoke(project, "uninstall", "base64")
        assert result.exit_code == 1
        assert "Module not installed" in result.output

    def test_update(self, project: Path):
        _invoke(project, "install", "base64")
        result = _invoke(project, "update", "base64")
        assert result.exit_code == 0
        assert "Updated base64 to 1.0.1" in result.output


class TestRegistryCommands:
    def test_search(self, project: Path):
        result = _invoke(project, "search", "BASE")
        assert result.exit_code == 0
        assert "base64" in result.output
        assert "crypto" not in result.output

    def test_search_json(self, project: Path):
        result = _invoke(project, "search", "", "--json")
        assert json.loads(result.output) == ["base64", "crypto"]

    def test_search_without_query_lists_all(self, project: Path):
        result = _invoke(project, "search", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == ["base64", "crypto"]

    def test_search_no_match(self, project: Path):
        result = _invoke(project, "search", "zzz")
        assert "No modules found matching 'zzz'" in result.output

    def test_info(self, project: Path):
        result = _invoke(project, "info", "base64")
        assert result.exit_code == 0
        assert "Module: base64" in result.output
        assert "Latest: 1.0.1" in result.output
        assert "depends on: crypto >=1.0" in result.output

    def test_info_json_uses_document_keys(self, project: Path):
        result = _invoke(project, "info", "base64", "--json")
        data = json.loads(result.output)
        assert "entry-linux" in data["versions"]["1.0.1"]

    def test_info_unknown(self, project: Path):
        result = _invoke(project, "info", "nope")
        assert result.exit_code == 1

    def test_unreachable_registry(self, tmp_path: Path):
        config = tmp_path / "box.yml"
        config.write_text(f"registry_url: file://{tmp_path / 'missing'}\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config), "search", "x"])
        assert result.exit_code == 1
        assert "Failed to fetch NUR index" in result.output


class TestBuildCommands:
    def test_build_nt_not_implemented(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["build", "nt", "demo"])
        assert result.exit_code == 1
        assert "not yet implemented" in result.output

    def test_build_native_without_sources(self, project: Path):
        (project / "demo").mkdir()
        result = _invoke(project, "build", "native", "demo")
        assert result.exit_code == 1
        assert "Failed to build demo" in result.output
        assert "No module source found" in result.output
